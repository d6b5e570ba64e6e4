"""Logging helpers for the odds engine."""

from __future__ import annotations

import logging
from typing import Iterable

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: int | str = logging.INFO, handlers: Iterable[logging.Handler] | None = None
) -> None:
    """Configure root logging for command line runs and sweepers.

    Cache timeouts and background write failures are reported at warning
    level; hits and misses only show up with ``DEBUG``.
    """

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=list(handlers) if handlers else None,
        force=bool(handlers),
    )
