"""Failure hooks for background cache work."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import signal
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class AlertSink(Protocol):
    """Protocol describing a sink that can emit alert messages."""

    def send(self, subject: str, body: str, *, metadata: Mapping[str, Any] | None = None) -> None:
        """Send a formatted alert message."""


@dataclasses.dataclass(slots=True)
class LoggingAlertSink:
    """Emit alerts through a standard library logger."""

    logger_name: str = "cupodds.alerts"
    level: int = logging.WARNING

    def send(
        self, subject: str, body: str, *, metadata: Mapping[str, Any] | None = None
    ) -> None:
        message = f"{subject}: {body}" if subject else body
        if metadata:
            meta = ", ".join(f"{key}={value}" for key, value in metadata.items())
            message = f"{message} ({meta})"
        logging.getLogger(self.logger_name).log(self.level, message)


@dataclasses.dataclass(slots=True)
class AlertManager:
    """Dispatch alert notifications to several sinks."""

    sinks: Sequence[AlertSink]

    def send(
        self, subject: str, body: str, *, metadata: Mapping[str, Any] | None = None
    ) -> None:
        for sink in self.sinks:
            try:
                sink.send(subject, body, metadata=metadata)
            except Exception:
                logger.exception("Alert sink %s raised", sink)

    def notify_sweep(self, removed: int) -> None:
        if removed <= 0:
            return
        self.send(
            "Expired cache swept",
            f"{removed} expired odds entries removed",
            metadata={"removed": removed},
        )


def install_signal_handlers(stop_callback: Callable[[], None]) -> None:
    """Install POSIX signal handlers that trigger ``stop_callback``."""

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_callback)
        except NotImplementedError:  # pragma: no cover - Windows
            signal.signal(sig, lambda *_: stop_callback())


__all__ = [
    "AlertManager",
    "AlertSink",
    "LoggingAlertSink",
    "install_signal_handlers",
]
