"""Command line interface for simulated World Cup odds."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence, TypeVar, runtime_checkable

from ..config import (
    ConfigurationError,
    CupOddsConfig,
    LogLevel,
    get_config,
    update_config,
    validate_config,
)
from .alerts import AlertManager, LoggingAlertSink, install_signal_handlers
from .cache import CacheClearError, CacheKind
from .logging import configure_logging
from .models import InsufficientRatingDataError, InvalidInputError
from .scheduler import ExpirySweeper, Scheduler
from .service import OddsService


@dataclasses.dataclass(slots=True)
class CommandContext:
    """Runtime objects shared across command handlers."""

    service: OddsService
    alert_manager: AlertManager
    config: CupOddsConfig


@runtime_checkable
class ContextCommandHandler(Protocol):
    async def __call__(self, context: CommandContext, args: argparse.Namespace) -> None:
        """Execute a command that relies on a service context."""


HandlerT = TypeVar("HandlerT", bound=ContextCommandHandler)


@dataclasses.dataclass(slots=True)
class Subcommand:
    """Container describing a CLI sub-command."""

    name: str
    help: str
    configure: Callable[[argparse.ArgumentParser], None]
    handler: ContextCommandHandler

    def add_to_parser(self, subparsers, parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
        parser = subparsers.add_parser(self.name, parents=[parent], help=self.help)
        self.configure(parser)
        parser.set_defaults(handler=self.handler, command=self.name)
        return parser


class SubcommandApp:
    """Registry that wires handlers into an :class:`argparse` parser."""

    def __init__(self, description: str | None = None) -> None:
        self._commands: list[Subcommand] = []
        self._description = description

    def command(
        self,
        name: str,
        *,
        help: str,
        configure: Callable[[argparse.ArgumentParser], None] = lambda parser: None,
    ) -> Callable[[HandlerT], HandlerT]:
        def _decorator(handler: HandlerT) -> HandlerT:
            self._commands.append(
                Subcommand(name=name, help=help, configure=configure, handler=handler)
            )
            return handler

        return _decorator

    @property
    def commands(self) -> Sequence[Subcommand]:
        return tuple(self._commands)

    def build_parser(self) -> argparse.ArgumentParser:
        parent = argparse.ArgumentParser(add_help=False)
        parent.add_argument("--cache-path", type=Path, help="SQLite cache database")
        parent.add_argument("--rankings", type=Path, help="Custom rankings JSON file")
        parent.add_argument("--log-level", help="Logging level (DEBUG, INFO, ...)")

        parser = argparse.ArgumentParser(prog="cupodds-odds", description=self._description)
        subparsers = parser.add_subparsers(dest="command", required=True)
        for command in self._commands:
            command.add_to_parser(subparsers, parent)
        return parser


APP = SubcommandApp(description=__doc__)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _configure_match_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("team1")
    parser.add_argument("team2")
    parser.add_argument(
        "--knockout",
        action="store_true",
        help="Knockout fixture: no draws, level games go to penalties",
    )


def _configure_group_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("teams", nargs=4, metavar="TEAM")


def _configure_clear_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--kind",
        choices=[kind.value for kind in CacheKind],
        help="Only clear entries of this kind",
    )


def _configure_sweep_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--interval",
        type=float,
        default=0.0,
        help="Seconds between sweeps; 0 runs a single sweep",
    )
    parser.add_argument("--jitter", type=float, default=0.0)
    parser.add_argument("--retries", type=int, default=1)


def _configure_rankings_parser(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--top", type=int, default=20)


@APP.command("match", help="Simulate a single fixture", configure=_configure_match_parser)
async def _cmd_match(context: CommandContext, args: argparse.Namespace) -> None:
    odds = await context.service.get_match_odds(args.team1, args.team2, args.knockout)
    _print_json({"teams": [args.team1, args.team2], **odds.model_dump(mode="json")})


@APP.command("group", help="Simulate group-winner odds", configure=_configure_group_parser)
async def _cmd_group(context: CommandContext, args: argparse.Namespace) -> None:
    odds = await context.service.get_group_winner_odds(args.teams)
    payload = odds.model_dump(mode="json")
    payload["teams"] = {team: entry.model_dump(mode="json") for team, entry in odds.ranked()}
    _print_json(payload)


@APP.command("cache-stats", help="Show cache statistics")
async def _cmd_cache_stats(context: CommandContext, args: argparse.Namespace) -> None:
    del args
    stats = await context.service.get_cache_stats()
    durable = stats["durable"]
    _print_json(
        {
            "durable": durable.as_dict() if durable is not None else None,
            "memory": stats["memory"],
        }
    )


@APP.command("clear-cache", help="Delete cached odds", configure=_configure_clear_parser)
async def _cmd_clear_cache(context: CommandContext, args: argparse.Namespace) -> None:
    result = await context.service.clear_cache(args.kind)
    _print_json(result.as_dict())


@APP.command("sweep", help="Remove expired cache rows", configure=_configure_sweep_parser)
async def _cmd_sweep(context: CommandContext, args: argparse.Namespace) -> None:
    cache = context.service.cache
    if cache is None:
        raise SystemExit("No durable cache configured")
    sweeper = ExpirySweeper(
        cache,
        interval=args.interval,
        jitter=args.jitter,
        retries=args.retries,
        alert_manager=context.alert_manager,
    )
    if args.interval <= 0:
        removed = await sweeper.sweep_once()
        _print_json({"deletedCount": removed})
        return

    scheduler = Scheduler()
    sweeper.register(scheduler)
    install_signal_handlers(scheduler.stop)
    print("Starting expiry sweeper. Press Ctrl+C to stop.")
    await scheduler.run()
    _print_json({"deletedCount": sweeper.total_removed})


@APP.command("rankings", help="List the strongest rated teams", configure=_configure_rankings_parser)
async def _cmd_rankings(context: CommandContext, args: argparse.Namespace) -> None:
    _print_json(
        [
            {"rank": ranking.rank, "name": ranking.name, "points": ranking.points}
            for ranking in context.service.ratings.top(args.top)
        ]
    )


def _build_parser() -> argparse.ArgumentParser:
    return APP.build_parser()


def _parse_log_level(value: str | None) -> LogLevel | None:
    if value is None:
        return None
    try:
        return LogLevel(value.upper())
    except ValueError:
        choices = ", ".join(level.value for level in LogLevel)
        raise SystemExit(f"error: invalid log level {value!r}; choose from {choices}") from None


def _apply_overrides(args: argparse.Namespace) -> CupOddsConfig:
    overrides: Mapping[str, Any] = {
        key: value
        for key, value in (
            ("cache_path", getattr(args, "cache_path", None)),
            ("rankings_path", getattr(args, "rankings", None)),
            ("log_level", _parse_log_level(getattr(args, "log_level", None))),
        )
        if value is not None
    }
    if overrides:
        update_config(**overrides)
    return get_config()


async def _dispatch(args: argparse.Namespace) -> None:
    config = _apply_overrides(args)
    configure_logging(LogLevel(config.log_level).value)
    try:
        warnings = validate_config(config)
    except ConfigurationError as exc:
        raise SystemExit(str(exc)) from exc
    for message in warnings:
        print(f"[config-warning] {message}")

    alert_manager = AlertManager(sinks=[LoggingAlertSink()])
    service = OddsService.from_config(config, alert_sink=alert_manager)
    context = CommandContext(service=service, alert_manager=alert_manager, config=config)
    handler: ContextCommandHandler = args.handler
    try:
        await handler(context, args)
    except (InvalidInputError, InsufficientRatingDataError, CacheClearError) as exc:
        raise SystemExit(f"error: {exc}") from exc
    finally:
        await service.drain()


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    asyncio.run(_dispatch(args))


__all__ = ["main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
