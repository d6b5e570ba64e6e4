"""Integration-style tests for the odds CLI wiring."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cupodds.betting import cli


@pytest.fixture()
def cache_args(tmp_path: Path) -> list[str]:
    return ["--cache-path", str(tmp_path / "odds.sqlite3")]


@pytest.mark.parametrize(
    "command",
    ["match", "group", "cache-stats", "clear-cache", "sweep", "rankings"],
)
def test_cli_parser_registers_subcommands(command: str) -> None:
    parser = cli._build_parser()
    names = {subcommand.name for subcommand in cli.APP.commands}

    assert command in names
    assert parser.prog == "cupodds-odds"


def test_match_command_prints_odds(capsys: pytest.CaptureFixture[str], cache_args: list[str]) -> None:
    cli.main(["match", "Spain", "Cabo Verde", *cache_args])

    payload = json.loads(capsys.readouterr().out)
    assert payload["teams"] == ["Spain", "Cabo Verde"]
    assert payload["kind"] == "match-odds"
    assert payload["team1"]["probability"] > 0.5
    assert payload["draw"]["probability"] > 0
    assert payload["is_knockout"] is False


def test_knockout_match_command(capsys: pytest.CaptureFixture[str], cache_args: list[str]) -> None:
    cli.main(["match", "Mexico", "Canada", "--knockout", *cache_args])

    payload = json.loads(capsys.readouterr().out)
    assert payload["draw"] is None
    assert payload["penalty_probability"] > 0


def test_group_command_lists_favourite_first(
    capsys: pytest.CaptureFixture[str], cache_args: list[str]
) -> None:
    cli.main(["group", "Mexico", "South Africa", "Korea Republic", "Spain", *cache_args])

    payload = json.loads(capsys.readouterr().out)
    assert list(payload["teams"])[0] == "Spain"
    assert payload["teams"]["Spain"]["rank"] == 1


def test_cache_stats_and_clear(capsys: pytest.CaptureFixture[str], cache_args: list[str]) -> None:
    cli.main(["match", "Spain", "Uruguay", *cache_args])
    capsys.readouterr()

    cli.main(["cache-stats", *cache_args])
    stats = json.loads(capsys.readouterr().out)
    assert stats["durable"]["total"] == 1
    assert stats["durable"]["byType"] == {"match-odds": 1}

    cli.main(["clear-cache", "--kind", "match-odds", *cache_args])
    cleared = json.loads(capsys.readouterr().out)
    assert cleared == {"deletedCount": 1, "type": "match-odds"}


def test_single_sweep(capsys: pytest.CaptureFixture[str], cache_args: list[str]) -> None:
    cli.main(["sweep", *cache_args])

    assert json.loads(capsys.readouterr().out) == {"deletedCount": 0}


def test_rankings_command(capsys: pytest.CaptureFixture[str], cache_args: list[str]) -> None:
    cli.main(["rankings", "--top", "2", *cache_args])

    payload = json.loads(capsys.readouterr().out)
    assert [entry["name"] for entry in payload] == ["Spain", "Argentina"]


def test_unknown_team_exits(cache_args: list[str]) -> None:
    with pytest.raises(SystemExit, match="Insufficient rating data"):
        cli.main(["match", "Spain", "Atlantis", *cache_args])


def test_wrong_group_size_is_rejected_by_parser(cache_args: list[str]) -> None:
    with pytest.raises(SystemExit):
        cli.main(["group", "Spain", "Mexico", *cache_args])


def test_log_level_is_case_insensitive(capsys: pytest.CaptureFixture[str], cache_args: list[str]) -> None:
    cli.main(["rankings", "--top", "1", "--log-level", "debug", *cache_args])

    assert len(json.loads(capsys.readouterr().out)) == 1


def test_unknown_log_level_exits(cache_args: list[str]) -> None:
    with pytest.raises(SystemExit, match="invalid log level 'LOUD'"):
        cli.main(["rankings", "--log-level", "LOUD", *cache_args])
