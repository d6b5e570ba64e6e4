import json
import logging
from pathlib import Path

import pytest

from cupodds.betting.ratings import (
    RatingTable,
    TeamRanking,
    default_rating_table,
    load_rankings,
)


def test_default_table_contains_hosts() -> None:
    table = default_rating_table()

    assert len(table) > 200
    for host in ("USA", "Mexico", "Canada"):
        assert host in table
    assert table.lookup("Spain").rank == 1


@pytest.mark.parametrize(
    ("identifier", "canonical"),
    [
        ("USA", "USA"),
        ("United States", "USA"),
        ("usa", "USA"),
        ("South Korea", "Korea Republic"),
        ("  Brazil ", "Brazil"),
        ("korea-republic", "Korea Republic"),
    ],
)
def test_lookup_resolves_aliases(identifier: str, canonical: str) -> None:
    ranking = default_rating_table().lookup(identifier)

    assert ranking is not None
    assert ranking.name == canonical


def test_unknown_team_logged(caplog: pytest.LogCaptureFixture) -> None:
    table = RatingTable([TeamRanking("Spain", 1877.18, 1)])

    with caplog.at_level(logging.INFO, logger="cupodds.betting.ratings"):
        assert table.lookup("Atlantis") is None

    assert "FIFA ranking not found for: Atlantis" in caplog.text
    assert "Atlantis" not in table


def test_top_orders_by_rank() -> None:
    top = default_rating_table().top(3)

    assert [ranking.rank for ranking in top] == [1, 2, 3]
    assert top[0].name == "Spain"


def test_unranked_teams_excluded_from_top() -> None:
    table = RatingTable([TeamRanking("Eritrea", 855.56), TeamRanking("Spain", 1877.18, 1)])

    assert [ranking.name for ranking in table.top(5)] == ["Spain"]
    assert table.lookup("Eritrea").points == 855.56


def test_fuzzy_matching_resolves_typos() -> None:
    table = RatingTable(
        [TeamRanking("Argentina", 1873.33, 2), TeamRanking("Netherlands", 1756.27, 7)],
        fuzzy_matching_enabled=True,
    )

    ranking = table.lookup("Argentinaa")

    assert ranking is not None
    assert ranking.name == "Argentina"


def test_fuzzy_matching_disabled_by_default() -> None:
    table = RatingTable([TeamRanking("Argentina", 1873.33, 2)])

    assert table.lookup("Argentinaa") is None


def test_ambiguous_fuzzy_match_raises() -> None:
    table = RatingTable(
        [TeamRanking("Team Alpha One", 1500.0, 1), TeamRanking("Team Alpha Two", 1490.0, 2)],
        fuzzy_matching_enabled=True,
    )

    with pytest.raises(ValueError, match="Ambiguous team"):
        table.lookup("Team Alpha")


def test_load_rankings_from_custom_file(tmp_path: Path) -> None:
    path = tmp_path / "rankings.json"
    path.write_text(
        json.dumps(
            {
                "teams": [
                    {"name": "Atlantis", "rank": 1, "points": 2000, "aliases": ["ATL"]},
                    {"name": "Nowhere", "points": 0},
                    {"rank": 3, "points": 1200},
                ]
            }
        ),
        encoding="utf-8",
    )

    rankings = load_rankings(path)
    table = RatingTable.from_path(path)

    assert [ranking.name for ranking in rankings] == ["Atlantis"]
    assert table.lookup("ATL").points == 2000.0

