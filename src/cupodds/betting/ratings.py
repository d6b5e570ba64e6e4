"""FIFA ranking lookup used as the simulators' strength input.

Team identifiers arrive from several front-end tables that disagree on
spelling ("USA" vs "United States", "Türkiye" vs "Turkey").  The table maps
every known label to a canonical :class:`TeamRanking`; lookups try an exact
match, then a case-insensitive match, then a punctuation-free slug, and can
optionally fall back to fuzzy matching through :mod:`rapidfuzz`.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, Mapping, Sequence

from rapidfuzz import fuzz, process

logger = logging.getLogger(__name__)

_DEFAULT_RANKINGS_PATH = Path(__file__).resolve().parent / "data" / "fifa_rankings.json"

DEFAULT_FUZZY_THRESHOLD = 88.0


def _slug(value: str) -> str:
    return re.sub(r"[^\w]", "", value.casefold())


@dataclasses.dataclass(frozen=True, slots=True)
class TeamRanking:
    """Ranking row for a national team."""

    name: str
    points: float
    rank: int | None = None
    aliases: Sequence[str] = dataclasses.field(default_factory=tuple)

    @property
    def labels(self) -> Sequence[str]:
        labels: list[str] = [self.name]
        labels.extend(alias for alias in self.aliases if alias)
        return labels


def _build_rankings(items: object) -> list[TeamRanking]:
    rankings: list[TeamRanking] = []
    if not isinstance(items, Sequence):
        return rankings
    for item in items:
        if not isinstance(item, Mapping):
            continue
        name = str(item.get("name", "")).strip()
        points = item.get("points")
        if not name or not isinstance(points, (int, float)) or points <= 0:
            continue
        rank = item.get("rank")
        aliases = item.get("aliases", [])
        if isinstance(aliases, Sequence) and not isinstance(aliases, (str, bytes, bytearray)):
            alias_list = tuple(str(alias).strip() for alias in aliases if str(alias).strip())
        else:
            alias_list = ()
        rankings.append(
            TeamRanking(
                name=name,
                points=float(points),
                rank=int(rank) if isinstance(rank, int) else None,
                aliases=alias_list,
            )
        )
    return rankings


def load_rankings(path: str | Path | None = None) -> list[TeamRanking]:
    """Load ranking rows from a JSON file with a top-level ``teams`` list."""

    target = Path(path) if path else _DEFAULT_RANKINGS_PATH
    with target.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, Mapping):
        raise TypeError("Rankings file must contain a mapping")
    return _build_rankings(payload.get("teams", []))


@dataclasses.dataclass
class RatingTable:
    """Resolve team identifiers to :class:`TeamRanking` rows."""

    rankings: Sequence[TeamRanking] = ()
    fuzzy_matching_enabled: bool = False
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD
    fuzzy_ambiguity_margin: float = 5.0

    def __post_init__(self) -> None:
        self.rankings = tuple(self.rankings)
        self._exact: Dict[str, TeamRanking] = {}
        self._folded: Dict[str, TeamRanking] = {}
        self._slugs: Dict[str, TeamRanking] = {}
        for ranking in self.rankings:
            for label in ranking.labels:
                self._exact.setdefault(label, ranking)
                self._folded.setdefault(label.casefold(), ranking)
                slug = _slug(label)
                if slug:
                    self._slugs.setdefault(slug, ranking)

    @classmethod
    def from_path(cls, path: str | Path | None = None, **kwargs: object) -> "RatingTable":
        return cls(load_rankings(path), **kwargs)  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self.rankings)

    def __iter__(self) -> Iterator[TeamRanking]:
        return iter(self.rankings)

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.lookup(identifier) is not None

    def lookup(self, identifier: str) -> TeamRanking | None:
        """Return the ranking for ``identifier`` or ``None`` when unknown."""

        normalized = identifier.strip()
        if not normalized:
            return None
        ranking = self._exact.get(normalized)
        if ranking is not None:
            return ranking
        ranking = self._folded.get(normalized.casefold())
        if ranking is not None:
            return ranking
        ranking = self._slugs.get(_slug(normalized))
        if ranking is not None:
            return ranking
        ranking = self._resolve_with_fuzzy(normalized)
        if ranking is None:
            logger.info("FIFA ranking not found for: %s", identifier)
        return ranking

    def top(self, count: int) -> list[TeamRanking]:
        ranked = [ranking for ranking in self.rankings if ranking.rank is not None]
        ranked.sort(key=lambda ranking: (ranking.rank, ranking.name))
        return ranked[: max(0, count)]

    def _resolve_with_fuzzy(self, value: str) -> TeamRanking | None:
        if not self.fuzzy_matching_enabled or not self._exact:
            return None
        matches = process.extract(
            value,
            list(self._exact.keys()),
            scorer=fuzz.WRatio,
            limit=2,
        )
        if not matches:
            return None
        top_label, top_score, _ = matches[0]
        if top_score < self.fuzzy_threshold:
            return None
        top_ranking = self._exact[top_label]
        if len(matches) > 1:
            second_label, second_score, _ = matches[1]
            second_ranking = self._exact[second_label]
            if (
                second_ranking is not top_ranking
                and top_score - second_score < self.fuzzy_ambiguity_margin
            ):
                raise ValueError(
                    f"Ambiguous team '{value}' matched '{top_label}' ({top_score:.1f}) "
                    f"and '{second_label}' ({second_score:.1f}); provide a clearer name."
                )
        logger.debug("Fuzzy matched %s to %s (%.1f)", value, top_ranking.name, top_score)
        return top_ranking


@lru_cache()
def default_rating_table() -> RatingTable:
    return RatingTable.from_path()
