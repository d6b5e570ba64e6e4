"""Cache-aware entry points for match and group-winner odds.

:class:`OddsService` composes the rating table, the simulators and both
cache tiers.  Lookups consult the durable cache first, then the in-process
memory tier, and only simulate on a full miss.  Fresh results go into the
memory tier immediately while the durable write runs as a background task, so
callers never wait on the store.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Sequence, Set

from ..config import CupOddsConfig, get_config
from .alerts import AlertSink
from .cache import (
    KEY_DELIMITER,
    CacheKind,
    CacheManager,
    CacheStats,
    ClearResult,
    MemoryCache,
)
from .models import (
    DEFAULT_POLICY,
    GROUP_SIZE,
    GroupWinnerOdds,
    InsufficientRatingDataError,
    InvalidInputError,
    IterationPolicy,
    MatchOdds,
    simulate_group_winner,
    simulate_match,
)
from .ratings import RatingTable, TeamRanking, default_rating_table
from .rng import seeded_random

logger = logging.getLogger(__name__)


def _check_delimiter(identifiers: Sequence[str]) -> None:
    for identifier in identifiers:
        if KEY_DELIMITER in identifier:
            raise InvalidInputError(
                f"Team identifier {identifier!r} must not contain {KEY_DELIMITER!r}"
            )


class OddsService:
    """Serve simulated odds through the durable and memory cache tiers."""

    def __init__(
        self,
        ratings: RatingTable | None = None,
        cache: CacheManager | None = None,
        *,
        memory: MemoryCache | None = None,
        alert_sink: AlertSink | None = None,
        default_rating: float = 1500.0,
        policy: IterationPolicy = DEFAULT_POLICY,
    ) -> None:
        self.ratings = ratings if ratings is not None else default_rating_table()
        self.cache = cache
        self.memory = memory if memory is not None else MemoryCache()
        self.alert_sink = alert_sink
        self.default_rating = default_rating
        self.policy = policy
        self._pending: Set[asyncio.Task[None]] = set()
        self._metrics: Dict[str, int] = {
            "durable_hits": 0,
            "memory_hits": 0,
            "misses": 0,
            "write_failures": 0,
        }

    @classmethod
    def from_config(
        cls,
        settings: CupOddsConfig | None = None,
        *,
        alert_sink: AlertSink | None = None,
    ) -> "OddsService":
        settings = settings or get_config()
        if settings.rankings_path is not None:
            ratings = RatingTable.from_path(
                settings.rankings_path, fuzzy_matching_enabled=settings.fuzzy_matching
            )
        elif settings.fuzzy_matching:
            ratings = RatingTable(default_rating_table().rankings, fuzzy_matching_enabled=True)
        else:
            ratings = default_rating_table()
        return cls(
            ratings,
            CacheManager.from_config(settings),
            memory=MemoryCache(settings.memory_cache_size),
            alert_sink=alert_sink,
            default_rating=settings.default_rating,
        )

    @property
    def metrics(self) -> Mapping[str, int]:
        return dict(self._metrics)

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Odds
    # ------------------------------------------------------------------

    async def get_group_winner_odds(self, teams: Sequence[str]) -> GroupWinnerOdds:
        """Return group-winner odds for exactly four teams."""

        identifiers = [team.strip() for team in teams]
        if len(identifiers) != GROUP_SIZE:
            raise InvalidInputError(
                f"Must provide exactly {GROUP_SIZE} teams, got {len(identifiers)}"
            )
        if len(set(identifiers)) != GROUP_SIZE or not all(identifiers):
            raise InvalidInputError("Group teams must be distinct, non-empty identifiers")
        _check_delimiter(identifiers)

        cached = await self._lookup(identifiers, CacheKind.GROUP_WINNER, False)
        if isinstance(cached, GroupWinnerOdds):
            return cached

        rankings = {team: self._resolve(team, strict=False) for team in identifiers}
        ratings = {
            team: ranking.points if ranking is not None else self.default_rating
            for team, ranking in rankings.items()
        }
        result = simulate_group_winner(
            ratings,
            rng=seeded_random(identifiers),
            policy=self.policy,
            ranks={
                team: ranking.rank if ranking is not None else None
                for team, ranking in rankings.items()
            },
            default_rating=self.default_rating,
        )
        self._remember(identifiers, CacheKind.GROUP_WINNER, result, False)
        return result

    async def get_match_odds(
        self, team1: str, team2: str, is_knockout: bool = False
    ) -> MatchOdds:
        """Return match odds with ``team1``/``team2`` in the order given."""

        first, second = team1.strip(), team2.strip()
        if not first or not second or first == second:
            raise InvalidInputError("Match odds need two distinct team identifiers")
        identifiers = [first, second]
        _check_delimiter(identifiers)
        reversed_order = first > second

        cached = await self._lookup(identifiers, CacheKind.MATCH_ODDS, is_knockout)
        if isinstance(cached, MatchOdds):
            return cached.swapped() if reversed_order else cached

        low, high = sorted(identifiers)
        low_ranking, high_ranking = self._resolve(low), self._resolve(high)
        missing = [
            team for team, ranking in ((low, low_ranking), (high, high_ranking)) if ranking is None
        ]
        if missing:
            raise InsufficientRatingDataError(
                f"Insufficient rating data for: {', '.join(missing)}"
            )
        assert low_ranking is not None and high_ranking is not None
        result = simulate_match(
            low_ranking.points,
            high_ranking.points,
            is_knockout=is_knockout,
            rng=seeded_random(identifiers),
            policy=self.policy,
        )
        if result is None:
            raise InsufficientRatingDataError(
                f"Insufficient rating data for: {low}, {high}"
            )
        self._remember(identifiers, CacheKind.MATCH_ODDS, result, is_knockout)
        return result.swapped() if reversed_order else result

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def clear_cache(self, kind: CacheKind | str | None = None) -> ClearResult:
        """Clear both tiers, optionally restricted to one kind."""

        memory_removed = self.memory.clear(kind)
        if self.cache is None:
            label = CacheKind(kind).value if kind is not None else "all"
            logger.info("Memory cache cleared: %d entries (type: %s)", memory_removed, label)
            return ClearResult(deleted_count=memory_removed, kind=label)
        return await self.cache.clear(kind)

    async def get_cache_stats(self) -> Dict[str, Any]:
        durable: CacheStats | None = None
        if self.cache is not None:
            durable = await self.cache.stats()
        return {"durable": durable, "memory": self.memory.stats()}

    async def sweep_expired(self) -> int:
        if self.cache is None:
            return 0
        return await self.cache.sweep_expired()

    async def drain(self) -> None:
        """Wait for every scheduled durable write to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, team: str, *, strict: bool = True) -> TeamRanking | None:
        """Look ``team`` up; ambiguous names raise unless ``strict`` is off.

        Group simulations pass ``strict=False`` so an ambiguous name plays at
        the default rating like any other unknown team.
        """

        try:
            return self.ratings.lookup(team)
        except ValueError as exc:
            if strict:
                raise InvalidInputError(str(exc)) from exc
            logger.warning("%s; using default rating %.0f", exc, self.default_rating)
            return None

    async def _lookup(
        self, identifiers: Sequence[str], kind: CacheKind, is_knockout: bool
    ) -> GroupWinnerOdds | MatchOdds | None:
        if self.cache is not None:
            cached = await self.cache.get(identifiers, kind, is_knockout)
            if cached is not None:
                self._metrics["durable_hits"] += 1
                self.memory.set(identifiers, kind, cached, is_knockout)
                return cached
        cached = self.memory.get(identifiers, kind, is_knockout)
        if cached is not None:
            self._metrics["memory_hits"] += 1
            logger.debug("Memory cache HIT for %s: %s", kind.value, ", ".join(identifiers))
            return cached
        self._metrics["misses"] += 1
        return None

    def _remember(
        self,
        identifiers: Sequence[str],
        kind: CacheKind,
        payload: GroupWinnerOdds | MatchOdds,
        is_knockout: bool,
    ) -> None:
        self.memory.set(identifiers, kind, payload, is_knockout)
        if self.cache is None:
            return
        task = asyncio.get_running_loop().create_task(
            self._persist(list(identifiers), kind, payload, is_knockout),
            name=f"cache-write-{kind.value}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(
        self,
        identifiers: Sequence[str],
        kind: CacheKind,
        payload: GroupWinnerOdds | MatchOdds,
        is_knockout: bool,
    ) -> None:
        assert self.cache is not None
        reason = "store unavailable or timed out"
        try:
            stored = await self.cache.set(identifiers, kind, payload, is_knockout)
        except Exception as exc:
            logger.exception("Background cache write for %s raised", kind.value)
            stored = False
            reason = str(exc)
        if stored:
            return
        self._metrics["write_failures"] += 1
        logger.warning(
            "Background cache write failed for %s: %s", kind.value, ", ".join(identifiers)
        )
        if self.alert_sink is not None:
            self.alert_sink.send(
                "Cache write failed",
                f"Could not persist {kind.value} odds for {', '.join(identifiers)}: {reason}",
                metadata={"kind": kind.value, "is_knockout": is_knockout},
            )


__all__ = ["OddsService"]
