"""Monte Carlo match and group simulations driven by FIFA ranking points.

Both simulators share the same building blocks:

* :class:`MatchModel` turns two ratings into outcome probabilities with the
  Elo logistic curve and samples a single result from a :class:`SeededRandom`.
* :class:`IterationPolicy` picks the iteration budget (more iterations for
  close pairings) and stops early once the running probabilities settle.

The results are immutable pydantic models so they can be cached and decoded
again through :data:`payload_adapter`.
"""

from __future__ import annotations

import dataclasses
import enum
import itertools
import logging
import time
from typing import Annotated, Dict, List, Literal, Mapping, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .rng import SeededRandom, seeded_random
from .utils import probability_to_american_odds

logger = logging.getLogger(__name__)

GROUP_SIZE = 4
ELO_SCALE = 400.0

POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1
MAX_GOAL_MARGIN = 3


class InvalidInputError(ValueError):
    """Raised when a caller supplies the wrong number or shape of teams."""


class InsufficientRatingDataError(LookupError):
    """Raised when a match participant has no usable rating."""


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class OutcomeOdds(BaseModel):
    """Probability of one outcome together with its American price."""

    model_config = ConfigDict(frozen=True)

    probability: float = Field(ge=0.0, le=1.0)
    odds: int | None = None

    @classmethod
    def from_probability(cls, probability: float) -> "OutcomeOdds":
        return cls(probability=probability, odds=probability_to_american_odds(probability))


class GroupTeamOdds(OutcomeOdds):
    """Group-winner probability for one team."""

    rank: int | None = None


class MatchOdds(BaseModel):
    """Outcome distribution for a single fixture.

    Group-stage fixtures fill ``draw``.  Knockout fixtures instead fill the
    penalty fields: ``team1``/``team2`` are totals including shootouts,
    ``team1_penalties``/``team2_penalties`` are conditional on a shootout
    taking place and ``penalty_probability`` is the chance of reaching one.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["match-odds"] = "match-odds"
    team1: OutcomeOdds
    team2: OutcomeOdds
    draw: OutcomeOdds | None = None
    team1_penalties: OutcomeOdds | None = None
    team2_penalties: OutcomeOdds | None = None
    penalty_probability: float | None = None
    is_knockout: bool = False
    iterations: int = 0
    converged: bool = False

    def swapped(self) -> "MatchOdds":
        """Return the same distribution seen from the other side."""

        return self.model_copy(
            update={
                "team1": self.team2,
                "team2": self.team1,
                "team1_penalties": self.team2_penalties,
                "team2_penalties": self.team1_penalties,
            }
        )


class GroupWinnerOdds(BaseModel):
    """Probability of each team finishing top of its group."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["group-winner"] = "group-winner"
    teams: Dict[str, GroupTeamOdds]
    iterations: int = 0
    converged: bool = False

    def ranked(self) -> List[Tuple[str, GroupTeamOdds]]:
        return sorted(self.teams.items(), key=lambda item: item[1].probability, reverse=True)


CachePayload = Annotated[Union[GroupWinnerOdds, MatchOdds], Field(discriminator="kind")]

payload_adapter: TypeAdapter[GroupWinnerOdds | MatchOdds] = TypeAdapter(CachePayload)


# ---------------------------------------------------------------------------
# Iteration policy
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True, slots=True)
class IterationPolicy:
    """Iteration budget and early-convergence settings."""

    base: int = 3000
    close: int = 5000
    close_gap: float = 100.0
    minimum: int = 2000
    window: int = 500
    threshold: float = 0.005

    def budget(self, rating_gap: float, requested: int | None = None) -> int:
        if requested is not None:
            if requested <= 0:
                raise ValueError("Iteration budget must be positive")
            return int(requested)
        return self.close if rating_gap < self.close_gap else self.base


DEFAULT_POLICY = IterationPolicy()


class _ConvergenceMonitor:
    """Compare running probabilities every ``window`` iterations."""

    def __init__(self, policy: IterationPolicy, enabled: bool) -> None:
        self._policy = policy
        self._enabled = enabled
        self._previous: Sequence[float] | None = None
        self.max_change: float | None = None

    def due(self, iterations: int) -> bool:
        return (
            self._enabled
            and iterations >= self._policy.minimum
            and iterations % self._policy.window == 0
        )

    def update(self, probabilities: Sequence[float]) -> bool:
        previous, self._previous = self._previous, tuple(probabilities)
        if previous is None:
            return False
        self.max_change = max(
            abs(current - before) for current, before in zip(probabilities, previous)
        )
        return self.max_change < self._policy.threshold


# ---------------------------------------------------------------------------
# Match model
# ---------------------------------------------------------------------------


class Outcome(str, enum.Enum):
    TEAM1 = "team1"
    TEAM2 = "team2"
    DRAW = "draw"
    TEAM1_PENALTIES = "team1_penalties"
    TEAM2_PENALTIES = "team2_penalties"


def expected_score(rating: float, opponent: float) -> float:
    """Elo expected score of ``rating`` against ``opponent``."""

    return 1.0 / (1.0 + 10.0 ** ((opponent - rating) / ELO_SCALE))


@dataclasses.dataclass(frozen=True, slots=True)
class MatchModel:
    """Outcome probabilities for one pairing.

    ``level_probability`` is the draw probability for group fixtures and the
    probability of reaching a shootout for knockout fixtures.
    """

    rating_a: float
    rating_b: float
    is_knockout: bool
    expected_a: float
    expected_b: float
    win_a: float
    win_b: float
    level_probability: float
    shootout_a: float

    @classmethod
    def from_ratings(cls, rating_a: float, rating_b: float, is_knockout: bool = False) -> "MatchModel":
        expected_a = expected_score(rating_a, rating_b)
        expected_b = expected_score(rating_b, rating_a)
        gap = abs(rating_a - rating_b)
        if is_knockout:
            level = max(0.10, 0.25 - gap / 2000.0)
        else:
            level = max(0.15, 0.30 - gap / 2000.0)
        return cls(
            rating_a=rating_a,
            rating_b=rating_b,
            is_knockout=is_knockout,
            expected_a=expected_a,
            expected_b=expected_b,
            win_a=expected_a * (1.0 - level),
            win_b=expected_b * (1.0 - level),
            level_probability=level,
            shootout_a=0.4 + (expected_a - 0.5) * 0.2,
        )

    @property
    def rating_gap(self) -> float:
        return abs(self.rating_a - self.rating_b)

    def sample(self, rng: SeededRandom) -> Outcome:
        draw = rng.next()
        if draw < self.win_a:
            return Outcome.TEAM1
        if draw < self.win_a + self.win_b:
            return Outcome.TEAM2
        if not self.is_knockout:
            return Outcome.DRAW
        if rng.next() < self.shootout_a:
            return Outcome.TEAM1_PENALTIES
        return Outcome.TEAM2_PENALTIES


# ---------------------------------------------------------------------------
# Match simulation
# ---------------------------------------------------------------------------


def _rating_seed(rating_a: float, rating_b: float) -> int:
    return abs(int(round(rating_a * 1000 + rating_b)))


def _match_vector(counts: Mapping[Outcome, int], iterations: int, is_knockout: bool) -> Tuple[float, ...]:
    if is_knockout:
        return (
            (counts[Outcome.TEAM1] + counts[Outcome.TEAM1_PENALTIES]) / iterations,
            (counts[Outcome.TEAM2] + counts[Outcome.TEAM2_PENALTIES]) / iterations,
            (counts[Outcome.TEAM1_PENALTIES] + counts[Outcome.TEAM2_PENALTIES]) / iterations,
        )
    return (
        counts[Outcome.TEAM1] / iterations,
        counts[Outcome.TEAM2] / iterations,
        counts[Outcome.DRAW] / iterations,
    )


def _match_result(
    model: MatchModel,
    counts: Mapping[Outcome, int],
    iterations: int,
    converged: bool,
) -> MatchOdds:
    if not model.is_knockout:
        team1, team2, draw = _match_vector(counts, iterations, False)
        return MatchOdds(
            team1=OutcomeOdds.from_probability(team1),
            team2=OutcomeOdds.from_probability(team2),
            draw=OutcomeOdds.from_probability(draw),
            is_knockout=False,
            iterations=iterations,
            converged=converged,
        )

    team1, team2, reached = _match_vector(counts, iterations, True)
    shootouts = counts[Outcome.TEAM1_PENALTIES] + counts[Outcome.TEAM2_PENALTIES]
    if shootouts:
        shootout_a = counts[Outcome.TEAM1_PENALTIES] / shootouts
        shootout_b = counts[Outcome.TEAM2_PENALTIES] / shootouts
    else:
        shootout_a = model.shootout_a
        shootout_b = 1.0 - model.shootout_a
    return MatchOdds(
        team1=OutcomeOdds.from_probability(team1),
        team2=OutcomeOdds.from_probability(team2),
        team1_penalties=OutcomeOdds.from_probability(shootout_a),
        team2_penalties=OutcomeOdds.from_probability(shootout_b),
        penalty_probability=reached,
        is_knockout=True,
        iterations=iterations,
        converged=converged,
    )


def simulate_match(
    rating_a: float | None,
    rating_b: float | None,
    iterations: int | None = None,
    is_knockout: bool = False,
    rng: SeededRandom | None = None,
    *,
    policy: IterationPolicy = DEFAULT_POLICY,
    early_stopping: bool = True,
) -> MatchOdds | None:
    """Simulate a fixture and return its outcome distribution.

    Returns ``None`` when either rating is missing.  Pass ``rng`` to share a
    random stream (and hence reproducibility) with the caller; otherwise the
    stream is seeded from the two ratings.
    """

    if not rating_a or not rating_b:
        return None

    started = time.perf_counter()
    if rng is None:
        rng = SeededRandom(_rating_seed(rating_a, rating_b))
    model = MatchModel.from_ratings(rating_a, rating_b, is_knockout)
    budget = policy.budget(model.rating_gap, iterations)
    monitor = _ConvergenceMonitor(policy, early_stopping)

    counts: Dict[Outcome, int] = dict.fromkeys(Outcome, 0)
    completed = 0
    converged = False
    while completed < budget:
        counts[model.sample(rng)] += 1
        completed += 1
        if monitor.due(completed) and monitor.update(
            _match_vector(counts, completed, is_knockout)
        ):
            converged = True
            logger.debug(
                "Match simulation converged early at %d iterations (max change: %.2f%%)",
                completed,
                (monitor.max_change or 0.0) * 100,
            )
            break

    elapsed = time.perf_counter() - started
    if elapsed > 0.05:
        logger.info("Match odds simulation: %d iterations in %.0fms", completed, elapsed * 1000)
    return _match_result(model, counts, completed, converged)


# ---------------------------------------------------------------------------
# Group simulation
# ---------------------------------------------------------------------------


def _group_winner(points: Sequence[int], goal_difference: Sequence[int]) -> int:
    """Index of the group winner; earlier teams win remaining ties."""

    best = 0
    for index in range(1, len(points)):
        if points[index] > points[best] or (
            points[index] == points[best] and goal_difference[index] > goal_difference[best]
        ):
            best = index
    return best


def simulate_group_winner(
    ratings: Mapping[str, float | None],
    *,
    rng: SeededRandom | None = None,
    iterations: int | None = None,
    policy: IterationPolicy = DEFAULT_POLICY,
    early_stopping: bool = True,
    ranks: Mapping[str, int | None] | None = None,
    default_rating: float = 1500.0,
) -> GroupWinnerOdds:
    """Simulate a four-team round robin and return group-winner odds.

    Teams are played in sorted identifier order so the result does not depend
    on how the caller ordered them.  Teams without a rating play at
    ``default_rating``.
    """

    if len(ratings) != GROUP_SIZE:
        raise InvalidInputError(f"Must provide exactly {GROUP_SIZE} teams, got {len(ratings)}")

    started = time.perf_counter()
    teams = sorted(ratings)
    resolved = [ratings[team] or default_rating for team in teams]
    if rng is None:
        rng = seeded_random(teams)
    logger.debug("Starting group winner simulation for %s", ", ".join(teams))

    fixtures = [
        (first, second, MatchModel.from_ratings(resolved[first], resolved[second], False))
        for first, second in itertools.combinations(range(GROUP_SIZE), 2)
    ]
    budget = policy.budget(max(resolved) - min(resolved), iterations)
    monitor = _ConvergenceMonitor(policy, early_stopping)

    wins = [0] * GROUP_SIZE
    completed = 0
    converged = False
    while completed < budget:
        points = [0] * GROUP_SIZE
        goal_difference = [0] * GROUP_SIZE
        for first, second, model in fixtures:
            outcome = model.sample(rng)
            if outcome is Outcome.DRAW:
                points[first] += POINTS_FOR_DRAW
                points[second] += POINTS_FOR_DRAW
                continue
            winner, loser = (first, second) if outcome is Outcome.TEAM1 else (second, first)
            margin = int(rng.next() * MAX_GOAL_MARGIN) + 1
            points[winner] += POINTS_FOR_WIN
            goal_difference[winner] += margin
            goal_difference[loser] -= margin
        wins[_group_winner(points, goal_difference)] += 1
        completed += 1
        if monitor.due(completed) and monitor.update([count / completed for count in wins]):
            converged = True
            logger.debug(
                "Group simulation converged early at %d iterations (max change: %.2f%%)",
                completed,
                (monitor.max_change or 0.0) * 100,
            )
            break

    rank_lookup = ranks or {}
    result = GroupWinnerOdds(
        teams={
            team: GroupTeamOdds(
                probability=wins[index] / completed,
                odds=probability_to_american_odds(wins[index] / completed),
                rank=rank_lookup.get(team),
            )
            for index, team in enumerate(teams)
        },
        iterations=completed,
        converged=converged,
    )
    logger.info(
        "Group winner simulation completed: %d iterations in %.0fms",
        completed,
        (time.perf_counter() - started) * 1000,
    )
    return result


__all__ = [
    "CachePayload",
    "DEFAULT_POLICY",
    "GROUP_SIZE",
    "GroupTeamOdds",
    "GroupWinnerOdds",
    "InsufficientRatingDataError",
    "InvalidInputError",
    "IterationPolicy",
    "MatchModel",
    "MatchOdds",
    "Outcome",
    "OutcomeOdds",
    "expected_score",
    "payload_adapter",
    "simulate_group_winner",
    "simulate_match",
]
