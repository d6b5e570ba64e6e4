"""World Cup odds engine.

The building blocks are deliberately small: a reproducible random stream
(:mod:`.rng`), the FIFA rating table (:mod:`.ratings`), the match and group
simulators (:mod:`.models`), the two-tier cache (:mod:`.cache`) and the
:class:`OddsService` that ties them together.
"""

from .alerts import AlertManager, AlertSink, LoggingAlertSink
from .cache import (
    CacheClearError,
    CacheKind,
    CacheManager,
    CacheStats,
    ClearResult,
    MemoryCache,
    OddsCacheStore,
    clear_cache,
    derive_cache_key,
    get_cache_manager,
)
from .logging import configure_logging
from .models import (
    GroupTeamOdds,
    GroupWinnerOdds,
    InsufficientRatingDataError,
    InvalidInputError,
    IterationPolicy,
    MatchModel,
    MatchOdds,
    OutcomeOdds,
    simulate_group_winner,
    simulate_match,
)
from .ratings import RatingTable, TeamRanking, default_rating_table, load_rankings
from .rng import SeededRandom, seed_from_identifiers, seeded_random
from .scheduler import ExpirySweeper, ScheduledJob, Scheduler
from .service import OddsService
from .utils import (
    american_odds_to_implied_probability,
    american_to_decimal,
    decimal_to_american,
    probability_to_american_odds,
)

__all__ = [
    "AlertManager",
    "AlertSink",
    "CacheClearError",
    "CacheKind",
    "CacheManager",
    "CacheStats",
    "ClearResult",
    "ExpirySweeper",
    "GroupTeamOdds",
    "GroupWinnerOdds",
    "InsufficientRatingDataError",
    "InvalidInputError",
    "IterationPolicy",
    "LoggingAlertSink",
    "MatchModel",
    "MatchOdds",
    "MemoryCache",
    "OddsCacheStore",
    "OddsService",
    "OutcomeOdds",
    "RatingTable",
    "ScheduledJob",
    "Scheduler",
    "SeededRandom",
    "TeamRanking",
    "american_odds_to_implied_probability",
    "american_to_decimal",
    "clear_cache",
    "configure_logging",
    "decimal_to_american",
    "default_rating_table",
    "derive_cache_key",
    "get_cache_manager",
    "load_rankings",
    "probability_to_american_odds",
    "seed_from_identifiers",
    "seeded_random",
    "simulate_group_winner",
    "simulate_match",
]
