import datetime as dt
from pathlib import Path
from typing import Any, List, Mapping, Tuple

import pytest

from cupodds.betting.alerts import AlertSink
from cupodds.betting.cache import CacheManager, MemoryCache, OddsCacheStore
from cupodds.betting.ratings import RatingTable, TeamRanking
from cupodds.betting.service import OddsService
from cupodds.config import reset_config


class RecordingAlertSink(AlertSink):
    def __init__(self) -> None:
        self.messages: List[Tuple[str, str, Mapping[str, Any] | None]] = []

    def send(
        self,
        subject: str,
        body: str,
        *,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        self.messages.append((subject, body, metadata))


class FakeClock:
    """Manually advanced replacement for the cache clock."""

    def __init__(self, start: dt.datetime) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += dt.timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _fresh_config():
    yield
    reset_config()


@pytest.fixture()
def now() -> dt.datetime:
    return dt.datetime(2026, 6, 11, 19, tzinfo=dt.timezone.utc)


@pytest.fixture()
def clock(now: dt.datetime) -> FakeClock:
    return FakeClock(now)


@pytest.fixture()
def tmp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "odds.sqlite3"


@pytest.fixture()
def store(tmp_db_path: Path) -> OddsCacheStore:
    return OddsCacheStore(tmp_db_path)


@pytest.fixture()
def cache_manager(store: OddsCacheStore, clock: FakeClock) -> CacheManager:
    return CacheManager(store, read_timeout=2.0, write_timeout=2.0, clock=clock)


@pytest.fixture()
def rating_table() -> RatingTable:
    return RatingTable(
        [
            TeamRanking("Alpha", 1877.0, rank=1),
            TeamRanking("Beta", 1500.0, rank=40),
            TeamRanking("Gamma", 1700.0, rank=12),
            TeamRanking("Delta", 1650.0, rank=20, aliases=("Delta United",)),
            TeamRanking("Epsilon", 1420.0, rank=61),
        ]
    )


@pytest.fixture()
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest.fixture()
def service(
    rating_table: RatingTable,
    cache_manager: CacheManager,
    alert_sink: RecordingAlertSink,
) -> OddsService:
    return OddsService(
        rating_table,
        cache_manager,
        memory=MemoryCache(32),
        alert_sink=alert_sink,
    )
