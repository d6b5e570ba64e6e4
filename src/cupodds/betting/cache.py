"""Two-tier cache for simulated odds.

The durable tier is a SQLite table keyed by the sorted team identifiers and
the match context.  Every read and write runs in a worker thread under a short
timeout: a slow or broken store turns reads into misses and writes into
no-ops, because the simulations can always be recomputed.  Administrative
operations (clear, stats, sweep) propagate their failures instead.

The in-process tier (:class:`MemoryCache`) is a bounded LRU map owned by
whoever creates it, usually :class:`cupodds.betting.service.OddsService`.
"""

from __future__ import annotations

import asyncio
import collections
import contextlib
import dataclasses
import datetime as dt
import enum
import json
import logging
import os
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Sequence, Tuple

from ..config import CupOddsConfig, get_config
from .models import GroupWinnerOdds, MatchOdds, payload_adapter

logger = logging.getLogger(__name__)

CachePayloadValue = GroupWinnerOdds | MatchOdds

KEY_DELIMITER = "|"
DEFAULT_TTL = dt.timedelta(days=7)
DEFAULT_READ_TIMEOUT = 0.2
DEFAULT_WRITE_TIMEOUT = 0.5


class CacheKind(str, enum.Enum):
    """Kinds of distribution stored in the cache."""

    GROUP_WINNER = "group-winner"
    MATCH_ODDS = "match-odds"


class CacheClearError(RuntimeError):
    """Raised when the durable cache cannot be cleared."""


def derive_cache_key(identifiers: Iterable[str], is_knockout: bool = False) -> str:
    """Return the cache key for a set of teams in a match context.

    The identifiers are sorted, so ``["B", "A"]`` and ``["A", "B"]`` share a
    key, while group-stage and knockout contexts never do.
    """

    identifiers = sorted(identifiers)
    for identifier in identifiers:
        if KEY_DELIMITER in identifier:
            raise ValueError(f"Identifier {identifier!r} contains the key delimiter")
    context = "knockout" if is_knockout else "group"
    return f"{KEY_DELIMITER.join(identifiers)}_{context}"


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _timestamp(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc).isoformat(timespec="microseconds")


@dataclasses.dataclass(slots=True)
class CacheEntry:
    cache_key: str
    kind: CacheKind
    payload: CachePayloadValue
    teams: Sequence[str]
    is_knockout: bool
    expires_at: dt.datetime
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class CacheStats:
    total: int
    active: int
    expired: int
    by_kind: Mapping[str, int]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "expired": self.expired,
            "byType": dict(self.by_kind),
        }


@dataclasses.dataclass(frozen=True, slots=True)
class ClearResult:
    deleted_count: int
    kind: str

    def as_dict(self) -> Dict[str, Any]:
        return {"deletedCount": self.deleted_count, "type": self.kind}


# ---------------------------------------------------------------------------
# Durable tier
# ---------------------------------------------------------------------------


class OddsCacheStore:
    """Synchronous SQLite persistence for cache entries.

    Each call opens and closes its own connection so that a call abandoned by
    a timeout still releases its resources when it finishes.
    """

    def __init__(self, storage_path: str | os.PathLike[str]) -> None:
        self.storage_path = Path(storage_path)
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.storage_path)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS odds_cache (
                    row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    cache_key TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    teams TEXT NOT NULL,
                    is_knockout INTEGER NOT NULL DEFAULT 0,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (cache_key, kind)
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS odds_cache_expires_at ON odds_cache (expires_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS odds_cache_kind_expires_at "
                "ON odds_cache (kind, expires_at)"
            )

    def find_active(
        self, cache_key: str, kind: CacheKind, now: dt.datetime
    ) -> CacheEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT payload, teams, is_knockout, expires_at, created_at, updated_at
                FROM odds_cache
                WHERE cache_key = ? AND kind = ? AND expires_at > ?
                """,
                (cache_key, kind.value, _timestamp(now)),
            ).fetchone()
        if row is None:
            return None
        payload, teams, is_knockout, expires_at, created_at, updated_at = row
        return CacheEntry(
            cache_key=cache_key,
            kind=kind,
            payload=payload_adapter.validate_json(payload),
            teams=tuple(json.loads(teams)),
            is_knockout=bool(is_knockout),
            expires_at=dt.datetime.fromisoformat(expires_at),
            created_at=dt.datetime.fromisoformat(created_at),
            updated_at=dt.datetime.fromisoformat(updated_at),
        )

    def upsert(self, entry: CacheEntry, now: dt.datetime) -> None:
        stamp = _timestamp(now)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO odds_cache(
                    cache_key,
                    kind,
                    payload,
                    teams,
                    is_knockout,
                    expires_at,
                    created_at,
                    updated_at
                ) VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(cache_key, kind) DO UPDATE SET
                    payload=excluded.payload,
                    teams=excluded.teams,
                    is_knockout=excluded.is_knockout,
                    expires_at=excluded.expires_at,
                    updated_at=excluded.updated_at
                """,
                (
                    entry.cache_key,
                    entry.kind.value,
                    entry.payload.model_dump_json(),
                    json.dumps(list(entry.teams)),
                    int(entry.is_knockout),
                    _timestamp(entry.expires_at),
                    stamp,
                    stamp,
                ),
            )

    def delete(self, kind: CacheKind | None = None) -> int:
        with self._connect() as conn:
            if kind is None:
                cursor = conn.execute("DELETE FROM odds_cache")
            else:
                cursor = conn.execute("DELETE FROM odds_cache WHERE kind = ?", (kind.value,))
            return cursor.rowcount

    def delete_expired(self, now: dt.datetime) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM odds_cache WHERE expires_at <= ?", (_timestamp(now),)
            )
            return cursor.rowcount

    def stats(self, now: dt.datetime) -> CacheStats:
        with self._connect() as conn:
            (total,) = conn.execute("SELECT COUNT(*) FROM odds_cache").fetchone()
            (expired,) = conn.execute(
                "SELECT COUNT(*) FROM odds_cache WHERE expires_at <= ?", (_timestamp(now),)
            ).fetchone()
            by_kind = {
                kind: count
                for kind, count in conn.execute(
                    "SELECT kind, COUNT(*) FROM odds_cache GROUP BY kind ORDER BY kind"
                )
            }
        return CacheStats(total=total, active=total - expired, expired=expired, by_kind=by_kind)


class CacheManager:
    """Bounded-latency asynchronous front end for :class:`OddsCacheStore`."""

    def __init__(
        self,
        store: OddsCacheStore,
        *,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        ttl: dt.timedelta = DEFAULT_TTL,
        clock: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.ttl = ttl
        self._clock = clock

    @classmethod
    def from_config(cls, settings: CupOddsConfig | None = None) -> "CacheManager":
        settings = settings or get_config()
        return cls(
            OddsCacheStore(settings.cache_path),
            read_timeout=settings.read_timeout,
            write_timeout=settings.write_timeout,
            ttl=dt.timedelta(days=settings.cache_ttl_days),
        )

    async def get(
        self,
        identifiers: Sequence[str],
        kind: CacheKind | str,
        is_knockout: bool = False,
    ) -> CachePayloadValue | None:
        """Return the cached payload or ``None`` on miss, timeout or error."""

        kind = CacheKind(kind)
        cache_key = derive_cache_key(identifiers, is_knockout)
        started = time.perf_counter()
        try:
            entry = await asyncio.wait_for(
                asyncio.to_thread(self.store.find_active, cache_key, kind, self._clock()),
                timeout=self.read_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Cache lookup for %s timed out after %.0fms; treating as miss",
                kind.value,
                (time.perf_counter() - started) * 1000,
            )
            return None
        except Exception as exc:
            logger.warning("Cache lookup for %s failed: %s", kind.value, exc)
            return None

        elapsed_ms = (time.perf_counter() - started) * 1000
        if entry is None:
            logger.debug("Cache MISS for %s %s in %.0fms", kind.value, cache_key, elapsed_ms)
            return None
        if entry.payload.kind != kind.value:
            logger.warning("Cache entry %s holds a %s payload", cache_key, entry.payload.kind)
            return None
        logger.debug("Cache HIT for %s %s in %.0fms", kind.value, cache_key, elapsed_ms)
        return entry.payload

    async def set(
        self,
        identifiers: Sequence[str],
        kind: CacheKind | str,
        payload: CachePayloadValue,
        is_knockout: bool = False,
        ttl: dt.timedelta | None = None,
    ) -> bool:
        """Upsert ``payload``; return ``False`` instead of raising on failure."""

        kind = CacheKind(kind)
        now = self._clock()
        entry = CacheEntry(
            cache_key=derive_cache_key(identifiers, is_knockout),
            kind=kind,
            payload=payload,
            teams=tuple(identifiers),
            is_knockout=is_knockout,
            expires_at=now + (ttl if ttl is not None else self.ttl),
        )
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.store.upsert, entry, now),
                timeout=self.write_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Cache store for %s timed out; skipping durable cache", kind.value)
            return False
        except Exception as exc:
            logger.warning("Error storing %s in cache: %s", kind.value, exc)
            return False
        logger.debug(
            "Cache STORED for %s: %s (expires: %s)",
            kind.value,
            entry.cache_key,
            entry.expires_at.isoformat(),
        )
        return True

    async def clear(self, kind: CacheKind | str | None = None) -> ClearResult:
        """Delete every entry, or every entry of ``kind``."""

        resolved = CacheKind(kind) if kind is not None else None
        try:
            deleted = await asyncio.to_thread(self.store.delete, resolved)
        except sqlite3.Error as exc:
            raise CacheClearError(f"Failed to clear odds cache: {exc}") from exc
        label = resolved.value if resolved is not None else "all"
        logger.info("Cache CLEARED: %d entries deleted (type: %s)", deleted, label)
        return ClearResult(deleted_count=deleted, kind=label)

    async def stats(self) -> CacheStats:
        return await asyncio.to_thread(self.store.stats, self._clock())

    async def sweep_expired(self) -> int:
        """Physically remove entries whose expiry has passed."""

        deleted = await asyncio.to_thread(self.store.delete_expired, self._clock())
        logger.info("Expired cache cleaned: %d entries", deleted)
        return deleted


# ---------------------------------------------------------------------------
# In-process tier
# ---------------------------------------------------------------------------


class MemoryCache:
    """Bounded least-recently-used cache keyed like the durable tier."""

    def __init__(self, max_entries: int = 512) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must be non-negative")
        self.max_entries = max_entries
        self._entries: "collections.OrderedDict[Tuple[str, str], CachePayloadValue]" = (
            collections.OrderedDict()
        )

    def __len__(self) -> int:
        return len(self._entries)

    def get(
        self, identifiers: Sequence[str], kind: CacheKind | str, is_knockout: bool = False
    ) -> CachePayloadValue | None:
        key = (derive_cache_key(identifiers, is_knockout), CacheKind(kind).value)
        payload = self._entries.get(key)
        if payload is not None:
            self._entries.move_to_end(key)
        return payload

    def set(
        self,
        identifiers: Sequence[str],
        kind: CacheKind | str,
        payload: CachePayloadValue,
        is_knockout: bool = False,
    ) -> None:
        if self.max_entries == 0:
            return
        key = (derive_cache_key(identifiers, is_knockout), CacheKind(kind).value)
        self._entries[key] = payload
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self, kind: CacheKind | str | None = None) -> int:
        if kind is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        value = CacheKind(kind).value
        doomed = [key for key in self._entries if key[1] == value]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def stats(self) -> Dict[str, Any]:
        by_kind: Dict[str, list[str]] = {kind.value: [] for kind in CacheKind}
        for cache_key, kind in self._entries:
            by_kind[kind].append(cache_key)
        return {
            "entries": len(self._entries),
            "maxEntries": self.max_entries,
            "byType": {
                kind: {"count": len(keys), "keys": keys} for kind, keys in by_kind.items()
            },
        }


def get_cache_manager(settings: CupOddsConfig | None = None) -> CacheManager:
    """Build a :class:`CacheManager` from the active configuration."""

    return CacheManager.from_config(settings)


async def clear_cache(kind: CacheKind | str | None = None) -> ClearResult:
    """Clear the configured durable cache."""

    return await get_cache_manager().clear(kind)


__all__ = [
    "CacheClearError",
    "CacheEntry",
    "CacheKind",
    "CacheManager",
    "CacheStats",
    "ClearResult",
    "MemoryCache",
    "OddsCacheStore",
    "clear_cache",
    "derive_cache_key",
    "get_cache_manager",
]
