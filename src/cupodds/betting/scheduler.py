"""Asynchronous interval jobs used to sweep expired cache entries."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from .alerts import AlertManager
from .cache import CacheManager

logger = logging.getLogger(__name__)


AsyncCallable = Callable[[], Awaitable[Any]]


@dataclasses.dataclass(slots=True)
class ScheduledJob:
    """A coroutine factory executed every ``interval`` seconds."""

    name: str | None
    action: AsyncCallable
    interval: float
    jitter: float = 0.0
    retries: int = 0
    retry_backoff: float = 2.0
    runs: int = 0
    failures: int = 0

    async def _pause(self, stop_event: asyncio.Event, delay: float) -> bool:
        """Wait ``delay`` seconds; ``True`` when the stop event fired."""

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self, stop_event: asyncio.Event) -> None:
        """Execute ``action`` until ``stop_event`` is set."""

        attempt = 0
        while not stop_event.is_set():
            try:
                await self.action()
                self.runs += 1
                attempt = 0
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failures += 1
                attempt += 1
                logger.exception("Scheduled job %s failed", self.name)
                if attempt <= self.retries:
                    if await self._pause(stop_event, max(0.0, self.retry_backoff) * attempt):
                        return
                    continue
                attempt = 0
            delay = max(0.0, self.interval)
            if delay == 0:
                await asyncio.sleep(0)
                continue
            if self.jitter:
                delay = max(0.0, delay + random.uniform(-self.jitter, self.jitter))
            if await self._pause(stop_event, delay):
                return


class Scheduler:
    """Run registered jobs concurrently until :meth:`stop` is called."""

    def __init__(self) -> None:
        self._jobs: list[ScheduledJob] = []
        self._stop_event = asyncio.Event()

    @property
    def jobs(self) -> Sequence[ScheduledJob]:
        return tuple(self._jobs)

    def add_job(self, action: AsyncCallable, *, interval: float, **options: Any) -> ScheduledJob:
        """Register ``action``; ``options`` are passed on to :class:`ScheduledJob`."""

        name = options.pop("name", None) or getattr(action, "__name__", "scheduled-job")
        job = ScheduledJob(name=name, action=action, interval=interval, **options)
        self._jobs.append(job)
        return job

    def stop(self) -> None:
        self._stop_event.set()

    async def run(self) -> None:
        """Run every job until stopped; cancellation cancels the jobs too."""

        self._stop_event.clear()
        tasks = [asyncio.create_task(job.run(self._stop_event), name=job.name) for job in self._jobs]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


class ExpirySweeper:
    """Periodically delete expired rows from the durable cache."""

    def __init__(
        self,
        cache: CacheManager,
        *,
        interval: float,
        jitter: float = 0.0,
        retries: int = 1,
        alert_manager: AlertManager | None = None,
    ) -> None:
        self.cache = cache
        self.interval = interval
        self.jitter = jitter
        self.retries = retries
        self.alert_manager = alert_manager
        self.total_removed = 0

    async def sweep_once(self) -> int:
        removed = await self.cache.sweep_expired()
        self.total_removed += removed
        if self.alert_manager is not None:
            self.alert_manager.notify_sweep(removed)
        return removed

    def register(self, scheduler: Scheduler) -> ScheduledJob:
        return scheduler.add_job(
            self.sweep_once,
            interval=self.interval,
            jitter=self.jitter,
            retries=self.retries,
            name="cache-expiry-sweep",
        )


__all__ = [
    "ExpirySweeper",
    "ScheduledJob",
    "Scheduler",
]
