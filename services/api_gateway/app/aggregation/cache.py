from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from loguru import logger

from ..metrics import record_cache_lookup
from .errors import AggregateUnavailableError
from .models import AggregateDocument


@dataclass(frozen=True)
class CacheEntry:
    document: AggregateDocument
    computed_at: float

    def is_fresh(self, now: float, ttl: float) -> bool:
        return now - self.computed_at < ttl


def _consume_exception(task: asyncio.Task) -> None:
    # Every caller may have been cancelled before a failed rebuild finished.
    if not task.cancelled():
        task.exception()


class AggregateCache:
    """Holds the latest aggregate and rebuilds it at most once at a time.

    Callers that find the entry missing or expired all await the same
    in-flight rebuild task. If the rebuild itself blows up, the previous
    aggregate is served and the next attempt waits ``retry_interval``
    seconds; only a cold cache turns the failure into
    ``AggregateUnavailableError``.
    """

    def __init__(
        self,
        build: Callable[[], Awaitable[AggregateDocument]],
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        retry_interval: float = 30.0,
    ) -> None:
        self._build = build
        self.ttl = ttl
        self.retry_interval = retry_interval
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._retry_at: float | None = None
        self._inflight: asyncio.Task[AggregateDocument] | None = None

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def invalidate(self) -> None:
        self._entry = None
        self._retry_at = None

    def _servable(self, now: float) -> bool:
        entry = self._entry
        if entry is None:
            return False
        if entry.is_fresh(now, self.ttl):
            return True
        return self._retry_at is not None and now < self._retry_at

    async def get(self, force_refresh: bool = False) -> AggregateDocument:
        if not force_refresh and self._servable(self._clock()):
            record_cache_lookup("hit")
            return self._entry.document
        if self._inflight is None or self._inflight.done():
            record_cache_lookup("miss")
            self._inflight = asyncio.ensure_future(self._recompute())
            self._inflight.add_done_callback(_consume_exception)
        # Shielded so a cancelled caller does not cancel the rebuild for everyone else.
        return await asyncio.shield(self._inflight)

    async def _recompute(self) -> AggregateDocument:
        started = self._clock()
        try:
            document = await self._build()
        except Exception as exc:
            stale = self._entry
            if stale is not None:
                self._retry_at = self._clock() + self.retry_interval
                logger.opt(exception=exc).error(
                    f"Aggregate rebuild failed; serving the previous document, retrying in {self.retry_interval:g}s"
                )
                record_cache_lookup("stale")
                return stale.document
            logger.opt(exception=exc).error("Aggregate rebuild failed and nothing is cached")
            record_cache_lookup("unavailable")
            raise AggregateUnavailableError("API documentation is temporarily unavailable") from exc
        self._entry = CacheEntry(document=document, computed_at=self._clock())
        self._retry_at = None
        logger.info(f"Aggregate document rebuilt in {(self._clock() - started) * 1000:.1f}ms")
        return document
