from __future__ import annotations

import asyncio

import pytest

from services.api_gateway.app.aggregation import (
    AggregateCache,
    AggregateDocument,
    AggregateUnavailableError,
    CacheRecomputeError,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingBuild:
    """Stands in for the fetch/transform/merge pipeline."""

    def __init__(self, delay: float = 0.0) -> None:
        self.calls = 0
        self.delay = delay
        self.fail_with: Exception | None = None

    async def __call__(self) -> AggregateDocument:
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return AggregateDocument(
            openapi="3.0.1",
            info={"title": "gateway", "version": str(self.calls)},
            paths={},
            components={},
        )


@pytest.mark.asyncio
async def test_two_gets_within_ttl_build_once_and_return_the_same_document():
    build = CountingBuild()
    cache = AggregateCache(build, ttl=300, clock=FakeClock())

    first = await cache.get()
    second = await cache.get()

    assert build.calls == 1
    assert first is second


@pytest.mark.asyncio
async def test_expired_entry_is_rebuilt():
    build = CountingBuild()
    clock = FakeClock()
    cache = AggregateCache(build, ttl=300, clock=clock)

    first = await cache.get()
    clock.advance(299)
    assert await cache.get() is first
    clock.advance(1)
    second = await cache.get()

    assert build.calls == 2
    assert second is not first
    assert second.info["version"] == "2"


@pytest.mark.asyncio
async def test_concurrent_callers_on_a_cold_cache_share_one_rebuild():
    build = CountingBuild(delay=0.05)
    cache = AggregateCache(build, ttl=300, clock=FakeClock())

    results = await asyncio.gather(*(cache.get() for _ in range(25)))

    assert build.calls == 1
    assert all(result is results[0] for result in results)


@pytest.mark.asyncio
async def test_concurrent_callers_on_an_expired_cache_share_one_rebuild():
    build = CountingBuild(delay=0.05)
    clock = FakeClock()
    cache = AggregateCache(build, ttl=300, clock=clock)
    stale = await cache.get()
    clock.advance(301)

    results = await asyncio.gather(*(cache.get() for _ in range(25)))

    assert build.calls == 2
    assert all(result is results[0] for result in results)
    assert results[0] is not stale


@pytest.mark.asyncio
async def test_force_refresh_rebuilds_a_fresh_entry():
    build = CountingBuild()
    cache = AggregateCache(build, ttl=300, clock=FakeClock())
    await cache.get()
    await cache.get(force_refresh=True)
    assert build.calls == 2


@pytest.mark.asyncio
async def test_failed_rebuild_serves_the_last_good_document():
    build = CountingBuild()
    clock = FakeClock()
    cache = AggregateCache(build, ttl=300, clock=clock, retry_interval=30)
    good = await cache.get()

    clock.advance(400)
    build.fail_with = RuntimeError("merger exploded")
    served = await cache.get()

    assert served is good
    assert build.calls == 2
    # Inside the retry interval the previous document is served without rebuilding.
    clock.advance(29)
    assert (await cache.get()) is good
    assert build.calls == 2

    build.fail_with = None
    clock.advance(1)
    assert (await cache.get()) is not good
    assert build.calls == 3


@pytest.mark.asyncio
async def test_force_refresh_ignores_the_retry_interval():
    build = CountingBuild()
    clock = FakeClock()
    cache = AggregateCache(build, ttl=300, clock=clock, retry_interval=30)
    await cache.get()
    clock.advance(400)
    build.fail_with = RuntimeError("boom")
    await cache.get()

    build.fail_with = None
    refreshed = await cache.get(force_refresh=True)

    assert build.calls == 3
    assert refreshed.info["version"] == "3"


@pytest.mark.asyncio
async def test_failed_rebuild_with_every_caller_cancelled_is_still_consumed():
    build = CountingBuild(delay=0.05)
    build.fail_with = RuntimeError("boom")
    cache = AggregateCache(build, ttl=300, clock=FakeClock())

    caller = asyncio.ensure_future(cache.get())
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller
    inflight = cache._inflight
    await asyncio.wait([inflight])

    # The done callback already retrieved the exception, so asyncio has nothing to report.
    assert inflight._log_traceback is False
    assert isinstance(inflight.exception(), AggregateUnavailableError)


@pytest.mark.asyncio
async def test_failed_rebuild_without_cached_document_is_unavailable():
    build = CountingBuild(delay=0.01)
    build.fail_with = RuntimeError("boom")
    cache = AggregateCache(build, ttl=300, clock=FakeClock())

    results = await asyncio.gather(*(cache.get() for _ in range(5)), return_exceptions=True)

    assert build.calls == 1
    assert all(isinstance(result, AggregateUnavailableError) for result in results)
    assert isinstance(results[0], CacheRecomputeError)
    assert cache.entry is None


@pytest.mark.asyncio
async def test_invalidate_drops_the_entry():
    build = CountingBuild()
    cache = AggregateCache(build, ttl=300, clock=FakeClock())
    await cache.get()
    cache.invalidate()
    assert cache.entry is None
    await cache.get()
    assert build.calls == 2
