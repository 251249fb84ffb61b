from __future__ import annotations

import asyncio

import pytest

from conftest import RecordingSleep
from webgen.services.rate_limit_service import RateLimitExhaustedError, RateLimitService


def make_service(sleep: RecordingSleep, **overrides) -> RateLimitService:
    options = dict(limit=2, interval_seconds=10, backoff_seconds=11, max_retries=2)
    options.update(overrides)
    return RateLimitService(sleep=sleep, clock=sleep.clock, **options)


def test_acquire_within_limit_does_not_wait():
    sleep = RecordingSleep()
    service = make_service(sleep)

    async def run():
        return [await service.acquire(), await service.acquire()]

    assert asyncio.run(run()) == [1, 1]
    assert sleep.delays == []


def test_excess_acquisition_waits_for_backoff_then_succeeds():
    sleep = RecordingSleep()
    service = make_service(sleep)

    async def run():
        await service.acquire()
        await service.acquire()
        return await service.acquire()

    attempts = asyncio.run(run())

    assert attempts == 2
    assert sleep.delays == [11]


def test_acquire_gives_up_after_max_retries():
    sleep = RecordingSleep()
    # Backoff shorter than the window: every retry is refused again
    service = make_service(sleep, limit=1, interval_seconds=1000, backoff_seconds=5, max_retries=2)

    async def run():
        await service.acquire()
        await service.acquire()

    with pytest.raises(RateLimitExhaustedError) as exc_info:
        asyncio.run(run())

    assert exc_info.value.attempts == 3
    assert sleep.delays == [5, 5]


def test_concurrent_callers_never_bypass_the_limit():
    sleep = RecordingSleep()
    service = make_service(sleep, limit=3, interval_seconds=1000, max_retries=0)

    async def run():
        return await asyncio.gather(
            *(service.acquire() for _ in range(8)),
            return_exceptions=True,
        )

    results = asyncio.run(run())

    granted = [r for r in results if not isinstance(r, Exception)]
    refused = [r for r in results if isinstance(r, RateLimitExhaustedError)]
    assert len(granted) == 3
    assert len(refused) == 5
    assert service.get_stats()["total_granted"] == 3


def test_backoff_uses_fixed_delay():
    sleep = RecordingSleep()
    service = make_service(sleep)

    asyncio.run(service.backoff(1))
    asyncio.run(service.backoff(2))

    assert sleep.delays == [11, 11]


def test_reset_reopens_the_window():
    sleep = RecordingSleep()
    service = make_service(sleep, limit=1, interval_seconds=1000, max_retries=0)

    async def run():
        await service.acquire()
        await service.reset()
        return await service.acquire()

    assert asyncio.run(run()) == 1
