from __future__ import annotations

import pytest

from conftest import FakeClock
from deep_web_research.utils.rate_limiter import AsyncRateLimiter, search_queue_rate_limiter


def test_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        AsyncRateLimiter(0, 1.0)
    with pytest.raises(ValueError):
        AsyncRateLimiter(1, 0)


@pytest.mark.asyncio
async def test_burst_then_wait_for_refill(no_sleep, sleeps):
    limiter = search_queue_rate_limiter(clock=FakeClock(), sleep=no_sleep)

    waits = [await limiter.acquire() for _ in range(4)]

    assert waits[:3] == [0.0, 0.0, 0.0]
    assert waits[3] == pytest.approx(2.0)
    assert sleeps == [pytest.approx(2.0)]


@pytest.mark.asyncio
async def test_tokens_refill_with_elapsed_time(no_sleep, sleeps):
    clock = FakeClock()
    limiter = AsyncRateLimiter(3, 6.0, clock=clock, sleep=no_sleep)
    for _ in range(3):
        await limiter.acquire()

    clock.advance(2.0)
    assert await limiter.acquire() == 0.0

    clock.advance(1.0)
    assert await limiter.acquire() == pytest.approx(1.0)
    assert sleeps == [pytest.approx(1.0)]


@pytest.mark.asyncio
async def test_allowance_never_exceeds_burst(no_sleep):
    clock = FakeClock()
    limiter = AsyncRateLimiter(2, 2.0, clock=clock, sleep=no_sleep)
    clock.advance(60.0)

    assert [await limiter.acquire() for _ in range(2)] == [0.0, 0.0]
    assert await limiter.acquire() == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_async_context_takes_a_token(no_sleep):
    limiter = AsyncRateLimiter(1, 1.0, clock=FakeClock(), sleep=no_sleep)
    async with limiter.async_context():
        pass
    assert limiter.allowance == 0.0
