from __future__ import annotations
import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable
from deep_web_research.utils import get_logger

SleepFn = Callable[[float], Awaitable[None]]


class AsyncRateLimiter:
    """Token bucket: ``max_calls`` burst, refilled evenly over ``period_seconds``."""

    def __init__(
        self,
        max_calls: int,
        period_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_calls < 1 or period_seconds <= 0:
            raise ValueError("max_calls must be >= 1 and period_seconds > 0")
        self.max_calls = max_calls
        self.period_seconds = period_seconds
        self.allowance = float(max_calls)
        self._clock = clock
        self._sleep = sleep
        self.last_check = clock()
        self.lock = asyncio.Lock()
        self.logger = get_logger(__name__)

    @property
    def refill_interval(self) -> float:
        return self.period_seconds / self.max_calls

    async def acquire(self) -> float:
        """Take one token, waiting for a refill when the bucket is empty.

        Returns the number of seconds spent waiting.
        """
        async with self.lock:
            current = self._clock()
            time_passed = current - self.last_check
            self.last_check = current
            self.allowance += time_passed * (self.max_calls / self.period_seconds)
            if self.allowance > self.max_calls:
                self.allowance = float(self.max_calls)

            if self.allowance < 1.0:
                wait_time = (1.0 - self.allowance) * self.refill_interval
                self.logger.debug("async_ratelimiter.sleep", wait_seconds=round(wait_time, 3))
                await self._sleep(wait_time)
                self.last_check = self._clock()
                self.allowance = 0.0
                return wait_time

            self.allowance -= 1.0
            return 0.0

    @asynccontextmanager
    async def async_context(self) -> AsyncIterator[None]:
        await self.acquire()
        yield


def search_queue_rate_limiter(**kwargs) -> AsyncRateLimiter:
    """Burst of three searches, then one every two seconds."""
    return AsyncRateLimiter(max_calls=3, period_seconds=6.0, **kwargs)
