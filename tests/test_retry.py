from __future__ import annotations

import pytest

from deep_web_research.core.errors import BotChallengeError
from deep_web_research.utils.retry import RetryPolicy


class Flaky:
    def __init__(self, failures: int, exc: Exception | None = None) -> None:
        self.failures = failures
        self.exc = exc or RuntimeError("temporary")
        self.calls = 0

    async def __call__(self, value: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc
        return value.upper()


def test_backoff_doubles_and_is_capped():
    policy = RetryPolicy(max_wait=10.0)
    assert [policy.backoff_seconds(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 10.0]


@pytest.mark.asyncio
async def test_recovers_after_transient_failures(no_sleep, sleeps):
    policy = RetryPolicy(retries=3, sleep=no_sleep)
    func = Flaky(failures=2)
    hooks: list[tuple[int, float]] = []

    result = await policy.call(func, "ok", on_retry=lambda attempt, wait, exc: hooks.append((attempt, wait)))

    assert result == "OK"
    assert func.calls == 3
    assert sleeps == [2.0, 4.0]
    assert hooks == [(1, 2.0), (2, 4.0)]


@pytest.mark.asyncio
async def test_reraises_the_last_error_when_exhausted(no_sleep, sleeps):
    policy = RetryPolicy(retries=1, sleep=no_sleep)
    func = Flaky(failures=5)

    with pytest.raises(RuntimeError, match="temporary"):
        await policy.call(func, "x")
    assert func.calls == 2
    assert sleeps == [2.0]


@pytest.mark.asyncio
async def test_gives_up_immediately_on_listed_errors(no_sleep, sleeps):
    policy = RetryPolicy(retries=3, give_up_on=(BotChallengeError,), sleep=no_sleep)
    func = Flaky(failures=1, exc=BotChallengeError("captcha"))

    with pytest.raises(BotChallengeError):
        await policy.call(func, "x")
    assert func.calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_only_listed_exceptions_are_retried(no_sleep):
    policy = RetryPolicy(retries=3, retry_exceptions=(TimeoutError,), sleep=no_sleep)
    func = Flaky(failures=1, exc=KeyError("missing"))

    with pytest.raises(KeyError):
        await policy.call(func, "x")
    assert func.calls == 1
