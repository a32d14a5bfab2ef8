from __future__ import annotations
import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from deep_web_research.utils import get_logger
T = TypeVar("T")

RetryHook = Callable[[int, float, BaseException | None], None]


class RetryPolicy:
    """Exponential backoff policy: the n-th retry waits ``base ** n`` seconds."""

    def __init__(
        self,
        *,
        retries: int = 3,
        base: float = 2.0,
        max_wait: float = 60.0,
        retry_exceptions: tuple[type[BaseException], ...] = (Exception,),
        give_up_on: tuple[type[BaseException], ...] = (),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.retries = retries
        self.base = base
        self.max_wait = max_wait
        self.retry_exceptions = retry_exceptions
        self.give_up_on = give_up_on
        self.sleep = sleep
        self.logger = get_logger(__name__)

    def backoff_seconds(self, retry_count: int) -> float:
        return min(self.base ** retry_count, self.max_wait)

    def _should_retry(self, exc: BaseException) -> bool:
        if self.give_up_on and isinstance(exc, self.give_up_on):
            return False
        return isinstance(exc, self.retry_exceptions)

    def _before_sleep(self, on_retry: RetryHook | None) -> Callable[[RetryCallState], None]:
        def hook(retry_state: RetryCallState) -> None:
            wait = retry_state.next_action.sleep if retry_state.next_action else 0.0
            exception = retry_state.outcome.exception() if retry_state.outcome else None
            self.logger.warning(
                "retry.backoff",
                attempt=retry_state.attempt_number,
                wait=wait,
                last_exception=str(exception) if exception else None,
            )
            if on_retry is not None:
                on_retry(retry_state.attempt_number, wait, exception)

        return hook

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        on_retry: RetryHook | None = None,
        **kwargs: Any,
    ) -> T:
        """Await ``func`` under the policy; the last exception is re-raised."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.retries + 1),
            # attempt_number starts at 1, so multiplier=base yields base ** retry_count
            wait=wait_exponential(multiplier=self.base, exp_base=self.base, max=self.max_wait),
            retry=retry_if_exception(self._should_retry),
            before_sleep=self._before_sleep(on_retry),
            sleep=self.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await func(*args, **kwargs)
        raise RuntimeError("retry loop exited without a result")  # pragma: no cover
