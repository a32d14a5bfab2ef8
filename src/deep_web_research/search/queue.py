from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from deep_web_research.config import settings
from deep_web_research.core.errors import BotChallengeError, InputValidationError
from deep_web_research.core.state import SearchResult, utc_now_iso
from deep_web_research.observability.prometheus_metrics import record_queue_event
from deep_web_research.utils import get_logger
from deep_web_research.utils.rate_limiter import AsyncRateLimiter, search_queue_rate_limiter
from deep_web_research.utils.retry import RetryPolicy

SearchExecutor = Callable[[str], Awaitable[list[SearchResult]]]

CANCELLED_MESSAGE = "Cancelled by user"


class QueueStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class QueueEventType(StrEnum):
    ITEM_ADDED = "item_added"
    ITEM_STARTED = "item_started"
    ITEM_COMPLETED = "item_completed"
    ITEM_FAILED = "item_failed"
    ITEM_RETRYING = "item_retrying"
    ITEM_CANCELLED = "item_cancelled"
    QUEUE_COMPLETED = "queue_completed"


@dataclass(slots=True)
class QueueItem:
    id: str
    query: str
    status: QueueStatus = QueueStatus.PENDING
    results: list[SearchResult] = field(default_factory=list)
    error: str | None = None
    retry_count: int = 0
    created_at: str = field(default_factory=utc_now_iso)
    history: list[tuple[QueueStatus, str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.status, self.created_at))

    def transition(self, status: QueueStatus) -> None:
        self.status = status
        self.history.append((status, utc_now_iso()))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "query": self.query,
            "status": str(self.status),
            "retryCount": self.retry_count,
            "createdAt": self.created_at,
            "history": [{"status": str(status), "at": at} for status, at in self.history],
        }
        if self.results:
            payload["results"] = [result.to_dict() for result in self.results]
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class QueueSnapshot:
    total_items: int
    pending: int
    in_progress: int
    completed: int
    failed: int
    current_item: QueueItem | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalItems": self.total_items,
            "pending": self.pending,
            "inProgress": self.in_progress,
            "completed": self.completed,
            "failed": self.failed,
            "currentItem": self.current_item.to_dict() if self.current_item else None,
        }


@dataclass(slots=True)
class QueueEvent:
    type: QueueEventType
    item: QueueItem | None = None
    snapshot: QueueSnapshot | None = None
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": str(self.type),
            "item": self.item.to_dict() if self.item else None,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "timestamp": self.timestamp,
        }


class SearchQueue:
    """Asynchronous intake for search queries.

    A single consumer task drains pending items under a token-bucket limiter
    and retries failures with ``2 ** retry_count`` second backoff. Observers
    read lifecycle events from channels returned by :meth:`subscribe`.
    """

    def __init__(
        self,
        executor: SearchExecutor,
        *,
        limiter: AsyncRateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.executor = executor
        self.limiter = limiter or search_queue_rate_limiter()
        self.retry_policy = retry_policy or RetryPolicy(
            retries=settings.runtime.max_retries if max_retries is None else max_retries,
            give_up_on=(BotChallengeError, InputValidationError),
        )
        self._items: list[QueueItem] = []
        self._subscribers: list[asyncio.Queue[QueueEvent]] = []
        self._consumer: asyncio.Task[None] | None = None
        self.logger = get_logger(__name__)

    # -- intake -----------------------------------------------------------

    def add_search(self, query: str) -> str:
        query = (query or "").strip()
        if not query:
            raise InputValidationError("Search query must not be empty")
        item = QueueItem(id=f"search_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}", query=query)
        self._items.append(item)
        self._publish(QueueEventType.ITEM_ADDED, item)
        self._ensure_consumer()
        return item.id

    def add_batch(self, queries: Iterable[str]) -> list[str]:
        return [self.add_search(query) for query in queries]

    # -- observation ------------------------------------------------------

    def subscribe(self) -> asyncio.Queue[QueueEvent]:
        channel: asyncio.Queue[QueueEvent] = asyncio.Queue()
        self._subscribers.append(channel)
        return channel

    def unsubscribe(self, channel: asyncio.Queue[QueueEvent]) -> None:
        if channel in self._subscribers:
            self._subscribers.remove(channel)

    def get(self, item_id: str) -> QueueItem | None:
        return next((item for item in self._items if item.id == item_id), None)

    def get_status(self) -> QueueSnapshot:
        counts = {status: 0 for status in QueueStatus}
        for item in self._items:
            counts[item.status] += 1
        return QueueSnapshot(
            total_items=len(self._items),
            pending=counts[QueueStatus.PENDING],
            in_progress=counts[QueueStatus.IN_PROGRESS],
            completed=counts[QueueStatus.COMPLETED],
            failed=counts[QueueStatus.FAILED],
            current_item=next((item for item in self._items if item.status is QueueStatus.IN_PROGRESS), None),
        )

    @property
    def is_running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    # -- control ----------------------------------------------------------

    def cancel(self, item_id: str | None = None) -> bool:
        """Cancel one pending item, or every pending item when ``item_id`` is None."""
        targets = [
            item
            for item in self._items
            if item.status is QueueStatus.PENDING and (item_id is None or item.id == item_id)
        ]
        for item in targets:
            item.error = CANCELLED_MESSAGE
            item.transition(QueueStatus.FAILED)
            self._publish(QueueEventType.ITEM_CANCELLED, item)
        if targets:
            self.logger.info("search_queue.cancelled", count=len(targets), item_id=item_id)
        return bool(targets)

    def clear_completed(self) -> int:
        before = len(self._items)
        self._items = [
            item for item in self._items if item.status not in (QueueStatus.COMPLETED, QueueStatus.FAILED)
        ]
        return before - len(self._items)

    async def join(self) -> None:
        """Wait until the consumer has drained every pending item."""
        while self.is_running:
            await asyncio.wait({self._consumer})

    async def close(self) -> None:
        self.cancel()
        if self._consumer is not None and not self._consumer.done():
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None

    # -- consumption ------------------------------------------------------

    def _ensure_consumer(self) -> None:
        if self.is_running:
            return
        self._consumer = asyncio.get_running_loop().create_task(self._consume())

    def _next_pending(self) -> QueueItem | None:
        return next((item for item in self._items if item.status is QueueStatus.PENDING), None)

    async def _consume(self) -> None:
        while self._next_pending() is not None:
            await self.limiter.acquire()
            item = self._next_pending()
            if item is None:
                break
            await self._process(item)
        self._publish(QueueEventType.QUEUE_COMPLETED, None)
        snapshot = self.get_status()
        self.logger.info(
            "search_queue.drained", completed=snapshot.completed, failed=snapshot.failed, total=snapshot.total_items
        )

    async def _process(self, item: QueueItem) -> None:
        item.transition(QueueStatus.IN_PROGRESS)
        self._publish(QueueEventType.ITEM_STARTED, item)
        attempts = 0

        async def attempt() -> list[SearchResult]:
            nonlocal attempts
            attempts += 1
            if attempts > 1:
                # the first attempt already holds the consumer's token
                await self.limiter.acquire()
            return await self.executor(item.query)

        def on_retry(attempt_number: int, wait: float, exc: BaseException | None) -> None:
            item.retry_count = attempt_number
            item.error = str(exc) if exc else None
            self._publish(QueueEventType.ITEM_RETRYING, item)

        try:
            item.results = await self.retry_policy.call(attempt, on_retry=on_retry)
        except Exception as exc:
            item.error = str(exc) or exc.__class__.__name__
            item.transition(QueueStatus.FAILED)
            self.logger.warning("search_queue.item.failed", item_id=item.id, query=item.query, error=item.error)
            self._publish(QueueEventType.ITEM_FAILED, item)
            return

        item.error = None
        item.transition(QueueStatus.COMPLETED)
        self._publish(QueueEventType.ITEM_COMPLETED, item)

    def _publish(self, event_type: QueueEventType, item: QueueItem | None) -> None:
        event = QueueEvent(type=event_type, item=item, snapshot=self.get_status())
        record_queue_event(str(event_type))
        for channel in self._subscribers:
            channel.put_nowait(event)
