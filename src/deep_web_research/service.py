"""Operation surface shared by the HTTP front-end and the CLI."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from deep_web_research.analysis import ContentAnalyzer
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables, settings
from deep_web_research.core.errors import InputValidationError
from deep_web_research.core.interfaces import PageFetcher
from deep_web_research.core.orchestrator import ResearchOrchestrator
from deep_web_research.core.session import ResearchOptions
from deep_web_research.extraction import ContentExtractor
from deep_web_research.fetch import BrowserPageFetcher, visit_page
from deep_web_research.search import ParallelSearchDispatcher, SearchQueue, create_browser_dispatcher
from deep_web_research.utils import get_logger
from deep_web_research.utils.state_helpers import clamp
from deep_web_research.utils.urls import is_http_url

MAX_QUERIES = 5
MAX_PARALLEL = 5
DEPTH_BOUNDS = (1, 2)
BRANCHING_BOUNDS = (1, 3)
TIMEOUT_BOUNDS_MS = (30000, 55000)

DispatcherFactory = Callable[..., ParallelSearchDispatcher]
FetcherFactory = Callable[[], PageFetcher]


def _clamp_int(value: int, bounds: tuple[int, int]) -> int:
    return int(clamp(value, *bounds))


def _strip_queries(queries: list[str]) -> list[str]:
    cleaned = [query.strip() for query in queries]
    if not cleaned or any(not query for query in cleaned):
        raise ValueError("queries must be non-empty strings")
    return cleaned


class DeepResearchRequest(BaseModel):
    """Research parameters; numeric bounds are clamped rather than rejected."""

    model_config = ConfigDict(populate_by_name=True)

    topic: str = Field(..., min_length=1)
    max_depth: int = Field(2, alias="maxDepth")
    max_branching: int = Field(3, alias="maxBranching")
    timeout_ms: int = Field(55000, alias="timeout")
    min_relevance_score: float = Field(0.7, alias="minRelevanceScore")

    @field_validator("topic")
    @classmethod
    def _topic_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("topic must not be empty")
        return value

    @field_validator("max_depth")
    @classmethod
    def _clamp_depth(cls, value: int) -> int:
        return _clamp_int(value, DEPTH_BOUNDS)

    @field_validator("max_branching")
    @classmethod
    def _clamp_branching(cls, value: int) -> int:
        return _clamp_int(value, BRANCHING_BOUNDS)

    @field_validator("timeout_ms")
    @classmethod
    def _clamp_timeout(cls, value: int) -> int:
        return _clamp_int(value, TIMEOUT_BOUNDS_MS)

    @field_validator("min_relevance_score")
    @classmethod
    def _clamp_relevance(cls, value: float) -> float:
        return clamp(value)

    def to_options(self) -> ResearchOptions:
        return ResearchOptions(
            max_depth=self.max_depth,
            max_branching=self.max_branching,
            timeout_ms=self.timeout_ms,
            min_relevance_score=self.min_relevance_score,
        )


class ParallelSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queries: list[str] = Field(..., min_length=1)
    max_parallel: int | None = Field(None, alias="maxParallel")

    @field_validator("queries")
    @classmethod
    def _truncate_queries(cls, value: list[str]) -> list[str]:
        return _strip_queries(value)[:MAX_QUERIES]

    @field_validator("max_parallel")
    @classmethod
    def _clamp_parallel(cls, value: int | None) -> int | None:
        return None if value is None else _clamp_int(value, (1, MAX_PARALLEL))


class VisitPageRequest(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def _http_only(cls, value: str) -> str:
        value = value.strip()
        if not is_http_url(value):
            raise ValueError("only http and https URLs are supported")
        return value


class CancelSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    search_id: str | None = Field(None, alias="searchId")


class QueueSearchRequest(BaseModel):
    queries: list[str] = Field(..., min_length=1)

    @field_validator("queries")
    @classmethod
    def _non_blank(cls, value: list[str]) -> list[str]:
        return _strip_queries(value)


def _validate(model: type[BaseModel], **data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        messages = "; ".join(error["msg"] for error in exc.errors())
        raise InputValidationError(messages) from exc


class ResearchService:
    """Owns the long-lived collaborators behind each operation.

    Browser-backed resources are created per call (or lazily for the queue)
    and released on every exit path.
    """

    def __init__(
        self,
        *,
        dispatcher_factory: DispatcherFactory | None = None,
        fetcher_factory: FetcherFactory | None = None,
        tables: HeuristicTables = DEFAULT_TABLES,
    ) -> None:
        self.dispatcher_factory = dispatcher_factory or create_browser_dispatcher
        self.fetcher_factory = fetcher_factory or (lambda: BrowserPageFetcher(tables=tables))
        self.tables = tables
        self.extractor = ContentExtractor(tables)
        self.analyzer = ContentAnalyzer(tables)
        self._queue: SearchQueue | None = None
        self._queue_dispatcher: ParallelSearchDispatcher | None = None
        self._active: set[ResearchOrchestrator] = set()
        self.logger = get_logger(__name__)

    # -- research ---------------------------------------------------------

    def _orchestrator(self) -> ResearchOrchestrator:
        return ResearchOrchestrator(
            self.dispatcher_factory(max_parallel=settings.runtime.max_parallel_searches),
            self.fetcher_factory,
            extractor=self.extractor,
            analyzer=self.analyzer,
            tables=self.tables,
        )

    async def deep_research(self, topic: str, **options: Any) -> dict[str, Any]:
        request: DeepResearchRequest = _validate(DeepResearchRequest, topic=topic, **options)
        orchestrator = self._orchestrator()
        self._active.add(orchestrator)
        try:
            return await orchestrator.deep_research(request.topic, request.to_options())
        finally:
            self._active.discard(orchestrator)
            await orchestrator.close()

    def get_session_status(self, session_id: str) -> dict[str, Any] | None:
        for orchestrator in self._active:
            status = orchestrator.get_session_status(session_id)
            if status is not None:
                return status
        return None

    # -- search -----------------------------------------------------------

    async def parallel_search(self, queries: list[str], max_parallel: int | None = None) -> dict[str, Any]:
        request: ParallelSearchRequest = _validate(ParallelSearchRequest, queries=queries, max_parallel=max_parallel)
        size = request.max_parallel or min(MAX_PARALLEL, settings.runtime.max_parallel_searches)
        dispatcher = self.dispatcher_factory(max_parallel=size, include_timings=True)
        try:
            report = await dispatcher.search(request.queries)
        finally:
            await dispatcher.close()
        return report.to_dict()

    async def visit_page(self, url: str) -> dict[str, str]:
        request: VisitPageRequest = _validate(VisitPageRequest, url=url)
        fetcher = self.fetcher_factory()
        try:
            html = await visit_page(fetcher, request.url)
        finally:
            await fetcher.close()
        document = self.extractor.extract(html, request.url)
        return {"url": document.url, "title": document.title, "content": document.content}

    # -- queue ------------------------------------------------------------

    @property
    def queue(self) -> SearchQueue:
        if self._queue is None:
            self._queue_dispatcher = self.dispatcher_factory(max_parallel=1)
            self._queue = SearchQueue(self._queue_dispatcher.search_one)
        return self._queue

    async def queue_search(self, queries: list[str]) -> list[str]:
        request: QueueSearchRequest = _validate(QueueSearchRequest, queries=queries)
        ids = self.queue.add_batch(request.queries)
        self.logger.info("service.queue_search", queued=len(ids))
        return ids

    def get_queue_status(self) -> dict[str, Any]:
        return self.queue.get_status().to_dict()

    def cancel_search(self, search_id: str | None = None) -> bool:
        request: CancelSearchRequest = _validate(CancelSearchRequest, search_id=search_id)
        return self.queue.cancel(request.search_id)

    async def close(self) -> None:
        for orchestrator in list(self._active):
            await orchestrator.close()
        self._active.clear()
        if self._queue is not None:
            await self._queue.close()
            self._queue = None
        if self._queue_dispatcher is not None:
            await self._queue_dispatcher.close()
            self._queue_dispatcher = None
