from .dispatcher import ParallelSearchDispatcher
from .query_planner import QueryPlanner
from .queue import QueueEvent, QueueEventType, QueueItem, QueueSnapshot, QueueStatus, SearchQueue
from .scoring import score_search_result, url_quality_bonus


def create_browser_dispatcher(*, max_parallel: int | None = None, **kwargs) -> ParallelSearchDispatcher:
    """Dispatcher backed by a browser pool sized to its parallelism."""
    from deep_web_research.config import settings
    from deep_web_research.reports.results_store import SearchResultStore
    from .browser_pool import BrowserPool
    from .browser_provider import BrowserSearchProvider

    size = max(1, max_parallel or settings.runtime.max_parallel_searches)
    provider = BrowserSearchProvider(BrowserPool(size, headless=settings.runtime.browser_headless))
    if settings.runtime.persist_results:
        kwargs.setdefault("store", SearchResultStore())
    return ParallelSearchDispatcher(provider, max_parallel=size, **kwargs)


__all__ = [
    "ParallelSearchDispatcher",
    "QueryPlanner",
    "QueueEvent",
    "QueueEventType",
    "QueueItem",
    "QueueSnapshot",
    "QueueStatus",
    "SearchQueue",
    "create_browser_dispatcher",
    "score_search_result",
    "url_quality_bonus",
]
