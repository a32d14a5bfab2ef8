from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

from deep_web_research.analysis import ContentAnalyzer
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables, settings
from deep_web_research.core.errors import DeepResearchError
from deep_web_research.core.interfaces import PageFetcher
from deep_web_research.core.session import LinkDiscoverer, ResearchOptions, ResearchSession
from deep_web_research.core.state import ParallelSearchReport, ResearchStatus, SearchResult
from deep_web_research.extraction import ContentExtractor
from deep_web_research.observability.prometheus_metrics import record_session
from deep_web_research.search import ParallelSearchDispatcher, QueryPlanner
from deep_web_research.utils import get_logger
from deep_web_research.utils.urls import normalize_url

TOP_RESULTS = 5

FetcherFactory = Callable[[], PageFetcher]


def deduplicate_results(results: Sequence[SearchResult]) -> list[SearchResult]:
    """First occurrence per normalized URL wins, then relevance descending."""
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        key = normalize_url(result.url)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(result)
    # sort is stable, so equal scores keep first-seen order
    unique.sort(key=lambda result: result.relevance_score, reverse=True)
    return unique


class ResearchOrchestrator:
    """High-level entry point: query fan-out, ranking and a bounded crawl per topic."""

    def __init__(
        self,
        dispatcher: ParallelSearchDispatcher,
        fetcher_factory: FetcherFactory,
        *,
        planner: QueryPlanner | None = None,
        extractor: ContentExtractor | None = None,
        analyzer: ContentAnalyzer | None = None,
        tables: HeuristicTables = DEFAULT_TABLES,
        link_discoverer: LinkDiscoverer | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.dispatcher = dispatcher
        self.fetcher_factory = fetcher_factory
        self.planner = planner or QueryPlanner()
        self.extractor = extractor or ContentExtractor(tables)
        self.analyzer = analyzer or ContentAnalyzer(tables)
        self.tables = tables
        self.link_discoverer = link_discoverer
        self._clock = clock
        self.sessions: dict[str, ResearchSession] = {}
        self.settings = settings
        self.logger = get_logger(__name__)

    def create_session(self, topic: str, options: ResearchOptions | None = None) -> ResearchSession:
        session = ResearchSession(
            topic,
            options,
            fetcher=self.fetcher_factory(),
            extractor=self.extractor,
            analyzer=self.analyzer,
            tables=self.tables,
            link_discoverer=self.link_discoverer,
            clock=self._clock,
        )
        self.sessions[session.id] = session
        return session

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)

    async def deep_research(self, topic: str, options: ResearchOptions | None = None) -> dict[str, Any]:
        options = options or ResearchOptions()
        session = self.create_session(topic, options)
        timing: dict[str, int] = {}
        started = self._clock()
        self.logger.info("orchestrator.start", session_id=session.id, topic=session.topic, options=options)

        try:
            session.start()

            phase = self._clock()
            report = await self.dispatcher.search(self.planner.initial_queries(session.topic))
            timing["parallel_search"] = self._elapsed_ms(phase)

            phase = self._clock()
            ranked = deduplicate_results([result for outcome in report.outcomes for result in outcome.results])
            timing["deduplication"] = self._elapsed_ms(phase)
            self.logger.info(
                "orchestrator.candidates",
                session_id=session.id,
                successful_queries=report.summary()["successful"],
                unique_urls=len(ranked),
            )

            semaphore = asyncio.Semaphore(max(1, options.max_parallel_operations))

            async def bounded(url: str) -> None:
                async with semaphore:
                    await session.process_url(url, depth=0)

            phase = self._clock()
            await asyncio.gather(*(bounded(result.url) for result in ranked[:TOP_RESULTS]))
            timing["top_results_processing"] = self._elapsed_ms(phase)

            phase = self._clock()
            await asyncio.gather(*(bounded(result.url) for result in ranked[TOP_RESULTS:]))
            timing["remaining_results_processing"] = self._elapsed_ms(phase)

            if not session.status.is_terminal:
                session.transition(ResearchStatus.SYNTHESIZING)
                await session.complete()
        except DeepResearchError as exc:
            self.logger.error("orchestrator.failed", session_id=session.id, error=str(exc))
            if not session.status.is_terminal:
                await session.fail(str(exc) or exc.__class__.__name__)
            raise
        finally:
            timing["total"] = self._elapsed_ms(started)
            await session.close()
            await self.dispatcher.close()
            self.sessions.pop(session.id, None)
            record_session(session.status.value, timing["total"] / 1000)

        result = session.report()
        result["timing"] = timing
        self.logger.info(
            "orchestrator.finish",
            session_id=session.id,
            status=session.status.value,
            total_ms=timing["total"],
            sources=len(session.findings.sources),
        )
        return result

    async def parallel_search(self, queries: Sequence[str]) -> ParallelSearchReport:
        return await self.dispatcher.search(list(queries))

    def get_session_status(self, session_id: str) -> dict[str, Any] | None:
        session = self.sessions.get(session_id)
        return session.report() if session is not None else None

    async def close(self) -> None:
        for session in list(self.sessions.values()):
            if not session.status.is_terminal:
                await session.cancel()
            await session.close()
        self.sessions.clear()
        await self.dispatcher.close()
