from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from deep_web_research.config import DEFAULT_TABLES, HeuristicTables, settings
from deep_web_research.core.errors import BrowserLaunchError, SearchQueryError
from deep_web_research.core.interfaces import SearchProvider
from deep_web_research.core.state import DispatchBatch, ParallelSearchReport, QueryOutcome, SearchResult
from deep_web_research.observability.prometheus_metrics import record_search_query
from deep_web_research.reports.results_store import SearchResultStore
from deep_web_research.search.scoring import score_search_result
from deep_web_research.utils import get_logger

SleepFn = Callable[[float], Awaitable[None]]


class ParallelSearchDispatcher:
    """Runs query lists in chunks of ``max_parallel`` with staggered starts.

    Outcomes are assembled by position, so ``report.outcomes[i].query`` always
    equals ``queries[i]``. Failed queries are reported, never retried here.
    """

    def __init__(
        self,
        provider: SearchProvider,
        *,
        max_parallel: int | None = None,
        search_delay_ms: int | None = None,
        chunk_delay_ms: int | None = None,
        include_timings: bool = False,
        store: SearchResultStore | None = None,
        tables: HeuristicTables = DEFAULT_TABLES,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        runtime = settings.runtime
        self.provider = provider
        self.max_parallel = max(1, max_parallel or runtime.max_parallel_searches)
        self.search_delay_ms = runtime.search_delay_ms if search_delay_ms is None else search_delay_ms
        self.chunk_delay_ms = runtime.chunk_delay_ms if chunk_delay_ms is None else chunk_delay_ms
        self.include_timings = include_timings
        self.store = store
        self.tables = tables
        self._sleep = sleep
        self._clock = clock
        self.logger = get_logger(__name__)

    @staticmethod
    def chunk(queries: Sequence[str], size: int) -> list[list[str]]:
        return [list(queries[i : i + size]) for i in range(0, len(queries), size)]

    async def search(self, queries: Sequence[str]) -> ParallelSearchReport:
        started = self._clock()
        report = ParallelSearchReport()
        chunks = self.chunk(queries, self.max_parallel)
        self.logger.info("dispatcher.start", queries=len(queries), chunks=len(chunks), max_parallel=self.max_parallel)

        for position, chunk in enumerate(chunks):
            report.batches.append(await self._run_chunk(chunk))
            if position < len(chunks) - 1 and self.chunk_delay_ms:
                await self._sleep(self.chunk_delay_ms / 1000)

        if self.include_timings:
            report.total_execution_ms = int((self._clock() - started) * 1000)
        self.logger.info("dispatcher.finish", **report.summary())
        return report

    async def _run_chunk(self, chunk: list[str]) -> DispatchBatch:
        stamp = int(self._clock() * 1000)
        tasks = [
            self._staggered(query, f"search_{stamp}_{index + 1}_of_{len(chunk)}", index)
            for index, query in enumerate(chunk)
        ]
        # gather keeps input order, which is what positional assembly relies on
        outcomes = await asyncio.gather(*tasks)
        return DispatchBatch(queries=chunk, outcomes=list(outcomes))

    async def _staggered(self, query: str, search_id: str, index: int) -> QueryOutcome:
        if index and self.search_delay_ms:
            await self._sleep(index * self.search_delay_ms / 1000)
        return await self._execute(query, search_id, slot=index)

    async def _execute(self, query: str, search_id: str, *, slot: int) -> QueryOutcome:
        started = self._clock()
        outcome = QueryOutcome(search_id=search_id, query=query)
        try:
            outcome.results = await self.search_one(query, slot=slot)
        except BrowserLaunchError:
            raise
        except Exception as exc:
            outcome.error = str(exc) or exc.__class__.__name__
            self.logger.warning("dispatcher.query.failed", search_id=search_id, query=query, error=outcome.error)
        elapsed = self._clock() - started
        if self.include_timings:
            outcome.execution_ms = int(elapsed * 1000)
        record_search_query("success" if outcome.ok else "failure", elapsed)

        if outcome.ok and self.store is not None:
            try:
                self.store.write(search_id, query, outcome.results)
            except OSError as exc:
                self.logger.warning("dispatcher.persist.failed", search_id=search_id, error=str(exc))
        return outcome

    async def search_one(self, query: str, *, slot: int = 0) -> list[SearchResult]:
        """Run one query and score its results; raises ``SearchQueryError`` on failure."""
        try:
            records = await self.provider.search(query, slot=slot % self.max_parallel)
        except (SearchQueryError, BrowserLaunchError):
            raise
        except Exception as exc:
            raise SearchQueryError(str(exc) or exc.__class__.__name__) from exc

        results = self.score(query, records)
        if not results:
            raise SearchQueryError("No search results found")
        return results

    def score(self, query: str, records: Sequence[dict[str, Any]]) -> list[SearchResult]:
        scored: list[SearchResult] = []
        for rank, record in enumerate(records):
            url = (record.get("url") or "").strip()
            if not url:
                continue
            title = record.get("title") or ""
            snippet = record.get("snippet") or ""
            scored.append(
                SearchResult(
                    title=title,
                    url=url,
                    snippet=snippet,
                    relevance_score=score_search_result(rank, title, snippet, url, query, self.tables),
                )
            )
        return scored

    async def close(self) -> None:
        await self.provider.close()
