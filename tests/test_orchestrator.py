from __future__ import annotations

import pytest

from conftest import FakeClock, FakeFetcher, FakeSearchProvider, records
from deep_web_research.core.errors import BrowserLaunchError
from deep_web_research.core.orchestrator import ResearchOrchestrator, deduplicate_results
from deep_web_research.core.session import ResearchOptions
from deep_web_research.core.state import ResearchStatus, SearchResult
from deep_web_research.search.dispatcher import ParallelSearchDispatcher
from deep_web_research.search.query_planner import QueryPlanner

URLS = [f"https://site{index}.example.com/post" for index in range(7)]


class SlowFetcher(FakeFetcher):
    """Advances the shared clock on every fetch."""

    def __init__(self, pages, clock: FakeClock, seconds: float) -> None:
        super().__init__(pages)
        self.clock = clock
        self.seconds = seconds

    async def fetch(self, url: str) -> str:
        self.clock.advance(self.seconds)
        return await super().fetch(url)


def build(provider, fetcher, no_sleep, clock=None) -> ResearchOrchestrator:
    dispatcher = ParallelSearchDispatcher(provider, search_delay_ms=0, chunk_delay_ms=0, sleep=no_sleep)
    return ResearchOrchestrator(dispatcher, lambda: fetcher, clock=clock or FakeClock())


def result(url: str, score: float) -> SearchResult:
    return SearchResult(title=url, url=url, snippet="", relevance_score=score)


def test_deduplicate_keeps_first_occurrence_and_sorts():
    ranked = deduplicate_results(
        [
            result("https://example.com/a", 0.5),
            result("http://www.example.com/a/", 0.9),
            result("https://example.com/b", 0.7),
            result("https://example.com/c", 0.5),
        ]
    )
    assert [(r.url, r.relevance_score) for r in ranked] == [
        ("https://example.com/b", 0.7),
        ("https://example.com/a", 0.5),
        ("https://example.com/c", 0.5),
    ]


def test_planner_fans_out_from_the_bare_topic():
    queries = QueryPlanner().initial_queries("  observer pattern ")
    assert queries[0] == "observer pattern"
    assert "observer pattern tutorial" in queries
    assert len(queries) == len(set(queries))


@pytest.mark.asyncio
async def test_deep_research_end_to_end(no_sleep, technical_page):
    provider = FakeSearchProvider(default=records(*URLS[:3]))
    fetcher = FakeFetcher({url: technical_page for url in URLS[:3]})
    orchestrator = build(provider, fetcher, no_sleep)

    report = await orchestrator.deep_research("observer pattern")

    assert report["status"] == "completed"
    assert report["topic"] == "observer pattern"
    assert sorted(fetcher.calls) == sorted(URLS[:3])
    assert sorted(source["url"] for source in report["findings"]["sources"]) == sorted(URLS[:3])
    assert report["progress"]["visitedUrls"] == 3
    assert set(report["timing"]) == {
        "parallel_search",
        "deduplication",
        "top_results_processing",
        "remaining_results_processing",
        "total",
    }
    assert "completed" in report["timestamps"]
    assert provider.closed == 1
    assert fetcher.closed == 1
    assert orchestrator.sessions == {}


@pytest.mark.asyncio
async def test_top_results_are_processed_first(no_sleep, technical_page):
    provider = FakeSearchProvider(default=records(*URLS))
    fetcher = FakeFetcher({url: technical_page for url in URLS})
    orchestrator = build(provider, fetcher, no_sleep)

    await orchestrator.deep_research("observer pattern", ResearchOptions(max_parallel_operations=2))

    assert set(fetcher.calls[:5]) == set(URLS[:5])
    assert set(fetcher.calls[5:]) == set(URLS[5:])


@pytest.mark.asyncio
async def test_failed_queries_and_pages_do_not_abort_the_run(no_sleep, technical_page):
    provider = FakeSearchProvider(
        {"observer pattern": records(URLS[0], URLS[1])},
        default=RuntimeError("no results page"),
    )
    fetcher = FakeFetcher({URLS[0]: technical_page})
    orchestrator = build(provider, fetcher, no_sleep)

    report = await orchestrator.deep_research("observer pattern")

    assert report["status"] == "completed"
    assert [source["url"] for source in report["findings"]["sources"]] == [URLS[0]]


@pytest.mark.asyncio
async def test_budget_exhaustion_returns_partial_findings(no_sleep, technical_page):
    clock = FakeClock()
    provider = FakeSearchProvider(default=records(*URLS[:4]))
    fetcher = SlowFetcher({url: technical_page for url in URLS}, clock, seconds=20)
    orchestrator = build(provider, fetcher, no_sleep, clock)

    report = await orchestrator.deep_research(
        "observer pattern", ResearchOptions(timeout_ms=30000, max_parallel_operations=1)
    )

    assert report["status"] == "failed"
    assert report["failureReason"] == "budget_exceeded"
    assert fetcher.calls == URLS[:2]
    assert len(report["findings"]["sources"]) == 2


@pytest.mark.asyncio
async def test_browser_failure_fails_the_session_and_releases_resources(no_sleep):
    provider = FakeSearchProvider(default=BrowserLaunchError("chromium missing"))
    fetcher = FakeFetcher()
    orchestrator = build(provider, fetcher, no_sleep)

    with pytest.raises(BrowserLaunchError):
        await orchestrator.deep_research("observer pattern")

    assert provider.closed == 1
    assert fetcher.closed == 1
    assert orchestrator.sessions == {}


@pytest.mark.asyncio
async def test_close_cancels_live_sessions(no_sleep):
    fetcher = FakeFetcher()
    orchestrator = build(FakeSearchProvider(), fetcher, no_sleep)
    session = orchestrator.create_session("observer pattern")
    session.start()

    assert orchestrator.get_session_status(session.id)["status"] == "in_progress"
    await orchestrator.close()

    assert session.status is ResearchStatus.CANCELLED
    assert fetcher.closed == 1
    assert orchestrator.get_session_status(session.id) is None


@pytest.mark.asyncio
async def test_parallel_search_passthrough(no_sleep):
    provider = FakeSearchProvider({"a": records(URLS[0])}, default=[])
    orchestrator = build(provider, FakeFetcher(), no_sleep)

    report = await orchestrator.parallel_search(["a", "b"])

    assert [outcome.ok for outcome in report.outcomes] == [True, False]
