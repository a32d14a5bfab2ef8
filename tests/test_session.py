from __future__ import annotations

import pytest

from conftest import FakeClock, FakeFetcher
from deep_web_research.analysis import ContentAnalysis, ContentQuality, KeyPoint, SentimentResult, Topic
from deep_web_research.core.errors import BrowserLaunchError, InputValidationError, StateError
from deep_web_research.core.session import ResearchOptions, ResearchSession
from deep_web_research.core.state import ResearchStatus
from deep_web_research.extraction import ContentSegment, ExtractedDocument

GUIDE = "https://example.com/guide"
OTHER = "https://example.com/other"


def make_session(fetcher, clock=None, **options) -> ResearchSession:
    return ResearchSession(
        "observer pattern",
        ResearchOptions(**options),
        fetcher=fetcher,
        clock=clock or FakeClock(),
    )


def analysis(topics=(), key_points=(), credibility=0.6) -> ContentAnalysis:
    return ContentAnalysis(
        relevance_score=0.5,
        topics=list(topics),
        key_points=list(key_points),
        entities=[],
        sentiment=SentimentResult(),
        relationships=[],
        citations=[],
        quality=ContentQuality(
            readability=0.5,
            information_density=0.5,
            technical_depth=0.5,
            credibility_score=credibility,
            freshness=0.5,
            overall=0.5,
        ),
    )


def document(url: str = GUIDE, technical_text: str | None = None) -> ExtractedDocument:
    segments = []
    if technical_text is not None:
        segments.append(ContentSegment(id="section-1", html="", text=technical_text, importance=1.0, kind="technical"))
    return ExtractedDocument(url=url, title="Guide", content="body", segments=segments)


def test_blank_topic_is_rejected():
    with pytest.raises(InputValidationError):
        ResearchSession("   ", fetcher=FakeFetcher())


def test_session_ids_are_unique():
    first = ResearchSession("topic", fetcher=FakeFetcher())
    second = ResearchSession("topic", fetcher=FakeFetcher())
    assert first.id.startswith("research_")
    assert first.id != second.id


def test_illegal_transitions_raise():
    session = make_session(FakeFetcher())
    with pytest.raises(StateError):
        session.transition(ResearchStatus.COMPLETED)

    session.start()
    session.transition(ResearchStatus.IN_PROGRESS)
    session.transition(ResearchStatus.SYNTHESIZING)
    session.transition(ResearchStatus.ANALYZING)
    session.transition(ResearchStatus.COMPLETED)
    assert session.state.completed_at is not None
    with pytest.raises(StateError):
        session.transition(ResearchStatus.IN_PROGRESS)


@pytest.mark.asyncio
async def test_process_url_extracts_and_merges(technical_page):
    fetcher = FakeFetcher({GUIDE: technical_page})
    session = make_session(fetcher)
    session.start()

    step = await session.process_url(GUIDE)

    assert len(step.documents) == 1
    assert step.search_results[0].url == GUIDE
    assert step.search_results[0].title == "Observer pattern in practice"
    assert len(step.search_results[0].snippet) <= 200
    assert step.analysis is not None
    assert session.status is ResearchStatus.IN_PROGRESS
    assert GUIDE in session.state.visited_urls
    assert [source.url for source in session.findings.sources] == [GUIDE]
    assert session.findings.topics
    assert session.progress.completed_steps == 1


@pytest.mark.asyncio
async def test_revisiting_a_url_is_a_no_op(technical_page):
    fetcher = FakeFetcher({GUIDE: technical_page})
    session = make_session(fetcher)
    session.start()

    await session.process_url(GUIDE)
    before = session.findings.to_dict()
    again = await session.process_url(GUIDE)

    assert again.is_empty
    assert fetcher.calls == [GUIDE]
    assert session.findings.to_dict() == before


@pytest.mark.asyncio
async def test_documents_are_skipped_without_fetching():
    fetcher = FakeFetcher()
    session = make_session(fetcher)
    session.start()

    step = await session.process_url("https://example.com/whitepaper.pdf")

    assert step.is_empty
    assert fetcher.calls == []
    assert session.progress.total_steps == 0


@pytest.mark.asyncio
async def test_fetch_failure_is_contained():
    fetcher = FakeFetcher({GUIDE: RuntimeError("net::ERR_CONNECTION_RESET")})
    session = make_session(fetcher)
    session.start()

    step = await session.process_url(GUIDE)

    assert step.is_empty
    assert session.status is ResearchStatus.IN_PROGRESS
    assert GUIDE not in session.state.visited_urls
    assert session.progress.total_steps == 1
    assert session.progress.completed_steps == 0


@pytest.mark.asyncio
async def test_browser_launch_failure_propagates():
    session = make_session(FakeFetcher({GUIDE: BrowserLaunchError("chromium missing")}))
    session.start()

    with pytest.raises(BrowserLaunchError):
        await session.process_url(GUIDE)


@pytest.mark.asyncio
async def test_spent_budget_fails_the_session(technical_page):
    clock = FakeClock()
    fetcher = FakeFetcher({GUIDE: technical_page, OTHER: technical_page})
    session = make_session(fetcher, clock, timeout_ms=30000)
    session.start()

    await session.process_url(GUIDE)
    clock.advance(31)
    step = await session.process_url(OTHER)

    assert step.is_empty
    assert fetcher.calls == [GUIDE]
    assert session.status is ResearchStatus.FAILED
    report = session.report()
    assert report["failureReason"] == "budget_exceeded"
    # findings gathered before the budget ran out are kept
    assert len(report["findings"]["sources"]) == 1


class CancellingFetcher(FakeFetcher):
    """Cancels its session while the first page is still being fetched."""

    session: ResearchSession | None = None

    async def fetch(self, url: str) -> str:
        page = await super().fetch(url)
        if self.session is not None and not self.session.status.is_terminal:
            await self.session.cancel()
        return page


@pytest.mark.asyncio
async def test_page_fetched_as_the_session_ends_is_still_merged(technical_page):
    fetcher = CancellingFetcher({GUIDE: technical_page, OTHER: technical_page})
    session = ResearchSession(
        "observer pattern",
        ResearchOptions(max_depth=1),
        fetcher=fetcher,
        clock=FakeClock(),
        link_discoverer=lambda doc: [OTHER],
    )
    fetcher.session = session
    session.start()

    step = await session.process_url(GUIDE)

    assert session.status is ResearchStatus.CANCELLED
    assert [source.url for source in session.findings.sources] == [GUIDE]
    assert session.findings.topics
    assert GUIDE in session.state.visited_urls
    assert len(step.documents) == 1
    # no links are followed once the session is over
    assert fetcher.calls == [GUIDE]


@pytest.mark.asyncio
async def test_terminal_session_ignores_new_urls(technical_page):
    fetcher = FakeFetcher({GUIDE: technical_page})
    session = make_session(fetcher)
    session.start()
    await session.cancel()

    assert (await session.process_url(GUIDE)).is_empty
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_close_is_idempotent():
    fetcher = FakeFetcher()
    session = make_session(fetcher)
    session.start()

    await session.complete()
    await session.close()

    assert session.status is ResearchStatus.COMPLETED
    assert fetcher.closed == 1


@pytest.mark.asyncio
async def test_links_are_followed_within_depth_and_branching(technical_page):
    pages = {f"https://example.com/{name}": technical_page for name in ("root", "a", "b", "c", "d")}
    fetcher = FakeFetcher(pages)
    session = ResearchSession(
        "observer pattern",
        ResearchOptions(max_depth=1, max_branching=2),
        fetcher=fetcher,
        clock=FakeClock(),
        link_discoverer=lambda doc: [f"https://example.com/{name}" for name in ("a", "b", "c")],
    )
    session.start()

    step = await session.process_url("https://example.com/root")

    assert fetcher.calls == ["https://example.com/root", "https://example.com/a", "https://example.com/b"]
    assert len(step.documents) == 3
    assert session.state.depth == 1


def test_topic_importance_never_decreases():
    session = make_session(FakeFetcher())

    session.merge(document(), analysis(topics=[Topic("Cache", 0.9, ["cache"])]))
    session.merge(document(OTHER), analysis(topics=[Topic("Cache", 0.4, ["ttl"])]))

    topic = session.findings.topic("Cache")
    assert topic.importance == 0.9
    assert topic.related_topics == ["cache", "ttl"]


def test_technical_boosts():
    session = make_session(FakeFetcher())

    session.merge(
        document(technical_text="cache code and more"),
        analysis(
            topics=[Topic("Cache", 0.5, [])],
            key_points=[KeyPoint("cache code and more", 0.65)],
            credibility=0.6,
        ),
    )

    assert session.findings.topics[0].importance == pytest.approx(0.65)
    assert session.findings.insights[0].confidence == pytest.approx(0.715)
    assert session.findings.sources[0].credibility_score == pytest.approx(0.72)


def test_insights_filtered_by_threshold_and_deduplicated():
    session = make_session(FakeFetcher(), min_relevance_score=0.7)
    points = [
        KeyPoint("Strong enough on its own.", 0.75),
        KeyPoint("Too weak to keep.", 0.6),
        KeyPoint("Weak but carries `code()` samples.", 0.6, has_code=True),
    ]

    session.merge(document(), analysis(key_points=points))
    session.merge(document(OTHER), analysis(key_points=points[:1]))

    texts = [insight.text for insight in session.findings.insights]
    assert texts == ["Strong enough on its own.", "Weak but carries `code()` samples."]
    assert session.findings.sources[0].contributed_findings == texts
    assert session.findings.sources[1].contributed_findings == []


def test_sources_are_added_once_per_url():
    session = make_session(FakeFetcher())
    session.merge(document(), analysis())
    session.merge(document(), analysis())
    assert len(session.findings.sources) == 1


def test_report_shape():
    session = make_session(FakeFetcher())
    report = session.report()

    assert report["topic"] == "observer pattern"
    assert report["status"] == "planning"
    assert set(report["progress"]) == {"completedSteps", "totalSteps", "processedContent", "visitedUrls", "depth"}
    assert "completed" not in report["timestamps"]
    assert "failureReason" not in report
