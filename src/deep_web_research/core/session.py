from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from deep_web_research.analysis import AnalysisOptions, ContentAnalysis, ContentAnalyzer
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.core.errors import (
    BrowserLaunchError,
    BudgetExceededError,
    InputValidationError,
    StateError,
)
from deep_web_research.core.interfaces import PageFetcher
from deep_web_research.core.state import (
    ALLOWED_TRANSITIONS,
    FindingTopic,
    KeyInsight,
    ResearchFindings,
    ResearchStatus,
    SearchResult,
    SessionProgress,
    SessionState,
    Source,
    StepResult,
)
from deep_web_research.extraction import ContentExtractor, ExtractedDocument
from deep_web_research.observability.prometheus_metrics import record_page
from deep_web_research.utils import get_logger
from deep_web_research.utils.state_helpers import clamp
from deep_web_research.utils.urls import is_processable_url

TOPIC_TECHNICAL_BOOST = 1.3
INSIGHT_CODE_BOOST = 1.2
INSIGHT_TECHNICAL_BOOST = 1.1
SOURCE_TECHNICAL_BOOST = 1.2
SNIPPET_LENGTH = 200
BUDGET_EXCEEDED = "budget_exceeded"

LinkDiscoverer = Callable[[ExtractedDocument], Sequence[str]]


@dataclass(slots=True)
class ResearchOptions:
    max_depth: int = 2
    max_branching: int = 3
    timeout_ms: int = 55000
    min_relevance_score: float = 0.7
    max_parallel_operations: int = 3


def new_session_id() -> str:
    return f"research_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


class ResearchSession:
    """Owns one crawl: its state machine, its time budget and its cumulative findings.

    ``process_url`` may be awaited concurrently by the engine. Every mutation
    of ``state`` and ``findings`` happens between awaits, so merges from
    different URLs never interleave.
    """

    def __init__(
        self,
        topic: str,
        options: ResearchOptions | None = None,
        *,
        fetcher: PageFetcher,
        extractor: ContentExtractor | None = None,
        analyzer: ContentAnalyzer | None = None,
        analysis_options: AnalysisOptions | None = None,
        tables: HeuristicTables = DEFAULT_TABLES,
        link_discoverer: LinkDiscoverer | None = None,
        clock: Callable[[], float] = time.monotonic,
        session_id: str | None = None,
    ) -> None:
        if not topic or not topic.strip():
            raise InputValidationError("Research topic must not be empty")
        self.id = session_id or new_session_id()
        self.topic = topic.strip()
        self.options = options or ResearchOptions()
        self.fetcher = fetcher
        self.extractor = extractor or ContentExtractor(tables)
        self.analyzer = analyzer or ContentAnalyzer(tables)
        self.analysis_options = analysis_options or AnalysisOptions()
        self.tables = tables
        self.link_discoverer = link_discoverer
        self._clock = clock
        self._started = clock()
        self._in_flight: set[str] = set()
        self._closed = False

        self.state = SessionState(budget_ms=self.options.timeout_ms)
        self.progress = SessionProgress()
        self.findings = ResearchFindings()
        self.logger = get_logger(__name__).bind(session_id=self.id)

    # -- state machine ----------------------------------------------------

    @property
    def status(self) -> ResearchStatus:
        return self.state.status

    @property
    def elapsed_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    def transition(self, status: ResearchStatus) -> None:
        current = self.state.status
        if status == current:
            return
        if status not in ALLOWED_TRANSITIONS[current]:
            raise StateError(f"Illegal transition {current} -> {status}")
        self.state.status = status
        self.state.elapsed_ms = self.elapsed_ms
        self.state.touch()
        if status is ResearchStatus.COMPLETED:
            self.state.completed_at = self.state.updated_at
        self.logger.debug("session.transition", previous=current.value, status=status.value)

    def start(self) -> None:
        self.transition(ResearchStatus.IN_PROGRESS)
        self.logger.info("session.start", topic=self.topic, budget_ms=self.options.timeout_ms)

    def _working(self, status: ResearchStatus) -> None:
        if not self.state.status.is_terminal:
            self.transition(status)

    def check_budget(self) -> None:
        """Fail the session once the budget is spent; raises ``BudgetExceededError``."""
        elapsed = self.elapsed_ms
        self.state.elapsed_ms = elapsed
        if elapsed <= self.options.timeout_ms:
            return
        if not self.state.status.is_terminal:
            self.logger.warning("session.budget.exceeded", elapsed_ms=elapsed, budget_ms=self.options.timeout_ms)
            self.state.failure_reason = BUDGET_EXCEEDED
            self.transition(ResearchStatus.FAILED)
        raise BudgetExceededError(f"Session {self.id} exceeded its {self.options.timeout_ms} ms budget")

    async def complete(self) -> None:
        self.transition(ResearchStatus.COMPLETED)
        self.logger.info(
            "session.completed",
            elapsed_ms=self.state.elapsed_ms,
            topics=len(self.findings.topics),
            insights=len(self.findings.insights),
            sources=len(self.findings.sources),
        )
        await self.close()

    async def fail(self, reason: str) -> None:
        self.state.failure_reason = reason
        self.transition(ResearchStatus.FAILED)
        self.logger.warning("session.failed", reason=reason)
        await self.close()

    async def cancel(self) -> None:
        self.transition(ResearchStatus.CANCELLED)
        self.logger.info("session.cancelled")
        await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.fetcher.close()

    # -- crawl ------------------------------------------------------------

    async def process_url(self, url: str, depth: int = 0) -> StepResult:
        """Fetch, extract, analyze and merge one URL.

        Revisits, skipped document types, a spent budget and per-URL failures
        all yield an empty ``StepResult``.
        """
        if url in self.state.visited_urls or url in self._in_flight:
            self.logger.debug("session.url.revisit", url=url)
            return StepResult()
        if self.state.status.is_terminal:
            return StepResult()
        if not is_processable_url(url, self.tables.skip_extensions):
            self.logger.debug("session.url.skipped", url=url)
            return StepResult()
        try:
            self.check_budget()
        except BudgetExceededError:
            return StepResult()

        self._in_flight.add(url)
        self.progress.total_steps += 1
        self.progress.current_step = url
        try:
            html = await self.fetcher.fetch(url)
            document = self.extractor.extract(html, url)
            # a page already fetched when the session ends still counts toward its findings
            self._working(ResearchStatus.ANALYZING)
            analysis = self.analyzer.analyze(document, self.analysis_options)
        except BrowserLaunchError:
            raise
        except Exception as exc:
            self.logger.warning("session.url.failed", url=url, depth=depth, error=str(exc) or exc.__class__.__name__)
            record_page("failure")
            return StepResult()
        finally:
            self._in_flight.discard(url)

        self.state.visited_urls.add(url)
        self.merge(document, analysis)
        self.progress.completed_steps += 1
        self.progress.processed_content += 1
        self._working(ResearchStatus.IN_PROGRESS)
        record_page("success")
        self.logger.info(
            "session.url.processed",
            url=url,
            depth=depth,
            relevance=round(analysis.relevance_score, 3),
        )

        step = StepResult(
            search_results=[
                SearchResult(
                    title=document.title,
                    url=url,
                    snippet=document.content[:SNIPPET_LENGTH],
                    relevance_score=analysis.relevance_score,
                )
            ],
            documents=[document],
            analysis=analysis,
        )
        if self.state.status.is_terminal:
            return step
        if self.link_discoverer is not None and depth < self.options.max_depth:
            await self._follow_links(document, depth, step)
        return step

    async def _follow_links(self, document: ExtractedDocument, depth: int, step: StepResult) -> None:
        links = list(self.link_discoverer(document))[: self.options.max_branching]
        if links:
            self.state.depth = max(self.state.depth, depth + 1)
        for link in links:
            child = await self.process_url(link, depth + 1)
            step.search_results.extend(child.search_results)
            step.documents.extend(child.documents)

    # -- findings ---------------------------------------------------------

    def merge(self, document: ExtractedDocument, analysis: ContentAnalysis) -> None:
        """Fold one document's analysis into the cumulative findings; never removes anything."""
        technical_text = document.technical_text().lower()
        findings = self.findings

        for topic in analysis.topics:
            importance = topic.confidence
            if technical_text and topic.name.lower() in technical_text:
                importance = clamp(importance * TOPIC_TECHNICAL_BOOST)
            existing = findings.topic(topic.name)
            if existing is None:
                findings.topics.append(
                    FindingTopic(name=topic.name, importance=importance, related_topics=list(topic.keywords))
                )
                continue
            existing.importance = max(existing.importance, importance)
            existing.related_topics.extend(k for k in topic.keywords if k not in existing.related_topics)

        contributed: list[str] = []
        for point in analysis.key_points:
            confidence = point.importance
            if point.has_code:
                confidence *= INSIGHT_CODE_BOOST
            elif technical_text and point.text.lower() in technical_text:
                confidence *= INSIGHT_TECHNICAL_BOOST
            confidence = clamp(confidence)
            if confidence < self.options.min_relevance_score or findings.has_insight(point.text):
                continue
            findings.insights.append(
                KeyInsight(
                    text=point.text,
                    confidence=confidence,
                    related_topics=list(point.topics),
                    supporting_evidence=list(point.supporting_evidence),
                )
            )
            contributed.append(point.text)

        source = next((s for s in findings.sources if s.url == document.url), None)
        if source is None:
            credibility = analysis.quality.credibility_score
            if document.has_technical_segments:
                credibility = clamp(credibility * SOURCE_TECHNICAL_BOOST)
            findings.sources.append(
                Source(
                    url=document.url,
                    title=document.title,
                    credibility_score=credibility,
                    contributed_findings=contributed,
                )
            )
        else:
            source.contributed_findings.extend(contributed)

        findings.sort()
        self.state.touch()

    # -- reporting --------------------------------------------------------

    def report(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sessionId": self.id,
            "topic": self.topic,
            "status": self.state.status.value,
            "findings": self.findings.to_dict(),
            "progress": {
                "completedSteps": self.progress.completed_steps,
                "totalSteps": self.progress.total_steps,
                "processedContent": self.progress.processed_content,
                "visitedUrls": len(self.state.visited_urls),
                "depth": self.state.depth,
            },
            "timestamps": {
                "created": self.state.created_at,
                "updated": self.state.updated_at,
            },
            "elapsedMs": self.state.elapsed_ms,
        }
        if self.state.completed_at is not None:
            payload["timestamps"]["completed"] = self.state.completed_at
        if self.state.failure_reason is not None:
            payload["failureReason"] = self.state.failure_reason
        return payload


__all__ = ["LinkDiscoverer", "ResearchOptions", "ResearchSession", "new_session_id"]
