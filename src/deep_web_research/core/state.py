from __future__ import annotations
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(slots=True)
class SearchResult:
    """One organic result for one query."""
    title: str
    url: str
    snippet: str
    relevance_score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "relevanceScore": round(self.relevance_score, 4),
        }


@dataclass(slots=True)
class QueryOutcome:
    """Outcome of a single query inside a dispatch batch."""
    search_id: str
    query: str
    results: list[SearchResult] = field(default_factory=list)
    error: str | None = None
    execution_ms: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "searchId": self.search_id,
            "query": self.query,
            "results": [result.to_dict() for result in self.results],
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.execution_ms is not None:
            payload["executionTime"] = self.execution_ms
        return payload


@dataclass(slots=True)
class DispatchBatch:
    """One parallel execution round of the dispatcher."""
    queries: list[str]
    outcomes: list[QueryOutcome] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)


@dataclass(slots=True)
class ParallelSearchReport:
    batches: list[DispatchBatch] = field(default_factory=list)
    total_execution_ms: int | None = None

    @property
    def outcomes(self) -> list[QueryOutcome]:
        return [outcome for batch in self.batches for outcome in batch.outcomes]

    def summary(self) -> dict[str, Any]:
        outcomes = self.outcomes
        payload: dict[str, Any] = {
            "totalQueries": len(outcomes),
            "successful": sum(batch.successful for batch in self.batches),
            "failed": sum(batch.failed for batch in self.batches),
        }
        if self.total_execution_ms is not None:
            payload["totalExecutionTime"] = self.total_execution_ms
            payload["averageExecutionTime"] = round(self.total_execution_ms / len(outcomes)) if outcomes else 0
        return payload

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": [outcome.to_dict() for outcome in self.outcomes],
            "summary": self.summary(),
        }


class ResearchStatus(StrEnum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    ANALYZING = "analyzing"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({ResearchStatus.COMPLETED, ResearchStatus.FAILED, ResearchStatus.CANCELLED})

# analyzing/synthesizing are interchangeable working states
ALLOWED_TRANSITIONS: dict[ResearchStatus, frozenset[ResearchStatus]] = {
    ResearchStatus.PLANNING: frozenset(
        {ResearchStatus.IN_PROGRESS, ResearchStatus.FAILED, ResearchStatus.CANCELLED}
    ),
    ResearchStatus.IN_PROGRESS: frozenset(
        {ResearchStatus.ANALYZING, ResearchStatus.SYNTHESIZING, *TERMINAL_STATUSES}
    ),
    ResearchStatus.ANALYZING: frozenset(
        {ResearchStatus.IN_PROGRESS, ResearchStatus.SYNTHESIZING, *TERMINAL_STATUSES}
    ),
    ResearchStatus.SYNTHESIZING: frozenset(
        {ResearchStatus.IN_PROGRESS, ResearchStatus.ANALYZING, *TERMINAL_STATUSES}
    ),
    ResearchStatus.COMPLETED: frozenset(),
    ResearchStatus.FAILED: frozenset(),
    ResearchStatus.CANCELLED: frozenset(),
}


@dataclass(slots=True)
class FindingTopic:
    name: str
    importance: float
    related_topics: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "importance": round(self.importance, 4),
            "relatedTopics": self.related_topics,
        }


@dataclass(slots=True)
class KeyInsight:
    text: str
    confidence: float
    related_topics: list[str] = field(default_factory=list)
    supporting_evidence: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "confidence": round(self.confidence, 4),
            "relatedTopics": self.related_topics,
        }


@dataclass(slots=True)
class Source:
    url: str
    title: str
    credibility_score: float
    contributed_findings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "credibilityScore": round(self.credibility_score, 4),
        }


@dataclass(slots=True)
class ResearchFindings:
    """Cumulative session output; grows only through the session's merge step."""
    topics: list[FindingTopic] = field(default_factory=list)
    insights: list[KeyInsight] = field(default_factory=list)
    sources: list[Source] = field(default_factory=list)

    def topic(self, name: str) -> FindingTopic | None:
        return next((topic for topic in self.topics if topic.name == name), None)

    def has_source(self, url: str) -> bool:
        return any(source.url == url for source in self.sources)

    def has_insight(self, text: str) -> bool:
        return any(insight.text == text for insight in self.insights)

    def sort(self) -> None:
        self.topics.sort(key=lambda topic: topic.importance, reverse=True)
        self.insights.sort(key=lambda insight: insight.confidence, reverse=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mainTopics": [topic.to_dict() for topic in self.topics],
            "keyInsights": [insight.to_dict() for insight in self.insights],
            "sources": [source.to_dict() for source in self.sources],
        }


@dataclass(slots=True)
class SessionProgress:
    completed_steps: int = 0
    total_steps: int = 0
    processed_content: int = 0
    current_step: str | None = None


@dataclass(slots=True)
class SessionState:
    """Orchestrator status owned by a single research session."""
    status: ResearchStatus = ResearchStatus.PLANNING
    visited_urls: set[str] = field(default_factory=set)
    depth: int = 0
    budget_ms: int = 0
    elapsed_ms: int = 0
    failure_reason: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    completed_at: str | None = None

    def touch(self) -> None:
        self.updated_at = utc_now_iso()


@dataclass(slots=True)
class StepResult:
    """Return value of one ``process_url`` call."""
    search_results: list[SearchResult] = field(default_factory=list)
    documents: list[Any] = field(default_factory=list)
    analysis: Any | None = None

    @property
    def is_empty(self) -> bool:
        return not self.search_results and not self.documents and self.analysis is None
