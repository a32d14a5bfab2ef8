from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Literal

from deep_web_research.core.state import utc_now_iso

SegmentKind = Literal["main", "technical"]


@dataclass(slots=True)
class ExtractionOptions:
    include_html: bool = False
    extract_structured_data: bool = False
    max_content_length: int | None = None


@dataclass(slots=True)
class DocumentMetadata:
    author: str | None = None
    date_published: str | None = None
    last_modified: str | None = None
    language: str | None = None
    word_count: int | None = None
    reading_time: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "author": self.author,
            "datePublished": self.date_published,
            "lastModified": self.last_modified,
            "language": self.language,
            "wordCount": self.word_count,
            "readingTime": self.reading_time,
        }
        return {key: value for key, value in payload.items() if value is not None}


@dataclass(slots=True)
class ContentSegment:
    """One heading-delimited (or technical-block-delimited) unit of a page."""
    id: str
    html: str
    text: str
    importance: float
    kind: SegmentKind = "main"
    title: str | None = None
    markdown: str = ""

    @property
    def is_technical(self) -> bool:
        return self.kind == "technical"

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.kind,
            "importance": round(self.importance, 4),
            "content": self.html,
        }
        if self.title is not None:
            payload["title"] = self.title
        return payload


@dataclass(slots=True)
class ExtractedDocument:
    url: str
    title: str
    content: str
    segments: list[ContentSegment] = field(default_factory=list)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    timestamp: str = field(default_factory=utc_now_iso)
    structured_data: list[Any] | None = None
    html: str | None = None

    @property
    def has_technical_segments(self) -> bool:
        return any(segment.is_technical for segment in self.segments)

    def technical_text(self) -> str:
        return "\n".join(segment.text for segment in self.segments if segment.is_technical)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "timestamp": self.timestamp,
            "metadata": self.metadata.to_dict(),
        }
        if self.structured_data is not None:
            payload["structuredData"] = self.structured_data
        if self.html is not None:
            payload["html"] = self.html
        return payload
