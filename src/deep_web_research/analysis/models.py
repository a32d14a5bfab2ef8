from __future__ import annotations
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EntityType(StrEnum):
    STANDARD = "standard"
    ALGORITHM = "algorithm"
    ORGANIZATION = "organization"
    PERSON = "person"
    TECHNOLOGY = "technology"


class CitationType(StrEnum):
    STANDARD = "standard"
    URL = "url"
    REFERENCE = "reference"


@dataclass(slots=True)
class AnalysisOptions:
    max_topics: int = 5
    max_key_points: int = 10
    min_confidence: float = 0.3
    min_importance: float = 0.5
    include_sentiment: bool = True
    include_relationships: bool = True
    include_citations: bool = True


@dataclass(slots=True)
class Topic:
    """A recurring subject with its supporting keyword set."""

    name: str
    confidence: float
    keywords: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "confidence": round(self.confidence, 4),
            "keywords": list(self.keywords),
        }


@dataclass(slots=True)
class KeyPoint:
    text: str
    importance: float
    topics: list[str] = field(default_factory=list)
    supporting_evidence: list[str] = field(default_factory=list)
    has_code: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "importance": round(self.importance, 4),
            "topics": list(self.topics),
            "supportingEvidence": list(self.supporting_evidence),
        }


@dataclass(slots=True)
class EntityMention:
    text: str
    start: int
    end: int
    context: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "position": {"start": self.start, "end": self.end},
            "context": self.context,
        }


@dataclass(slots=True)
class Entity:
    name: str
    type: EntityType
    mentions: list[EntityMention] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "mentions": [mention.to_dict() for mention in self.mentions],
        }


@dataclass(slots=True)
class Relationship:
    source: str
    target: str
    type: str
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "confidence": round(self.confidence, 4),
        }


@dataclass(slots=True)
class Citation:
    text: str
    type: CitationType
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"text": self.text, "type": self.type.value}
        if self.source is not None:
            payload["source"] = self.source
        return payload


@dataclass(slots=True)
class SentimentResult:
    score: float = 0.0
    confidence: float = 0.0
    aspects: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": round(self.score, 4),
            "confidence": round(self.confidence, 4),
            "aspects": list(self.aspects),
        }


@dataclass(slots=True)
class ContentQuality:
    """Per-document quality signals, each in ``[0, 1]``."""

    readability: float
    information_density: float
    technical_depth: float
    credibility_score: float
    freshness: float
    overall: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "readability": round(self.readability, 4),
            "informationDensity": round(self.information_density, 4),
            "technicalDepth": round(self.technical_depth, 4),
            "credibilityScore": round(self.credibility_score, 4),
            "freshness": round(self.freshness, 4),
            "overall": round(self.overall, 4),
        }


@dataclass(slots=True)
class ContentAnalysis:
    relevance_score: float
    topics: list[Topic]
    key_points: list[KeyPoint]
    entities: list[Entity]
    sentiment: SentimentResult
    relationships: list[Relationship]
    citations: list[Citation]
    quality: ContentQuality

    def to_dict(self) -> dict[str, Any]:
        return {
            "relevanceScore": round(self.relevance_score, 4),
            "topics": [topic.to_dict() for topic in self.topics],
            "keyPoints": [point.to_dict() for point in self.key_points],
            "entities": [entity.to_dict() for entity in self.entities],
            "sentiment": self.sentiment.to_dict(),
            "relationships": [relationship.to_dict() for relationship in self.relationships],
            "citations": [citation.to_dict() for citation in self.citations],
            "quality": self.quality.to_dict(),
        }
