from .analyzer import ContentAnalyzer
from .entities import extract_citations, extract_entities, find_relationships
from .key_points import KeyPointExtractor, deduplicate_key_points
from .models import (
    AnalysisOptions,
    Citation,
    CitationType,
    ContentAnalysis,
    ContentQuality,
    Entity,
    EntityMention,
    EntityType,
    KeyPoint,
    Relationship,
    SentimentResult,
    Topic,
)
from .quality import QualityAssessor
from .topics import TopicExtractor

__all__ = [
    "AnalysisOptions",
    "Citation",
    "CitationType",
    "ContentAnalysis",
    "ContentAnalyzer",
    "ContentQuality",
    "Entity",
    "EntityMention",
    "EntityType",
    "KeyPoint",
    "KeyPointExtractor",
    "QualityAssessor",
    "Relationship",
    "SentimentResult",
    "Topic",
    "TopicExtractor",
    "deduplicate_key_points",
    "extract_citations",
    "extract_entities",
    "find_relationships",
]
