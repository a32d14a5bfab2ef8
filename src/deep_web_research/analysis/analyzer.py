from __future__ import annotations

from deep_web_research.analysis.entities import extract_citations, extract_entities, find_relationships
from deep_web_research.analysis.key_points import KeyPointExtractor
from deep_web_research.analysis.models import AnalysisOptions, ContentAnalysis, SentimentResult
from deep_web_research.analysis.quality import Clock, QualityAssessor, utc_now
from deep_web_research.analysis.topics import TopicExtractor
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.extraction import ExtractedDocument
from deep_web_research.utils import get_logger
from deep_web_research.utils.state_helpers import clamp, safe_average

TOPIC_RELEVANCE_WEIGHT = 0.6
DEPTH_RELEVANCE_WEIGHT = 0.2
DENSITY_RELEVANCE_WEIGHT = 0.2


class ContentAnalyzer:
    """Derives topics, key points, entities, sentiment and quality from one document.

    Analysis is pure CPU work over ``document.content`` and never awaits, so a
    caller can run it between suspension points without interleaving.
    """

    def __init__(self, tables: HeuristicTables = DEFAULT_TABLES, clock: Clock = utc_now) -> None:
        self.tables = tables
        self.topics = TopicExtractor(tables)
        self.key_points = KeyPointExtractor(tables)
        self.quality = QualityAssessor(tables, clock=clock)
        self.logger = get_logger(__name__)

    def analyze(self, document: ExtractedDocument, options: AnalysisOptions | None = None) -> ContentAnalysis:
        options = options or AnalysisOptions()
        text = document.content

        topics = self.topics.extract(text, options)
        key_points = self.key_points.extract(text, topics, options)
        entities = extract_entities(text, self.tables)
        citations = extract_citations(text, self.tables)
        quality = self.quality.assess(
            text,
            document.url,
            document.metadata.date_published,
            has_citations=bool(citations),
        )

        relevance = clamp(
            TOPIC_RELEVANCE_WEIGHT * safe_average(topic.confidence for topic in topics)
            + DEPTH_RELEVANCE_WEIGHT * quality.technical_depth
            + DENSITY_RELEVANCE_WEIGHT * quality.information_density
        )
        analysis = ContentAnalysis(
            relevance_score=relevance,
            topics=topics,
            key_points=key_points,
            entities=entities,
            sentiment=self.quality.sentiment(text) if options.include_sentiment else SentimentResult(),
            relationships=find_relationships(entities) if options.include_relationships else [],
            citations=citations if options.include_citations else [],
            quality=quality,
        )
        self.logger.debug(
            "analyzer.complete",
            url=document.url,
            relevance=round(relevance, 3),
            topics=len(topics),
            key_points=len(key_points),
            entities=len(entities),
        )
        return analysis
