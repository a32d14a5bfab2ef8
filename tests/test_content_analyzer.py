from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from deep_web_research.analysis import (
    AnalysisOptions,
    CitationType,
    ContentAnalyzer,
    EntityType,
    KeyPoint,
    SentimentResult,
    Topic,
)
from deep_web_research.analysis.entities import extract_citations, extract_entities, find_relationships
from deep_web_research.analysis.key_points import KeyPointExtractor, SentencePool, deduplicate_key_points
from deep_web_research.analysis.quality import QualityAssessor, readability
from deep_web_research.analysis.text import has_code, split_paragraphs, split_sentences
from deep_web_research.analysis.topics import TopicExtractor
from deep_web_research.extraction import ContentExtractor, ExtractedDocument

PUBLISHED = datetime(2024, 1, 15, tzinfo=timezone.utc)
STANDARDS_TEXT = (
    "FIPS 203 standardizes ML-KEM-768 for key encapsulation. "
    "See RFC 9180 and https://csrc.nist.gov/pubs [1]."
)


def fixed_clock() -> datetime:
    return PUBLISHED


# -- text helpers -----------------------------------------------------------


def test_fenced_code_stays_one_paragraph():
    content = "Intro.\n\n```\na\n\nb\n```\n\nOutro."
    assert split_paragraphs(content) == ["Intro.", "```\na\n\nb\n```", "Outro."]


def test_sentences_skip_code_and_markdown_markers():
    content = "# Heading line\n- First item here. Second sentence!\n\n```\ncode. more\n```"
    assert split_sentences(content) == ["Heading line", "First item here.", "Second sentence!"]


def test_has_code():
    assert has_code("Call `run()` now")
    assert has_code("Use parse(text) to read it")
    assert not has_code("Plain prose without calls.")


# -- topics -----------------------------------------------------------------


def test_pattern_nomination_and_confidence():
    topics = TopicExtractor().extract("The Stripe API handles refunds.")

    assert [topic.name for topic in topics] == ["Stripe"]
    assert topics[0].confidence == pytest.approx(1 / 3)
    assert topics[0].keywords[0] == "stripe"
    assert "refunds" in topics[0].keywords


def test_code_identifiers_nominate_topics():
    topics = TopicExtractor().extract("```\nclass EventBus:\n    pass\n```")
    assert [topic.name for topic in topics] == ["EventBus"]


def test_distinct_subjects_in_one_paragraph_stay_separate():
    content = (
        "We built the payment implementation around idempotent charges. "
        "The payment implementation retries declined cards. "
        "Our payment implementation logs every refund. "
        "The caching implementation expires stale entries. "
        "A caching implementation warms popular pages. "
        "Each caching implementation evicts old entries."
    )
    topics = {topic.name: topic for topic in TopicExtractor().extract(content)}

    assert set(topics) == {"payment", "caching"}
    assert topics["payment"].confidence == 1.0
    assert topics["caching"].confidence == 1.0
    assert "caching" not in topics["payment"].keywords
    assert "payment" not in topics["caching"].keywords
    assert "entries" in topics["caching"].keywords


def test_low_confidence_topics_are_dropped():
    assert TopicExtractor().extract("The Stripe API handles refunds.", AnalysisOptions(min_confidence=0.5)) == []


def test_stem_equivalent_topics_merge():
    merged = TopicExtractor().merge(
        [Topic("Caching", 0.9, ["caching"]), Topic("Cache", 0.5, ["cache"])]
    )
    assert len(merged) == 1
    assert merged[0].name == "Cache"
    assert merged[0].confidence == 0.9
    assert merged[0].keywords == ["caching", "cache"]


def test_co_occurring_topics_merge_under_the_longer_name():
    merged = TopicExtractor().merge(
        [Topic("Quantum computing", 0.8, ["qubits"]), Topic("Post-quantum cryptography", 0.6, ["lattice"])]
    )
    assert [topic.name for topic in merged] == ["Post-quantum cryptography"]
    assert merged[0].confidence == 0.8


def test_unrelated_topics_stay_apart():
    topics = [Topic("Observer", 0.9, ["observer", "listener"]), Topic("Database", 0.5, ["schema", "index"])]
    assert [topic.name for topic in TopicExtractor().merge(topics)] == ["Observer", "Database"]


# -- key points -------------------------------------------------------------


@pytest.mark.parametrize(
    ("sentence", "pool"),
    [
        ("You should always unregister listeners.", SentencePool.BEST_PRACTICE),
        ("Call the register function to add a handler.", SentencePool.IMPLEMENTATION),
        ("The cache and the database share a schema.", SentencePool.INSIGHTFUL),
        ("Subscribe for cache and database tips.", None),
        ("The weather is pleasant today.", None),
    ],
)
def test_sentence_classification(sentence, pool):
    extractor = KeyPointExtractor()
    assert extractor.classify(sentence, sentence.lower().rstrip(".").split()) is pool


def test_key_points_are_scored_against_topics():
    content = "You should always cache the database query results.\n\nThe weather today is pleasant and calm."
    points = KeyPointExtractor().extract(content, [Topic("Cache", 1.0, ["cache"])])

    assert [point.text for point in points] == ["You should always cache the database query results."]
    assert points[0].importance == 1.0
    assert points[0].topics == ["Cache"]


def test_short_sentences_are_ignored():
    assert KeyPointExtractor().extract("Always cache.", [Topic("Cache", 1.0, ["cache"])]) == []


def test_supporting_evidence_shares_terms():
    content = (
        "You should cache database query results aggressively. "
        "Stale database query results need cache invalidation. "
        "Nothing else matters here at all."
    )
    points = KeyPointExtractor().extract(content, [Topic("Cache", 1.0, ["cache"])])

    first = next(point for point in points if point.text.startswith("You should"))
    assert first.supporting_evidence == ["Stale database query results need cache invalidation."]


def test_duplicate_key_points_keep_the_first():
    points = [
        KeyPoint("Use a cache.", 0.9),
        KeyPoint("use a   cache", 0.5),
        KeyPoint("Something else entirely", 0.4),
    ]
    assert [point.importance for point in deduplicate_key_points(points)] == [0.9, 0.4]


# -- entities and citations -------------------------------------------------


def test_entities_and_relationships():
    entities = extract_entities(STANDARDS_TEXT)

    assert [(entity.name, entity.type) for entity in entities] == [
        ("FIPS 203", EntityType.STANDARD),
        ("RFC 9180", EntityType.STANDARD),
        ("ML-KEM-768", EntityType.ALGORITHM),
    ]
    assert entities[2].mentions[0].start == 22

    relationships = find_relationships(entities)
    assert [(rel.source, rel.target) for rel in relationships] == [
        ("FIPS 203", "ML-KEM-768"),
        ("RFC 9180", "ML-KEM-768"),
    ]
    assert relationships[0].confidence == pytest.approx(0.78)
    assert relationships[0].type == "specifies"


def test_distant_entities_are_not_related():
    text = "FIPS 203" + " filler" * 30 + " ML-KEM"
    assert find_relationships(extract_entities(text)) == []


def test_citations():
    citations = extract_citations(STANDARDS_TEXT)

    assert [(citation.text, citation.type) for citation in citations] == [
        ("FIPS 203", CitationType.STANDARD),
        ("RFC 9180", CitationType.STANDARD),
        ("https://csrc.nist.gov/pubs", CitationType.URL),
        ("[1]", CitationType.REFERENCE),
    ]
    assert citations[2].source == "https://csrc.nist.gov/pubs"


def test_markdown_links_are_not_reference_markers():
    assert extract_citations("See [2](https://example.com/two) for details.")[-1].type is CitationType.URL


# -- quality and sentiment --------------------------------------------------


def test_readability_bounds():
    assert readability("") == 0.0
    assert 0.0 <= readability("The cat sat on the mat. It was warm.") <= 1.0
    assert readability("The cat sat on the mat.") > readability(
        "Cryptographic implementations necessitate comprehensive verification methodologies."
    )


def test_freshness():
    assessor = QualityAssessor(clock=fixed_clock)
    assert assessor.freshness("2024-01-15T00:00:00Z") == 1.0
    assert assessor.freshness((PUBLISHED - timedelta(days=730)).isoformat()) == 0.0
    assert assessor.freshness(None) == 0.5
    assert assessor.freshness("last tuesday") == 0.5


def test_credibility():
    assessor = QualityAssessor()
    assert assessor.credibility("https://example.com", [], has_citations=False) == 0.5
    assert assessor.credibility("https://csrc.nist.gov/x", [], has_citations=True) == pytest.approx(0.8)
    assert assessor.credibility("https://example.com", ["cache", "words"], has_citations=False) == pytest.approx(0.6)


def test_density_and_depth():
    assessor = QualityAssessor()
    tokens = ["cache", "cache", "query", "apple", "pear", "plum", "fig", "kiwi", "lime", "date"]
    assert assessor.information_density(tokens) == 1.0
    assert assessor.technical_depth(tokens) == pytest.approx(2 / 20)


@pytest.mark.parametrize(
    ("text", "score", "confidence"),
    [
        ("great great", 1.0, 0.6),
        ("bad", -1.0, 0.6),
        ("neutral words only", 0.0, 0.0),
        ("", 0.0, 0.0),
    ],
)
def test_sentiment(text, score, confidence):
    result = QualityAssessor().sentiment(text)
    assert result.score == pytest.approx(score)
    assert result.confidence == pytest.approx(confidence)


# -- analyzer ---------------------------------------------------------------


def test_analyze_extracted_page(technical_page):
    document = ContentExtractor().extract(technical_page, "https://example.com/observer")
    analysis = ContentAnalyzer(clock=fixed_clock).analyze(document)

    assert 0.0 <= analysis.relevance_score <= 1.0
    assert analysis.topics
    assert analysis.quality.freshness == 1.0
    assert 0.0 <= analysis.quality.overall <= 1.0
    payload = analysis.to_dict()
    assert set(payload) == {
        "relevanceScore",
        "topics",
        "keyPoints",
        "entities",
        "sentiment",
        "relationships",
        "citations",
        "quality",
    }
    assert "informationDensity" in payload["quality"]


def test_optional_sections_can_be_disabled():
    document = ExtractedDocument(url="https://example.com", title="Standards", content=STANDARDS_TEXT + " Great work.")
    options = AnalysisOptions(include_sentiment=False, include_relationships=False, include_citations=False)

    analysis = ContentAnalyzer().analyze(document, options)

    assert analysis.sentiment == SentimentResult()
    assert analysis.relationships == []
    assert analysis.citations == []
    assert len(analysis.entities) == 3
    # citations still count toward credibility
    assert analysis.quality.credibility_score > 0.5 + 0.1
