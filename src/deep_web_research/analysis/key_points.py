from __future__ import annotations

import re
from enum import StrEnum

from deep_web_research.analysis.models import AnalysisOptions, KeyPoint, Topic
from deep_web_research.analysis.text import content_terms, has_code, split_sentences, tokenize
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.utils.state_helpers import clamp, jaccard, safe_divide

MIN_SENTENCE_LENGTH = 20
MIN_INSIGHTFUL_TERMS = 2
DENSITY_SCALE = 5
DENSITY_WEIGHT = 0.4
TOPIC_WEIGHT = 0.4
CODE_WEIGHT = 0.2
BEST_PRACTICE_MULTIPLIER = 1.3
IMPLEMENTATION_MULTIPLIER = 1.2
DUPLICATE_SIMILARITY = 0.8
MIN_SHARED_EVIDENCE_TERMS = 2
MAX_EVIDENCE = 3

_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


class SentencePool(StrEnum):
    BEST_PRACTICE = "best_practice"
    IMPLEMENTATION = "implementation"
    INSIGHTFUL = "insightful"


POOL_MULTIPLIERS = {
    SentencePool.BEST_PRACTICE: BEST_PRACTICE_MULTIPLIER,
    SentencePool.IMPLEMENTATION: IMPLEMENTATION_MULTIPLIER,
    SentencePool.INSIGHTFUL: 1.0,
}


def normalize_text(text: str) -> str:
    text = _WHITESPACE_RE.sub(" ", text.lower())
    return _NON_WORD_RE.sub("", text).strip()


def deduplicate_key_points(points: list[KeyPoint]) -> list[KeyPoint]:
    """First-seen wins; duplicates share normalized text or exceed 0.8 token Jaccard."""
    unique: list[KeyPoint] = []
    seen: list[tuple[str, set[str]]] = []
    for point in points:
        normalized = normalize_text(point.text)
        words = set(normalized.split())
        if any(normalized == text or jaccard(words, other) > DUPLICATE_SIMILARITY for text, other in seen):
            continue
        seen.append((normalized, words))
        unique.append(point)
    return unique


class KeyPointExtractor:
    def __init__(self, tables: HeuristicTables = DEFAULT_TABLES) -> None:
        self.tables = tables
        self._best_practice_res = tuple(re.compile(p, re.IGNORECASE) for p in tables.best_practice_patterns)
        self._implementation_res = tuple(re.compile(p, re.IGNORECASE) for p in tables.implementation_patterns)
        self._boilerplate_res = tuple(re.compile(p, re.IGNORECASE) for p in tables.boilerplate_sentence_patterns)

    def classify(self, sentence: str, tokens: list[str]) -> SentencePool | None:
        """Assign a sentence to exactly one pool, or ``None`` when it is not a key point candidate."""
        if any(pattern.search(sentence) for pattern in self._best_practice_res):
            return SentencePool.BEST_PRACTICE
        if any(pattern.search(sentence) for pattern in self._implementation_res):
            return SentencePool.IMPLEMENTATION
        technical = sum(1 for token in tokens if token in self.tables.technical_terms)
        if technical >= MIN_INSIGHTFUL_TERMS and not any(p.search(sentence) for p in self._boilerplate_res):
            return SentencePool.INSIGHTFUL
        return None

    def importance(self, tokens: list[str], sentence_has_code: bool, topics: list[Topic], pool: SentencePool) -> float:
        technical = sum(1 for token in tokens if token in self.tables.technical_terms)
        density = clamp(safe_divide(technical, len(tokens)) * DENSITY_SCALE)
        token_set = set(tokens)
        matched = sum(1 for topic in topics if token_set.intersection(topic.keywords))
        topic_overlap = safe_divide(matched, len(topics))
        base = DENSITY_WEIGHT * density + TOPIC_WEIGHT * topic_overlap + CODE_WEIGHT * float(sentence_has_code)
        return clamp(base * POOL_MULTIPLIERS[pool])

    def extract(self, content: str, topics: list[Topic], options: AnalysisOptions | None = None) -> list[KeyPoint]:
        options = options or AnalysisOptions()
        sentences = [s for s in split_sentences(content) if len(s) >= MIN_SENTENCE_LENGTH]
        tokenized = [tokenize(sentence) for sentence in sentences]

        points: list[KeyPoint] = []
        for index, sentence in enumerate(sentences):
            tokens = tokenized[index]
            pool = self.classify(sentence, tokens)
            if pool is None:
                continue
            sentence_has_code = has_code(sentence)
            importance = self.importance(tokens, sentence_has_code, topics, pool)
            if importance < options.min_importance:
                continue
            token_set = set(tokens)
            points.append(
                KeyPoint(
                    text=sentence,
                    importance=importance,
                    topics=[topic.name for topic in topics if token_set.intersection(topic.keywords)],
                    supporting_evidence=self._evidence(index, sentences, tokenized),
                    has_code=sentence_has_code,
                )
            )

        points.sort(key=lambda point: point.importance, reverse=True)
        return deduplicate_key_points(points)[: options.max_key_points]

    def _evidence(self, index: int, sentences: list[str], tokenized: list[list[str]]) -> list[str]:
        terms = set(content_terms(tokenized[index], self.tables.stop_words))
        evidence: list[str] = []
        for other_index, other in enumerate(sentences):
            if other_index == index or other == sentences[index]:
                continue
            other_tokens = tokenized[other_index]
            if len(terms.intersection(other_tokens)) < MIN_SHARED_EVIDENCE_TERMS:
                continue
            if any(token in self.tables.technical_terms for token in other_tokens):
                evidence.append(other)
                if len(evidence) >= MAX_EVIDENCE:
                    break
        return evidence
