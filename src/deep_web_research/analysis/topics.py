from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field

from deep_web_research.analysis.models import AnalysisOptions, Topic
from deep_web_research.analysis.text import (
    code_text,
    content_terms,
    is_code_paragraph,
    split_paragraphs,
    stem_phrase,
    token_spans,
    tokenize,
    top_tfidf_terms,
)
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.utils.state_helpers import clamp, overlap_ratio

PATTERN_WEIGHT = 1.0
CODE_IDENTIFIER_WEIGHT = 1.0
VOCABULARY_WEIGHT = 0.5
MENTIONS_FOR_FULL_CONFIDENCE = 3
KEYWORD_OVERLAP_THRESHOLD = 0.5
MIN_NAME_LENGTH = 3
# tokens taken on each side of a mention
KEYWORD_WINDOW = 4
KEYWORD_LIMIT = 5


@dataclass(slots=True)
class _Candidate:
    name: str
    mentions: float = 0.0
    context: Counter[str] = field(default_factory=Counter)


class TopicExtractor:
    """Nominates topic candidates per paragraph and merges near-duplicates.

    Nominators: linguistic patterns ("using X pattern", "X implementation",
    "X API"), class/function identifiers found in code, and technical
    vocabulary outside pattern matches. Confidence is ``mentions / 3``
    clipped to 1. Keywords come from the tokens around each mention, so two
    subjects sharing a paragraph keep separate keyword sets.
    """

    def __init__(self, tables: HeuristicTables = DEFAULT_TABLES) -> None:
        self.tables = tables
        self._topic_res = tuple(re.compile(pattern) for pattern in tables.topic_patterns)
        self._code_res = tuple(re.compile(pattern) for pattern in tables.code_identifier_patterns)

    def extract(self, content: str, options: AnalysisOptions | None = None) -> list[Topic]:
        options = options or AnalysisOptions()
        candidates: dict[str, _Candidate] = {}
        for paragraph in split_paragraphs(content):
            if not is_code_paragraph(paragraph):
                self._nominate_prose(candidates, paragraph)
            code = code_text(paragraph)
            if code:
                spans = token_spans(code)
                for pattern in self._code_res:
                    for match in pattern.finditer(code):
                        self._nominate(candidates, match.group(1), CODE_IDENTIFIER_WEIGHT, spans, match.span(1))

        kept: list[tuple[_Candidate, float]] = []
        for candidate in candidates.values():
            confidence = clamp(candidate.mentions / MENTIONS_FOR_FULL_CONFIDENCE)
            if confidence >= options.min_confidence:
                kept.append((candidate, confidence))
        ranked_context = top_tfidf_terms(
            [list(candidate.context.elements()) for candidate, _ in kept],
            self.tables.stop_words,
            limit=KEYWORD_LIMIT * 4,
        )
        topics = [
            Topic(
                name=candidate.name,
                confidence=confidence,
                keywords=self._keywords(candidate, context, candidates),
            )
            for (candidate, confidence), context in zip(kept, ranked_context)
        ]
        topics.sort(key=lambda topic: topic.confidence, reverse=True)
        return self.merge(topics[: options.max_topics])

    def _nominate_prose(self, candidates: dict[str, _Candidate], paragraph: str) -> None:
        spans = token_spans(paragraph)
        covered: list[tuple[int, int]] = []
        for pattern in self._topic_res:
            for match in pattern.finditer(paragraph):
                self._nominate(candidates, match.group(1), PATTERN_WEIGHT, spans, match.span())
                covered.append(match.span())
        for token, start, end in spans:
            if token not in self.tables.technical_terms:
                continue
            # "implementation" in "payment implementation" belongs to that mention
            if any(left <= start and end <= right for left, right in covered):
                continue
            self._nominate(candidates, token.capitalize(), VOCABULARY_WEIGHT, spans, (start, end))

    def _nominate(
        self,
        candidates: dict[str, _Candidate],
        raw_name: str,
        weight: float,
        spans: list[tuple[str, int, int]],
        span: tuple[int, int],
    ) -> None:
        name = " ".join(raw_name.split())
        key = name.lower()
        if len(key) < MIN_NAME_LENGTH or key in self.tables.stop_words:
            return
        candidate = candidates.get(key)
        if candidate is None:
            candidate = candidates[key] = _Candidate(name=name)
        candidate.mentions += weight
        candidate.context.update(_window(spans, span))

    def _keywords(
        self,
        candidate: _Candidate,
        ranked_context: list[str],
        candidates: dict[str, _Candidate],
    ) -> list[str]:
        keywords = content_terms(tokenize(candidate.name), self.tables.stop_words)
        # another candidate's name says which subject is nearby, not what this one is about
        other_names = {
            term
            for other in candidates.values()
            if other is not candidate
            for term in tokenize(other.name)
        }
        for term in ranked_context:
            if len(keywords) >= KEYWORD_LIMIT:
                break
            if term not in keywords and term not in other_names:
                keywords.append(term)
        return keywords

    # -- merging ----------------------------------------------------------

    def are_similar(self, first: Topic, second: Topic) -> bool:
        if stem_phrase(first.name) == stem_phrase(second.name):
            return True
        if not first.keywords or not second.keywords:
            return False
        return overlap_ratio(first.keywords, second.keywords) > KEYWORD_OVERLAP_THRESHOLD

    def are_related(self, first: Topic, second: Topic) -> bool:
        name_a = first.name.lower()
        name_b = second.name.lower()
        return any(
            (left in name_a and right in name_b) or (right in name_a and left in name_b)
            for left, right in self.tables.co_occurring_pairs
        )

    def display_name(self, names: list[str]) -> str:
        for name in names:
            if name.lower() in self.tables.technical_terms:
                return name
        return max(names, key=len)

    def merge(self, topics: list[Topic]) -> list[Topic]:
        """Greedy merge in confidence order; every input lands in exactly one output topic."""
        merged: list[Topic] = []
        consumed: set[int] = set()
        for index, topic in enumerate(topics):
            if index in consumed:
                continue
            group = [topic]
            consumed.add(index)
            for other_index in range(index + 1, len(topics)):
                if other_index in consumed:
                    continue
                other = topics[other_index]
                if self.are_similar(topic, other) or self.are_related(topic, other):
                    group.append(other)
                    consumed.add(other_index)
            if len(group) == 1:
                merged.append(topic)
                continue
            keywords: list[str] = []
            for member in group:
                keywords.extend(keyword for keyword in member.keywords if keyword not in keywords)
            merged.append(
                Topic(
                    name=self.display_name([member.name for member in group]),
                    confidence=max(member.confidence for member in group),
                    keywords=keywords,
                )
            )
        return _unique_names(merged)


def _unique_names(topics: list[Topic]) -> list[Topic]:
    seen: dict[str, Topic] = {}
    for topic in topics:
        existing = seen.get(topic.name)
        if existing is None:
            seen[topic.name] = topic
            continue
        existing.confidence = max(existing.confidence, topic.confidence)
        existing.keywords.extend(keyword for keyword in topic.keywords if keyword not in existing.keywords)
    return list(seen.values())


def _window(spans: list[tuple[str, int, int]], span: tuple[int, int]) -> list[str]:
    """Tokens of a mention plus ``KEYWORD_WINDOW`` tokens on either side."""
    start, end = span
    inside = [index for index, (_, left, right) in enumerate(spans) if left >= start and right <= end]
    if not inside:
        return []
    first, last = inside[0], inside[-1]
    return [token for token, _, _ in spans[max(0, first - KEYWORD_WINDOW) : last + 1 + KEYWORD_WINDOW]]
