from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable

from deep_web_research.analysis.models import ContentQuality, SentimentResult
from deep_web_research.analysis.text import tokenize
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.utils.state_helpers import clamp, safe_divide

DENSITY_SHARE = 0.2
DEPTH_CAP = 20
CREDIBILITY_BASE = 0.5
CREDIBILITY_DOMAIN_BONUS = 0.2
CREDIBILITY_CITATION_BONUS = 0.1
CREDIBILITY_RATIO_WEIGHT = 0.2
DEFAULT_FRESHNESS = 0.5
FRESHNESS_HORIZON_DAYS = 365
SENTIMENT_CONFIDENCE_SCALE = 5

QUALITY_WEIGHTS = {
    "readability": 0.2,
    "information_density": 0.2,
    "technical_depth": 0.25,
    "credibility_score": 0.25,
    "freshness": 0.1,
}

_SENTENCE_END_RE = re.compile(r"[.!?]+")
_SILENT_SUFFIX_RE = re.compile(r"(?:[^laeiouy]es|ed|[^laeiouy]e)$")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]{1,2}")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def count_syllables(word: str) -> int:
    word = word.lower()
    if len(word) <= 3:
        return 1
    word = _SILENT_SUFFIX_RE.sub("", word)
    word = word.removeprefix("y")
    return len(_VOWEL_GROUP_RE.findall(word)) or 1


def readability(text: str) -> float:
    """Flesch-Kincaid grade mapped onto ``[0, 1]``; grade 10 lands on 0.5."""
    words = text.split()
    if not words:
        return 0.0
    sentences = max(1, len([part for part in _SENTENCE_END_RE.split(text) if part.strip()]))
    syllables = sum(count_syllables(word) for word in words)
    grade = 0.39 * (len(words) / sentences) + 11.8 * (syllables / len(words)) - 15.59
    return clamp(1 - grade / 20)


def parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class QualityAssessor:
    def __init__(self, tables: HeuristicTables = DEFAULT_TABLES, clock: Clock = utc_now) -> None:
        self.tables = tables
        self.clock = clock

    def technical_tokens(self, tokens: list[str]) -> list[str]:
        return [token for token in tokens if token in self.tables.technical_terms]

    def information_density(self, tokens: list[str]) -> float:
        return clamp(safe_divide(len(self.technical_tokens(tokens)), len(tokens) * DENSITY_SHARE))

    def technical_depth(self, tokens: list[str]) -> float:
        return min(len(set(self.technical_tokens(tokens))), DEPTH_CAP) / DEPTH_CAP

    def credibility(self, url: str, tokens: list[str], has_citations: bool) -> float:
        score = CREDIBILITY_BASE
        lowered = url.lower()
        if any(marker in lowered for marker in self.tables.credibility_domains):
            score += CREDIBILITY_DOMAIN_BONUS
        if has_citations:
            score += CREDIBILITY_CITATION_BONUS
        score += safe_divide(len(self.technical_tokens(tokens)), len(tokens)) * CREDIBILITY_RATIO_WEIGHT
        return clamp(score)

    def freshness(self, date_published: str | None) -> float:
        published = parse_date(date_published)
        if published is None:
            return DEFAULT_FRESHNESS
        age_days = (self.clock() - published).total_seconds() / 86400
        return clamp(1 - age_days / FRESHNESS_HORIZON_DAYS)

    def assess(self, text: str, url: str, date_published: str | None, has_citations: bool) -> ContentQuality:
        tokens = tokenize(text)
        signals = {
            "readability": readability(text),
            "information_density": self.information_density(tokens),
            "technical_depth": self.technical_depth(tokens),
            "credibility_score": self.credibility(url, tokens, has_citations),
            "freshness": self.freshness(date_published),
        }
        overall = sum(QUALITY_WEIGHTS[name] * value for name, value in signals.items())
        return ContentQuality(overall=clamp(overall), **signals)

    def sentiment(self, text: str) -> SentimentResult:
        """Mean lexicon polarity per token, clipped to ``[-1, 1]``."""
        tokens = tokenize(text)
        lexicon = self.tables.sentiment_lexicon
        raw = safe_divide(sum(lexicon.get(token, 0) for token in tokens), len(tokens))
        return SentimentResult(
            score=clamp(raw, -1.0, 1.0),
            confidence=clamp(abs(raw) / SENTIMENT_CONFIDENCE_SCALE),
        )
