"""Tokenizing, stemming and paragraph/sentence splitting for the analyzer."""

from __future__ import annotations

import math
import re
from collections import Counter
from functools import lru_cache
from typing import Iterable, Sequence

from nltk.stem import PorterStemmer
from nltk.tokenize import RegexpTokenizer

FENCE = "```"
MIN_TERM_LENGTH = 3

_TOKENIZER = RegexpTokenizer(r"\w+")
_STEMMER = PorterStemmer()
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!?])\s+")
_MARKDOWN_PREFIX_RE = re.compile(r"^\s*(?:#{1,6}\s+|[-*+]\s+|\d+\.\s+|>\s*)+")
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_CALL_RE = re.compile(r"\b[A-Za-z_][A-Za-z0-9_.]*\([^)]*\)")


def tokenize(text: str) -> list[str]:
    return _TOKENIZER.tokenize(text.lower())


def token_spans(text: str) -> list[tuple[str, int, int]]:
    """Lowercased tokens with their character offsets in ``text``."""
    return [(text[start:end].lower(), start, end) for start, end in _TOKENIZER.span_tokenize(text)]


@lru_cache(maxsize=4096)
def stem_phrase(phrase: str) -> str:
    """Stem every token of ``phrase`` so multi-word names compare as units."""
    return " ".join(_STEMMER.stem(token) for token in tokenize(phrase))


def split_paragraphs(content: str) -> list[str]:
    """Blank-line separated paragraphs; a fenced code block is always one paragraph."""
    paragraphs: list[str] = []
    current: list[str] = []
    in_fence = False

    def flush() -> None:
        text = "\n".join(current).strip()
        if text:
            paragraphs.append(text)
        current.clear()

    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith(FENCE):
            if not in_fence:
                flush()
            current.append(line)
            in_fence = not in_fence
            if not in_fence:
                flush()
            continue
        if in_fence:
            current.append(line)
        elif not stripped:
            flush()
        else:
            current.append(line)
    flush()
    return paragraphs


def is_code_paragraph(paragraph: str) -> bool:
    return paragraph.lstrip().startswith(FENCE)


def code_text(paragraph: str) -> str:
    """Fenced block body, or the inline code spans of a prose paragraph."""
    if is_code_paragraph(paragraph):
        lines = paragraph.splitlines()[1:]
        if lines and lines[-1].strip().startswith(FENCE):
            lines = lines[:-1]
        return "\n".join(lines)
    return "\n".join(_INLINE_CODE_RE.findall(paragraph))


def split_sentences(content: str) -> list[str]:
    """Sentences from prose paragraphs with markdown list and heading markers removed."""
    sentences: list[str] = []
    for paragraph in split_paragraphs(content):
        if is_code_paragraph(paragraph):
            continue
        for line in paragraph.splitlines():
            line = _MARKDOWN_PREFIX_RE.sub("", line).strip()
            if not line:
                continue
            sentences.extend(part.strip() for part in _SENTENCE_BREAK_RE.split(line) if part.strip())
    return sentences


def has_code(sentence: str) -> bool:
    return bool(_INLINE_CODE_RE.search(sentence) or _CALL_RE.search(sentence))


def content_terms(tokens: Iterable[str], stop_words: frozenset[str]) -> list[str]:
    return [
        token
        for token in tokens
        if len(token) >= MIN_TERM_LENGTH and token not in stop_words and not token.isdigit()
    ]


def top_tfidf_terms(
    paragraphs: Sequence[Sequence[str]],
    stop_words: frozenset[str],
    limit: int = 5,
) -> list[list[str]]:
    """Highest TF-IDF terms per paragraph, treating each paragraph as a document."""
    documents = [content_terms(tokens, stop_words) for tokens in paragraphs]
    document_frequency: Counter[str] = Counter()
    for terms in documents:
        document_frequency.update(set(terms))

    total = len(documents)
    ranked: list[list[str]] = []
    for terms in documents:
        if not terms:
            ranked.append([])
            continue
        counts = Counter(terms)
        scores = {
            term: (count / len(terms)) * (math.log((1 + total) / (1 + document_frequency[term])) + 1)
            for term, count in counts.items()
        }
        ordered = sorted(scores, key=lambda term: (-scores[term], term))
        ranked.append(ordered[:limit])
    return ranked
