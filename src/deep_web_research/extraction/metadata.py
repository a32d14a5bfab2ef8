"""Title, metadata and JSON-LD lookups over the unmodified page markup."""

from __future__ import annotations

import math
from typing import Any

import orjson
from bs4 import BeautifulSoup, Tag

from deep_web_research.extraction.document import DocumentMetadata

WORDS_PER_MINUTE = 200

AUTHOR_CHAIN: tuple[tuple[str, str | None], ...] = (
    ('meta[name="author"]', "content"),
    ('meta[property="article:author"]', "content"),
    ('[itemprop="author"]', "content"),
    ('[rel="author"]', None),
    (".author", None),
    (".byline", None),
)
PUBLISHED_CHAIN: tuple[tuple[str, str | None], ...] = (
    ('meta[property="article:published_time"]', "content"),
    ('meta[name="publication-date"]', "content"),
    ('meta[name="date"]', "content"),
    ('[itemprop="datePublished"]', "content"),
    ('[itemprop="datePublished"]', "datetime"),
    ("time[datetime]", "datetime"),
)
MODIFIED_CHAIN: tuple[tuple[str, str | None], ...] = (
    ('meta[property="article:modified_time"]', "content"),
    ('meta[name="last-modified"]', "content"),
    ('[itemprop="dateModified"]', "content"),
    ('[itemprop="dateModified"]', "datetime"),
)


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        value = " ".join(value)
    text = " ".join(str(value).split())
    return text or None


def _first(soup: BeautifulSoup, chain: tuple[tuple[str, str | None], ...]) -> str | None:
    """First non-empty value in a (selector, attribute) chain; ``None`` attribute reads text."""
    for selector, attribute in chain:
        element = soup.select_one(selector)
        if element is None:
            continue
        value = _clean(element.get(attribute)) if attribute else _clean(element.get_text(" ", strip=True))
        if value:
            return value
    return None


def extract_title(soup: BeautifulSoup) -> str:
    og_title = soup.select_one('meta[property="og:title"]')
    candidates = [
        og_title.get("content") if og_title is not None else None,
        _text_of(soup.select_one("article h1")),
        _text_of(soup.find("h1")),
        _text_of(soup.find("title")),
    ]
    for candidate in candidates:
        cleaned = _clean(candidate)
        if cleaned:
            return cleaned
    return "Untitled"


def _text_of(element: Tag | None) -> str | None:
    if element is None:
        return None
    return element.get_text(" ", strip=True)


def extract_metadata(soup: BeautifulSoup) -> DocumentMetadata:
    root = soup.find("html")
    body = soup.body or soup
    words = len(body.get_text(" ").split())
    return DocumentMetadata(
        author=_first(soup, AUTHOR_CHAIN),
        date_published=_first(soup, PUBLISHED_CHAIN),
        last_modified=_first(soup, MODIFIED_CHAIN),
        language=_clean(root.get("lang")) if isinstance(root, Tag) else None,
        word_count=words,
        reading_time=math.ceil(words / WORDS_PER_MINUTE),
    )


def extract_structured_data(soup: BeautifulSoup) -> list[Any]:
    """Parsed JSON-LD blocks; blocks that are not valid JSON are skipped."""
    blocks: list[Any] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string if script.string is not None else script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            # bs4 hands back a str subclass, which orjson rejects
            blocks.append(orjson.loads(str(raw)))
        except orjson.JSONDecodeError:
            continue
    return blocks
