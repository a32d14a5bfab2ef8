"""URL helpers shared by the dispatcher, the session and the engine."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from deep_web_research.config import DEFAULT_TABLES

_PROTOCOL_RE = re.compile(r"^https?://")


def normalize_url(url: str) -> str:
    """Deduplication key: drops protocol, ``www.``, query, fragment and trailing slash.

    >>> normalize_url("https://Www.Example.com/a/?x=1#y")
    'example.com/a'
    """
    key = url.strip().lower()
    key = _PROTOCOL_RE.sub("", key)
    if key.startswith("www."):
        key = key[4:]
    key = key.split("#", 1)[0].split("?", 1)[0]
    return key.rstrip("/")


def hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def is_http_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.netloc)


def is_processable_url(url: str, skip_extensions: tuple[str, ...] = DEFAULT_TABLES.skip_extensions) -> bool:
    """True for http(s) URLs whose path does not point at a known non-HTML document."""
    if not is_http_url(url):
        return False
    path = urlsplit(url).path.lower()
    return not any(path.endswith(ext) for ext in skip_extensions)


def host_matches(host: str, marker: str) -> bool:
    """Match a host against a domain-table marker.

    ``.edu`` matches a top-level label (``cs.mit.edu``, ``ox.edu.au``), ``docs.``
    matches a leading label (``docs.python.org``), anything else matches the
    domain itself or one of its subdomains.
    """
    if not host:
        return False
    if marker.startswith("."):
        return host.endswith(marker) or f"{marker}." in host
    if marker.endswith("."):
        return host.startswith(marker) or f".{marker}" in host
    return host == marker or host.endswith(f".{marker}")
