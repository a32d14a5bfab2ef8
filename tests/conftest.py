from __future__ import annotations

from typing import Any

import pytest

from deep_web_research.core.errors import PageFetchError
from deep_web_research.core.interfaces import PageFetcher, SearchProvider


class FakeSearchProvider(SearchProvider):
    """Returns canned records per query; an Exception value is raised instead."""

    def __init__(self, responses: dict[str, Any] | None = None, default: Any = None) -> None:
        self.responses = responses or {}
        self.default = default
        self.calls: list[tuple[str, int]] = []
        self.closed = 0

    async def search(self, query: str, **kwargs: Any) -> list[dict[str, Any]]:
        self.calls.append((query, kwargs.get("slot", 0)))
        response = self.responses.get(query, self.default)
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(query)
        return list(response or [])

    async def close(self) -> None:
        self.closed += 1


class FakeFetcher(PageFetcher):
    def __init__(self, pages: dict[str, Any] | None = None) -> None:
        self.pages = pages or {}
        self.calls: list[str] = []
        self.closed = 0

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise PageFetchError(f"no page for {url}")
        if isinstance(page, Exception):
            raise page
        return page

    async def close(self) -> None:
        self.closed += 1


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def records(*urls: str, title: str = "Result", snippet: str = "snippet") -> list[dict[str, str]]:
    return [{"title": f"{title} {index}", "url": url, "snippet": snippet} for index, url in enumerate(urls)]


TECHNICAL_PAGE = """
<html lang="en">
<head>
  <title>Observer pattern guide</title>
  <meta name="author" content="Ada Lovelace">
  <meta property="article:published_time" content="2024-01-15T00:00:00Z">
</head>
<body>
  <nav><a href="/">Home</a><a href="/docs">Docs</a></nav>
  <main>
    <h1>Observer pattern in practice</h1>
    <p>The observer pattern lets an object notify every registered listener when its state changes.</p>
    <p>You should always unregister a listener when the component is destroyed to avoid memory leaks.</p>
    <h2>Implementation</h2>
    <p>The subject class keeps a list of observer objects and calls each observer method in turn.</p>
    <pre><code class="language-python">class Subject:
    def attach(self, observer):
        self.observers.append(observer)
</code></pre>
  </main>
  <footer>Copyright 2024</footer>
</body>
</html>
"""


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def no_sleep(sleeps: list[float]):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def technical_page() -> str:
    return TECHNICAL_PAGE
