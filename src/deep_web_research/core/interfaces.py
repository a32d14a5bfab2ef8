from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any

class SearchProvider(ABC):
    """Abstract base for search providers."""

    @abstractmethod
    async def search(self, query: str, **kwargs: Any) -> list[dict[str, Any]]:
        """Run a search query and return raw results in rank order.

        Each record carries ``title``, ``url`` and ``snippet``.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the provider."""
        return None

class PageFetcher(ABC):
    """Abstract base for page fetchers."""

    @abstractmethod
    async def fetch(self, url: str) -> str:
        """Return the page markup for ``url``."""
        pass

    async def close(self) -> None:
        """Release any resources held by the fetcher."""
        return None
