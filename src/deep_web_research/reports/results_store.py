from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import orjson

from deep_web_research.config import settings
from deep_web_research.core.state import SearchResult, utc_now_iso
from deep_web_research.utils import get_logger

_UNSAFE_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


class SearchResultStore:
    """Write-only audit trail of raw per-query search results."""

    def __init__(self, directory: Path | None = None) -> None:
        self.directory = Path(directory or settings.runtime.results_dir)
        self.logger = get_logger(__name__)

    @staticmethod
    def filename(search_id: str, query: str) -> str:
        return f"{search_id}-{_UNSAFE_CHARS.sub('_', query)}.json"

    def write(self, search_id: str, query: str, results: Iterable[SearchResult]) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / self.filename(search_id, query)
        payload = {
            "searchId": search_id,
            "query": query,
            "timestamp": utc_now_iso(),
            "results": [result.to_dict() for result in results],
        }
        path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        self.logger.debug("results_store.write", path=str(path))
        return path
