from __future__ import annotations
from deep_web_research.utils import get_logger

FAN_OUT_SUFFIXES = (
    "",
    "tutorial",
    "guide",
    "example",
    "implementation",
    "code",
    "design pattern",
    "best practice",
)


class QueryPlanner:
    """Generates the initial search fan-out for a research topic."""

    def __init__(self, suffixes: tuple[str, ...] = FAN_OUT_SUFFIXES) -> None:
        self.suffixes = suffixes
        self.logger = get_logger(__name__)

    def initial_queries(self, topic: str) -> list[str]:
        """One query per suffix, the bare topic first."""
        topic = topic.strip()
        queries = [f"{topic} {suffix}".strip() for suffix in self.suffixes]
        self.logger.debug("query_planner.initial", queries=queries)
        return queries
