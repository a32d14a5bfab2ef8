from __future__ import annotations

from deep_web_research.config import DEFAULT_TABLES, HeuristicTables
from deep_web_research.utils.state_helpers import clamp
from deep_web_research.utils.urls import host_matches, hostname

RANK_DECAY = 0.1
TITLE_MATCH_BONUS = 0.3
SNIPPET_MATCH_BONUS = 0.2


def url_quality_bonus(url: str, tables: HeuristicTables = DEFAULT_TABLES) -> float:
    """First matching entry of the domain bonus table, else the default bonus."""
    host = hostname(url)
    for marker, bonus in tables.search_domain_bonus:
        if host_matches(host, marker):
            return bonus
    return tables.default_domain_bonus


def raw_search_score(
    rank: int,
    title: str,
    snippet: str,
    url: str,
    query: str,
    tables: HeuristicTables = DEFAULT_TABLES,
) -> float:
    """Unclipped relevance score; exposed so the clip boundary can be observed."""
    needle = query.strip().lower()
    score = max(0.0, 1.0 - RANK_DECAY * rank)
    if needle and needle in (title or "").lower():
        score += TITLE_MATCH_BONUS
    if needle and needle in (snippet or "").lower():
        score += SNIPPET_MATCH_BONUS
    return score + url_quality_bonus(url, tables)


def score_search_result(
    rank: int,
    title: str,
    snippet: str,
    url: str,
    query: str,
    tables: HeuristicTables = DEFAULT_TABLES,
) -> float:
    return clamp(raw_search_score(rank, title, snippet, url, query, tables))
