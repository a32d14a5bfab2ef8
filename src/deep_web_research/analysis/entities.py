"""Regex entity recognition, proximity relationships and citation harvesting."""

from __future__ import annotations

import re

from deep_web_research.analysis.models import (
    Citation,
    CitationType,
    Entity,
    EntityMention,
    EntityType,
    Relationship,
)
from deep_web_research.config import DEFAULT_TABLES, HeuristicTables

CONTEXT_WINDOW = 50
RELATIONSHIP_DISTANCE = 100
RELATIONSHIP_TYPE = "specifies"

_URL_RE = re.compile(r"https?://[^\s)\]>\"']+")
_REFERENCE_RE = re.compile(r"\[(\d{1,3})\](?!\()")


def find_mentions(text: str, term: str) -> list[EntityMention]:
    mentions: list[EntityMention] = []
    position = text.find(term)
    while position != -1:
        end = position + len(term)
        mentions.append(
            EntityMention(
                text=term,
                start=position,
                end=end,
                context=text[max(0, position - CONTEXT_WINDOW) : end + CONTEXT_WINDOW],
            )
        )
        position = text.find(term, position + 1)
    return mentions


def _unique_matches(pattern: str, text: str) -> list[str]:
    names: list[str] = []
    for match in re.finditer(pattern, text):
        if match.group(0) not in names:
            names.append(match.group(0))
    return names


def extract_entities(text: str, tables: HeuristicTables = DEFAULT_TABLES) -> list[Entity]:
    entities: list[Entity] = []
    for pattern, entity_type in (
        (tables.standard_entity_pattern, EntityType.STANDARD),
        (tables.algorithm_entity_pattern, EntityType.ALGORITHM),
    ):
        for name in _unique_matches(pattern, text):
            entities.append(Entity(name=name, type=entity_type, mentions=find_mentions(text, name)))
    return entities


def min_distance(first: Entity, second: Entity) -> int | None:
    distances = [
        abs(a.start - b.start)
        for a in first.mentions
        for b in second.mentions
    ]
    return min(distances) if distances else None


def find_relationships(entities: list[Entity]) -> list[Relationship]:
    """Link every (standard, algorithm) pair whose closest mentions sit within 100 characters."""
    standards = [entity for entity in entities if entity.type is EntityType.STANDARD]
    algorithms = [entity for entity in entities if entity.type is EntityType.ALGORITHM]
    relationships: list[Relationship] = []
    for standard in standards:
        for algorithm in algorithms:
            distance = min_distance(standard, algorithm)
            if distance is None or distance >= RELATIONSHIP_DISTANCE:
                continue
            relationships.append(
                Relationship(
                    source=standard.name,
                    target=algorithm.name,
                    type=RELATIONSHIP_TYPE,
                    confidence=1 - distance / RELATIONSHIP_DISTANCE,
                )
            )
    return relationships


def extract_citations(text: str, tables: HeuristicTables = DEFAULT_TABLES) -> list[Citation]:
    citations = [
        Citation(text=name, type=CitationType.STANDARD)
        for name in _unique_matches(tables.standard_entity_pattern, text)
    ]
    citations.extend(
        Citation(text=url, type=CitationType.URL, source=url)
        for url in _unique_matches(_URL_RE.pattern, text)
    )
    citations.extend(
        Citation(text=marker, type=CitationType.REFERENCE)
        for marker in _unique_matches(_REFERENCE_RE.pattern, text)
    )
    return citations
