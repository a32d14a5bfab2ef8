"""Score arithmetic shared by the search and analysis heuristics.

Every heuristic score in the engine lives in ``[0, 1]``; these helpers keep
empty inputs from turning into ``ZeroDivisionError`` and out-of-range sums
from leaking into results.
"""

from __future__ import annotations

from typing import Iterable


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Ratio, or ``default`` when there is nothing to divide by (empty page, no topics).

    >>> safe_divide(3, 12)
    0.25
    >>> safe_divide(3, 0)
    0.0
    """
    if denominator == 0:
        return default
    return numerator / denominator


def safe_average(values: Iterable[float], default: float = 0.0) -> float:
    """Mean of a possibly empty stream of confidences.

    >>> safe_average(topic for topic in (0.5, 1.0))
    0.75
    """
    collected = list(values)
    return safe_divide(sum(collected), len(collected), default)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """
    Clip a score into ``[lower, upper]``.

    >>> clamp(1.75)
    1.0
    """
    return max(lower, min(upper, value))


def jaccard(first: Iterable[str], second: Iterable[str]) -> float:
    """Token-set Jaccard similarity; two empty sets are identical."""
    set_a = set(first)
    set_b = set(second)
    union = set_a | set_b
    if not union:
        return 1.0
    return len(set_a & set_b) / len(union)


def overlap_ratio(first: Iterable[str], second: Iterable[str]) -> float:
    """Shared items relative to the smaller set."""
    set_a = set(first)
    set_b = set(second)
    return safe_divide(len(set_a & set_b), min(len(set_a), len(set_b)))
