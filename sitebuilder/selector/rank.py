"""Totals, ordering and explanations for scored components."""

from __future__ import annotations

from typing import Dict, List, Sequence

from .config import SelectorConfig
from .types import SelectionResult


def total_score(scores: Dict[str, int]) -> int:
    return sum(scores.values())


def order_results(results: Sequence[SelectionResult], config: SelectorConfig) -> List[SelectionResult]:
    """Sort results by descending score.

    ``sorted`` is stable, so with the default ``registry`` tie-break equal
    scores keep registry order and the first registered component wins.
    """

    if config.tie_break == "id":
        return sorted(results, key=lambda item: (-item.score, item.component.id))
    return sorted(results, key=lambda item: item.score, reverse=True)


def score_reason(scores: Dict[str, int], config: SelectorConfig, top_k: int = 2) -> str:
    """Return a human-friendly reason summary based on the strongest dimensions."""

    weighted = []
    for name, value in scores.items():
        if value <= 0:
            continue
        ceiling = _dimension_ceiling(name, config)
        if not ceiling:
            continue
        weighted.append((value / ceiling, value, name))
    weighted.sort(key=lambda item: (item[0], item[1]), reverse=True)

    fragments = []
    for ratio, _, name in weighted[:top_k]:
        fragments.append(_reason_fragment(name, ratio))
    return "; ".join(fragment for fragment in fragments if fragment)


def _dimension_ceiling(name: str, config: SelectorConfig) -> int:
    ceilings = {
        "category": config.points("category", "exact"),
        "industry": config.points("industry", "exact"),
        "content_count": config.points("content_count", "exact"),
        "placement": config.points("placement", "zone"),
        "coherence": config.points("coherence", "base"),
        "tags": config.points("tags", "cap"),
    }
    return ceilings.get(name, 0)


def _reason_fragment(name: str, ratio: float) -> str:
    mapping = {
        "category": "category match",
        "industry": "industry fit",
        "content_count": "item count fit",
        "placement": "placement fit",
        "coherence": "page variety",
        "tags": "keyword overlap",
    }
    descriptor = mapping.get(name)
    if not descriptor:
        return ""
    if ratio >= 0.99:
        qualifier = "exact"
    elif ratio >= 0.6:
        qualifier = "strong"
    else:
        qualifier = "partial"
    return f"{qualifier} {descriptor}"
