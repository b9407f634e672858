"""Per-dimension scoring for (component, section) pairs.

Each function is a pure function of the component, the selection input
and the configuration. ``compute_scores`` gathers them into the
dictionary exposed on :class:`SelectionResult`.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from .config import SelectorConfig
from .placement import score_placement
from .text import canonical_category, normalize_key, section_text
from .types import ComponentDescriptor, SelectionInput

ScoreDict = Dict[str, int]

DIMENSIONS = ("category", "industry", "content_count", "placement", "coherence", "tags")


def score_category(component: ComponentDescriptor, section_type: str, config: SelectorConfig) -> int:
    normalized = normalize_key(section_type)
    category = canonical_category(section_type, config.synonyms)
    if component.category == category:
        return config.points("category", "exact")
    tags = {tag.lower() for tag in component.tags}
    if category in tags or normalized in tags:
        return config.points("category", "tag")
    return 0


def score_industry(component: ComponentDescriptor, business_type: str | None, config: SelectorConfig) -> int:
    if not business_type:
        return config.points("industry", "neutral")
    normalized = normalize_key(business_type)
    suitable = [item.lower() for item in component.suitable_for if item]
    if normalized in suitable:
        return config.points("industry", "exact")
    if any(normalized in item or item in normalized for item in suitable):
        return config.points("industry", "partial")
    return 0


def score_content_count(
    component: ComponentDescriptor,
    content_count: Optional[int],
    config: SelectorConfig,
) -> int:
    # Zero is treated like "unknown" on either side.
    if not content_count or not component.content_count:
        return config.points("content_count", "neutral")
    if component.content_count == content_count:
        return config.points("content_count", "exact")
    tolerance = config.points("content_count", "near_tolerance")
    if abs(component.content_count - content_count) <= tolerance:
        return config.points("content_count", "near")
    return 0


def score_coherence(
    component: ComponentDescriptor,
    used_component_ids: Sequence[str],
    previous_component_id: Optional[str],
    config: SelectorConfig,
) -> int:
    score = config.points("coherence", "base")

    if component.id == previous_component_id:
        score += config.points("coherence", "repeat")

    usage = sum(1 for used in used_component_ids if used == component.id)
    if usage > config.points("coherence", "overuse_threshold"):
        score += config.points("coherence", "overuse_per_use") * usage

    if previous_component_id:
        previous_prefix = previous_component_id.split("-")[0]
        if any(rule in previous_prefix for rule in component.pairing_rules.never_followed_by):
            score += config.points("coherence", "pairing")

    return max(score, config.points("coherence", "floor"))


def score_tags(
    component: ComponentDescriptor,
    section_name: str | None,
    section_description: str | None,
    config: SelectorConfig,
) -> int:
    text = section_text(section_name, section_description)
    per_tag = config.points("tags", "per_tag")
    bonus = sum(per_tag for tag in component.tags if tag and tag.lower() in text)
    return min(bonus, config.points("tags", "cap"))


def compute_scores(
    component: ComponentDescriptor,
    request: SelectionInput,
    content_count: Optional[int],
    config: SelectorConfig,
) -> ScoreDict:
    """Compute every dimension for one component.

    ``content_count`` is passed separately because the caller resolves it
    once per request (explicit value or parsed from the section text).
    """

    return {
        "category": score_category(component, request.section_type, config),
        "industry": score_industry(component, request.business_type, config),
        "content_count": score_content_count(component, content_count, config),
        "placement": score_placement(
            component,
            request.section_index,
            request.total_sections,
            config,
        ),
        "coherence": score_coherence(
            component,
            request.used_component_ids,
            request.previous_component_id,
            config,
        ),
        "tags": score_tags(component, request.section_name, request.section_description, config),
    }
