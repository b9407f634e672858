"""Placement zones and the placement dimension of the score."""

from __future__ import annotations

from .config import SelectorConfig
from .types import ComponentDescriptor


def placement_zone(index: int, total_sections: int) -> str:
    """Return the coarse page zone for a 0-based section index.

    The checks run top-down, so on pages with two or fewer sections the
    first two indices report page-top/after-hero even though they are
    also within the last two positions.
    """

    if index == 0:
        return "page-top"
    if index == 1:
        return "after-hero"
    if index >= total_sections - 2:
        return "page-bottom"
    return "mid-page"


def score_placement(
    component: ComponentDescriptor,
    index: int,
    total_sections: int,
    config: SelectorConfig,
) -> int:
    """Reward components whose placement hint matches the section's zone."""

    zone = placement_zone(index, total_sections)
    hint = component.placement_hint
    if hint == zone:
        return config.points("placement", "zone")
    if hint == "any":
        return config.points("placement", "any")
    if hint == "page-top" and zone != "page-top":
        return config.points("placement", "mismatch")
    if hint == "page-bottom" and zone == "page-top":
        return config.points("placement", "mismatch")
    return config.points("placement", "fallback")
