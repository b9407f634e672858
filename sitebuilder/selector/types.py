"""Typed data structures used by the component selector."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

CATEGORIES: Tuple[str, ...] = (
    "hero",
    "feature",
    "content",
    "card-grid",
    "cta",
    "testimonial",
    "logo-wall",
    "pricing",
    "faq",
    "header",
    "footer",
    "navigation",
    "link-list",
)

PLACEMENT_HINTS: Tuple[str, ...] = ("page-top", "after-hero", "mid-page", "page-bottom", "any")


@dataclass(frozen=True)
class PairingRules:
    """Adjacency constraints for a component."""

    never_followed_by: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ComponentDescriptor:
    """Registry entry describing a renderable component and where it fits."""

    id: str
    category: str
    tags: Tuple[str, ...] = ()
    suitable_for: Tuple[str, ...] = ()
    content_count: Optional[int] = None
    placement_hint: str = "any"
    pairing_rules: PairingRules = field(default_factory=PairingRules)
    name: str = ""
    content_slots: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Section:
    """Abstract content block on a page, before rendering."""

    section_type: str
    name: str = ""
    description: str = ""
    content_count: Optional[int] = None
    order: int = 0
    component_override: Optional[str] = None
    id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SelectionInput:
    """Everything the scorer needs to pick a component for one section."""

    section_type: str
    section_name: str = ""
    section_description: str = ""
    business_type: str = ""
    content_count: Optional[int] = None
    section_index: int = 0
    total_sections: int = 1
    used_component_ids: Tuple[str, ...] = ()
    previous_component_id: Optional[str] = None
    component_override: Optional[str] = None


@dataclass(frozen=True)
class SelectionResult:
    """Chosen (or candidate) component with its total and per-dimension scores."""

    component: ComponentDescriptor
    score: int
    scores: Dict[str, int]
    overridden: bool = False
    reason: str = ""


@dataclass(frozen=True)
class PageSelection:
    """Selection outcome for one section of a page, in page order."""

    section: Section
    component: ComponentDescriptor
    score: int
    scores: Dict[str, int]
    overridden: bool = False
    reason: str = ""


@dataclass
class PageSelectionState:
    """History threaded through the sections of a single page."""

    used_component_ids: List[str] = field(default_factory=list)
    previous_component_id: Optional[str] = None

    def record(self, component_id: str) -> None:
        self.used_component_ids.append(component_id)
        self.previous_component_id = component_id
