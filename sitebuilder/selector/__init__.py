"""Component selection engine."""

from .config import SelectorConfig, load_config
from .index import ComponentSelector, rank_components, select_component, select_components_for_page
from .placement import placement_zone
from .registry import ComponentRegistry, load_registry
from .types import ComponentDescriptor, PageSelection, Section, SelectionInput, SelectionResult

__all__ = [
    "ComponentDescriptor",
    "ComponentRegistry",
    "ComponentSelector",
    "PageSelection",
    "Section",
    "SelectionInput",
    "SelectionResult",
    "SelectorConfig",
    "load_config",
    "load_registry",
    "placement_zone",
    "rank_components",
    "select_component",
    "select_components_for_page",
]
