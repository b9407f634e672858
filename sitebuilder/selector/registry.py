"""Component registry loading and lookup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import yaml

from ..exceptions import ConfigurationError
from .types import CATEGORIES, PLACEMENT_HINTS, ComponentDescriptor, PairingRules

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_PATH = Path(__file__).resolve().parent / "data" / "components.yaml"


class ComponentRegistry:
    """Ordered, read-only collection of component descriptors.

    Iteration order is insertion order and doubles as the default
    tie-break when two components score the same.
    """

    def __init__(self, components: Iterable[ComponentDescriptor]) -> None:
        self._components: List[ComponentDescriptor] = []
        self._by_id: Dict[str, ComponentDescriptor] = {}
        for component in components:
            _validate(component)
            if component.id in self._by_id:
                raise ConfigurationError(f"Duplicate component id in registry: {component.id}")
            self._components.append(component)
            self._by_id[component.id] = component

    def __iter__(self) -> Iterator[ComponentDescriptor]:
        return iter(self._components)

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._by_id

    def get(self, component_id: str | None) -> Optional[ComponentDescriptor]:
        if not component_id:
            return None
        return self._by_id.get(component_id)

    def ids(self) -> List[str]:
        return [component.id for component in self._components]

    def by_category(self, category: str) -> List[ComponentDescriptor]:
        return [component for component in self._components if component.category == category]


def _validate(component: ComponentDescriptor) -> None:
    if not component.id:
        raise ConfigurationError("Registry entries must have an id.")
    if component.category not in CATEGORIES:
        raise ConfigurationError(f"Component {component.id} has unknown category {component.category!r}.")
    if component.placement_hint not in PLACEMENT_HINTS:
        raise ConfigurationError(
            f"Component {component.id} has unknown placement hint {component.placement_hint!r}."
        )
    if component.content_count is not None and component.content_count < 0:
        raise ConfigurationError(f"Component {component.id} has a negative content count.")


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _strings(values: Any) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [values]
    return tuple(str(value).strip().lower() for value in values if str(value).strip())


def descriptor_from_dict(data: Mapping[str, Any]) -> ComponentDescriptor:
    """Build a descriptor from a registry entry (snake_case or camelCase keys)."""

    rules = _pick(data, "pairing_rules", "pairingRules", default={}) or {}
    count = _pick(data, "content_count", "contentCount")
    slots = _pick(data, "content_slots", "contentSlots", default={}) or {}
    return ComponentDescriptor(
        id=str(data.get("id", "")).strip(),
        category=str(data.get("category", "")).strip().lower(),
        tags=_strings(data.get("tags")),
        suitable_for=_strings(_pick(data, "suitable_for", "suitableFor")),
        content_count=int(count) if count is not None else None,
        placement_hint=str(_pick(data, "placement_hint", "placementHint", default="any")).strip().lower(),
        pairing_rules=PairingRules(
            never_followed_by=_strings(_pick(rules, "never_followed_by", "neverFollowedBy")),
        ),
        name=str(data.get("name", "")),
        content_slots={str(key): str(value) for key, value in dict(slots).items()},
    )


def load_registry(path: str | Path | None = None) -> ComponentRegistry:
    """Read a registry file (YAML or JSON) into a :class:`ComponentRegistry`.

    The file may hold a list of entries or a mapping with a ``components``
    list. An empty registry is a configuration error.
    """

    registry_path = Path(path) if path is not None else DEFAULT_REGISTRY_PATH
    if not registry_path.exists():
        raise ConfigurationError(f"Component registry not found: {registry_path}")

    with registry_path.open("r", encoding="utf-8") as stream:
        try:
            data = yaml.safe_load(stream)
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Component registry {registry_path} is not valid YAML/JSON.") from exc

    if isinstance(data, dict):
        data = data.get("components")
    if not data:
        raise ConfigurationError(f"Component registry {registry_path} contains no components.")
    if not isinstance(data, list):
        raise ConfigurationError(f"Component registry {registry_path} must be a list of components.")

    registry = ComponentRegistry(descriptor_from_dict(entry) for entry in data)
    logger.info("Loaded %d components from %s", len(registry), registry_path)
    return registry
