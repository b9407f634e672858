"""Shared fixtures for component selector tests."""

from __future__ import annotations

from typing import Iterable

import pytest

from sitebuilder.selector.config import load_config
from sitebuilder.selector.registry import ComponentRegistry
from sitebuilder.selector.types import ComponentDescriptor, PairingRules


@pytest.fixture()
def selector_config():
    """Provide a fresh copy of the default selector configuration."""

    return load_config(None)


def make_component(
    id: str,
    category: str,
    *,
    tags: Iterable[str] = (),
    suitable_for: Iterable[str] = (),
    content_count: int | None = None,
    placement_hint: str = "any",
    never_followed_by: Iterable[str] = (),
) -> ComponentDescriptor:
    return ComponentDescriptor(
        id=id,
        category=category,
        tags=tuple(tags),
        suitable_for=tuple(suitable_for),
        content_count=content_count,
        placement_hint=placement_hint,
        pairing_rules=PairingRules(never_followed_by=tuple(never_followed_by)),
    )


def make_registry(*components: ComponentDescriptor) -> ComponentRegistry:
    return ComponentRegistry(components)
