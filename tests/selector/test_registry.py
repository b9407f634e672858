"""Registry loading and validation tests."""

from __future__ import annotations

import json

import pytest

from sitebuilder.exceptions import ConfigurationError
from sitebuilder.selector.registry import ComponentRegistry, descriptor_from_dict, load_registry
from sitebuilder.selector.types import CATEGORIES

from .conftest import make_component


def test_bundled_registry_covers_every_category():
    registry = load_registry()

    assert len(registry) > 0
    assert {component.category for component in registry} == set(CATEGORIES)
    assert registry.ids() == [component.id for component in registry]


def test_camel_case_entries_are_accepted(tmp_path):
    path = tmp_path / "components.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "pricing-tiers",
                    "category": "Pricing",
                    "tags": ["Pricing", "Plans"],
                    "suitableFor": ["SaaS"],
                    "contentCount": 3,
                    "placementHint": "mid-page",
                    "pairingRules": {"neverFollowedBy": ["pricing"]},
                }
            ]
        ),
        encoding="utf-8",
    )

    registry = load_registry(path)
    component = registry.get("pricing-tiers")

    assert component is not None
    assert component.category == "pricing"
    assert component.tags == ("pricing", "plans")
    assert component.suitable_for == ("saas",)
    assert component.content_count == 3
    assert component.placement_hint == "mid-page"
    assert component.pairing_rules.never_followed_by == ("pricing",)


def test_mapping_with_components_key(tmp_path):
    path = tmp_path / "components.yaml"
    path.write_text("components:\n  - {id: faq-list, category: faq}\n", encoding="utf-8")

    assert load_registry(path).ids() == ["faq-list"]


@pytest.mark.parametrize("content", ["", "components: []\n", "[]\n"])
def test_empty_registry_file_is_rejected(tmp_path, content):
    path = tmp_path / "components.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        load_registry(path)


def test_missing_registry_file_is_rejected(tmp_path):
    with pytest.raises(ConfigurationError):
        load_registry(tmp_path / "missing.yaml")


def test_invalid_entries_are_rejected():
    with pytest.raises(ConfigurationError):
        ComponentRegistry([make_component("a", "hero"), make_component("a", "cta")])
    with pytest.raises(ConfigurationError):
        ComponentRegistry([make_component("a", "carousel")])
    with pytest.raises(ConfigurationError):
        ComponentRegistry([descriptor_from_dict({"id": "b", "category": "hero", "placement_hint": "sidebar"})])


def test_lookup_helpers():
    registry = ComponentRegistry([make_component("hero-a", "hero"), make_component("cta-a", "cta")])

    assert "hero-a" in registry
    assert registry.get(None) is None
    assert registry.get("nope") is None
    assert [component.id for component in registry.by_category("cta")] == ["cta-a"]
