"""Configuration helpers for the component selector."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml


@dataclass(frozen=True)
class SelectorConfig:
    """Typed wrapper around the selector configuration dictionary."""

    raw: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    def points(self, dimension: str, key: str) -> int:
        table = self.raw.get("points", {}).get(dimension, {})
        return table.get(key, 0)

    @property
    def synonyms(self) -> Dict[str, str]:
        return self.raw.get("section_type_synonyms", {})

    @property
    def count_nouns(self) -> List[str]:
        return self.raw.get("count_nouns", [])

    @property
    def tie_break(self) -> str:
        return self.raw.get("tie_break", "registry")


DEFAULTS: Dict[str, Any] = {
    "points": {
        "category": {"exact": 40, "tag": 25},
        "industry": {"neutral": 5, "exact": 20, "partial": 10},
        "content_count": {"neutral": 5, "exact": 15, "near": 8, "near_tolerance": 1},
        "placement": {"zone": 15, "any": 10, "mismatch": -10, "fallback": 3},
        "coherence": {
            "base": 10,
            "floor": -10,
            "repeat": -15,
            "overuse_threshold": 2,
            "overuse_per_use": -2,
            "pairing": -20,
        },
        "tags": {"per_tag": 3, "cap": 15},
    },
    "section_type_synonyms": {
        "hero": "hero",
        "header": "header",
        "feature": "feature",
        "features": "feature",
        "content": "content",
        "content-block": "content",
        "card-grid": "card-grid",
        "cards": "card-grid",
        "services": "card-grid",
        "products": "card-grid",
        "catalog": "card-grid",
        "cta": "cta",
        "call-to-action": "cta",
        "testimonial": "testimonial",
        "testimonials": "testimonial",
        "quote": "testimonial",
        "logo-wall": "logo-wall",
        "logos": "logo-wall",
        "partners": "logo-wall",
        "clients": "logo-wall",
        "pricing": "pricing",
        "plans": "pricing",
        "faq": "faq",
        "questions": "faq",
        "accordion": "faq",
        "footer": "footer",
        "navigation": "navigation",
        "toc": "navigation",
        "link-list": "link-list",
        "links": "link-list",
        "resources": "link-list",
    },
    "count_nouns": [
        "items",
        "cards",
        "features",
        "tiers",
        "plans",
        "steps",
        "members",
        "services",
        "products",
        "testimonials",
        "logos",
    ],
    # "registry" keeps insertion order for equal scores; "id" sorts ties by component id.
    "tie_break": "registry",
}


def load_config(path: str | Path | None = None) -> SelectorConfig:
    """Load configuration from YAML, merging with defaults."""

    data: Dict[str, Any] = copy.deepcopy(DEFAULTS)

    if path is not None and Path(path).exists():
        with Path(path).open("r", encoding="utf-8") as stream:
            user = yaml.safe_load(stream) or {}
        merge_into(data, user)

    return SelectorConfig(data)


def merge_into(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Recursively merge override into base dict."""

    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merge_into(base[key], value)
        else:
            base[key] = value
