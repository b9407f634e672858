"""Text helpers: normalisation, synonyms and count parsing."""

from __future__ import annotations

import pytest

from sitebuilder.selector.config import DEFAULTS
from sitebuilder.selector.text import canonical_category, normalize_key, parse_content_count, section_text

NOUNS = DEFAULTS["count_nouns"]
SYNONYMS = DEFAULTS["section_type_synonyms"]


def test_normalize_key():
    assert normalize_key("  Call  To Action ") == "call-to-action"
    assert normalize_key(None) == ""


@pytest.mark.parametrize(
    "section_type, category",
    [
        ("Features", "feature"),
        ("Call to action", "cta"),
        ("Services", "card-grid"),
        ("Logo Wall", "logo-wall"),
        ("Plans", "pricing"),
        ("Gallery", "gallery"),
    ],
)
def test_canonical_category(section_type, category):
    assert canonical_category(section_type, SYNONYMS) == category


@pytest.mark.parametrize(
    "text, expected",
    [
        ("3 features", 3),
        ("3 core services", 3),
        ("Choose your plan 4 Tiers", 4),
        ("1 testimonial", 1),
        ("6 partner logos", 6),
        ("12 items", 12),
        ("Why teams switch", None),
        ("Founded in 2019", None),
        ("Since 2015 our services", None),
        ("Since 2015 our 4 core services", 4),
        ("", None),
        (None, None),
    ],
)
def test_parse_content_count(text, expected):
    assert parse_content_count(text, NOUNS) == expected


def test_parse_content_count_needs_a_vocabulary():
    assert parse_content_count("3 features", []) is None


def test_section_text_lowercases_both_parts():
    assert section_text("Our Team", None) == "our team "
