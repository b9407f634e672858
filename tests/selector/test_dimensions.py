"""Per-dimension scoring tests for the component selector."""

from __future__ import annotations

import pytest

from sitebuilder.selector import SelectionInput, load_registry, rank_components
from sitebuilder.selector.features import (
    score_category,
    score_coherence,
    score_content_count,
    score_industry,
    score_tags,
)
from sitebuilder.selector.placement import placement_zone, score_placement

from .conftest import make_component, make_registry


def test_category_exact_match_through_synonyms(selector_config):
    cta = make_component("cta-banner", "cta")

    assert score_category(cta, "Call To Action", selector_config) == 40
    assert score_category(cta, "cta", selector_config) == 40


def test_category_tag_match_and_miss(selector_config):
    feature = make_component("feature-plans", "feature", tags=["pricing"])

    assert score_category(feature, "plans", selector_config) == 25
    assert score_category(feature, "testimonials", selector_config) == 0


def test_unknown_section_type_passes_through(selector_config):
    component = make_component("gallery-grid", "content", tags=["gallery"])

    assert score_category(component, "Gallery", selector_config) == 25


def test_industry_scores(selector_config):
    component = make_component("hero-a", "hero", suitable_for=["saas", "agency"])

    assert score_industry(component, "", selector_config) == 5
    assert score_industry(component, None, selector_config) == 5
    assert score_industry(component, "SaaS", selector_config) == 20
    assert score_industry(component, "saas platform", selector_config) == 10
    assert score_industry(component, "Restaurant", selector_config) == 0


@pytest.mark.parametrize(
    "component_count, section_count, expected",
    [
        (None, 3, 5),
        (3, None, 5),
        (3, 0, 5),
        (0, 3, 5),
        (3, 3, 15),
        (4, 3, 8),
        (2, 3, 8),
        (6, 3, 0),
    ],
)
def test_content_count_scores(selector_config, component_count, section_count, expected):
    component = make_component("card-grid-x", "card-grid", content_count=component_count)

    assert score_content_count(component, section_count, selector_config) == expected


@pytest.mark.parametrize(
    "index, total, zone",
    [
        (0, 5, "page-top"),
        (1, 5, "after-hero"),
        (2, 5, "mid-page"),
        (3, 5, "page-bottom"),
        (4, 5, "page-bottom"),
        (0, 1, "page-top"),
        (1, 2, "after-hero"),
        (2, 3, "page-bottom"),
    ],
)
def test_placement_zone(index, total, zone):
    assert placement_zone(index, total) == zone


def test_placement_scores(selector_config):
    bottom = make_component("cta-bottom", "cta", placement_hint="page-bottom")
    anywhere = make_component("cta-any", "cta", placement_hint="any")
    top = make_component("hero-top", "hero", placement_hint="page-top")
    middle = make_component("feature-mid", "feature", placement_hint="mid-page")

    assert score_placement(bottom, 0, 5, selector_config) == -10
    assert score_placement(bottom, 4, 5, selector_config) == 15
    assert score_placement(anywhere, 0, 5, selector_config) == 10
    assert score_placement(top, 2, 5, selector_config) == -10
    assert score_placement(middle, 2, 5, selector_config) == 15
    assert score_placement(middle, 0, 5, selector_config) == 3


def test_coherence_penalties(selector_config):
    component = make_component("card-grid-three", "card-grid")
    hero = make_component("hero-centered", "hero", never_followed_by=["hero", "header"])

    assert score_coherence(component, [], None, selector_config) == 10
    assert score_coherence(component, ["card-grid-three"], "card-grid-three", selector_config) == -5
    assert score_coherence(component, ["card-grid-three"] * 3, "feature-steps", selector_config) == 4
    assert score_coherence(hero, ["hero-split-media"], "hero-split-media", selector_config) == -10
    assert score_coherence(hero, ["hero-centered"], "hero-centered", selector_config) == -10


def test_coherence_overuse_starts_above_threshold(selector_config):
    component = make_component("faq-accordion", "faq")

    assert score_coherence(component, ["faq-accordion"] * 2, None, selector_config) == 10


def test_tag_bonus_is_capped(selector_config):
    pricing = make_component("pricing-tiers", "pricing", tags=["pricing", "plans"])
    greedy = make_component("content-x", "content", tags=["a", "b", "c", "d", "e", "f"])

    assert score_tags(pricing, "Pricing plans", "", selector_config) == 6
    assert score_tags(pricing, "About us", None, selector_config) == 0
    assert score_tags(greedy, "a b c d e f", "", selector_config) == 15


BEST = make_component(
    "hero-best",
    "hero",
    tags=["alpha", "beta", "gamma", "delta", "epsilon", "zeta"],
    suitable_for=["saas"],
    content_count=3,
    placement_hint="page-top",
)
WORST = make_component(
    "cta-worst",
    "cta",
    suitable_for=["restaurant"],
    content_count=6,
    placement_hint="page-top",
    never_followed_by=["hero"],
)


@pytest.mark.parametrize(
    "component, request_, expected",
    [
        (
            BEST,
            SelectionInput(
                section_type="hero",
                section_name="alpha beta gamma delta epsilon zeta",
                business_type="SaaS",
                content_count=3,
                section_index=0,
                total_sections=5,
            ),
            115,
        ),
        (
            WORST,
            SelectionInput(
                section_type="faq",
                business_type="SaaS",
                content_count=2,
                section_index=2,
                total_sections=5,
                used_component_ids=("cta-worst",) * 6,
                previous_component_id="hero-centered",
            ),
            -20,
        ),
    ],
)
def test_total_score_reaches_its_bounds(selector_config, component, request_, expected):
    result = rank_components(request_, make_registry(component), selector_config)[0]

    assert result.score == expected
    assert -20 <= result.score <= 120


@pytest.mark.parametrize("section_type", ["hero", "Pricing", "testimonials", "Gallery", ""])
@pytest.mark.parametrize("section_index, total_sections", [(0, 1), (1, 5), (4, 5)])
def test_every_bundled_component_scores_within_bounds(selector_config, section_type, section_index, total_sections):
    registry = load_registry()
    request = SelectionInput(
        section_type=section_type,
        section_name="6 partner logos and 3 core services",
        business_type="SaaS",
        section_index=section_index,
        total_sections=total_sections,
        used_component_ids=tuple(component.id for component in registry) * 3,
        previous_component_id="hero-centered" if section_index else None,
    )

    for result in rank_components(request, registry, selector_config):
        assert -20 <= result.score <= 120
