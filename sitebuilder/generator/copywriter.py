"""Copy for each selected component, from an AI model or from templates.

The AI path is an opaque ``prompt -> text`` callable so that tests and
alternative providers can be plugged in; :func:`anthropic_generator`
adapts the Anthropic SDK to it. Any failure falls back to templates.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

import anthropic

from ..selector.types import PageSelection
from ..sync.content import PageData, SiteConfig, SiteContent

logger = logging.getLogger(__name__)

AIGenerate = Callable[[str], str]

DEFAULT_MODEL = "claude-sonnet-4-20250514"
_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def build_copy_prompt(
    page: PageData,
    site: SiteConfig,
    content: SiteContent,
    selections: Sequence[PageSelection],
) -> str:
    sections = "\n".join(
        f'Section {index}: "{selection.section.name}" ({selection.component.category}) needs: '
        f"{', '.join(selection.component.content_slots) or 'heading, description'}"
        for index, selection in enumerate(selections, start=1)
    )
    services = "\n".join(
        f"- {service.name}: {(service.description or '')[:100]}" for service in content.services
    )
    audience = ", ".join(site.target_audience) or "General"

    return f"""You are a professional copywriter. Generate website copy for the "{page.name}" page of "{site.name}".

Business Type: {site.business_type or 'SaaS'}
Brand Description: {site.brand_description or ''}
Target Audience: {audience}

Available Services/Products:
{services or 'Not specified'}

Sections to fill:
{sections}

IMPORTANT:
- Write professional, compelling copy
- Use a consistent tone across all sections
- Don't repeat phrases between sections
- Be specific to the business, not generic

Generate a JSON array where each element corresponds to a section, in order,
and contains the content for each slot. Example format:
[
  {{"heading": "...", "description": "...", "primary_cta": "Get Started"}},
  {{"heading": "...", "description": "..."}}
]

Respond with ONLY the JSON array."""


def parse_ai_copy(text: str) -> List[Any]:
    """Parse a JSON array from model output, tolerating markdown fences."""

    cleaned = _FENCE_RE.sub("", text or "").replace("```", "").strip()
    parsed = json.loads(cleaned)
    if not isinstance(parsed, list):
        raise ValueError("expected a JSON array of section copy")
    return parsed


def template_copy(selection: PageSelection, site: SiteConfig, content: SiteContent) -> Dict[str, Any]:
    """Deterministic copy for one section, built from site and content data."""

    section = selection.section
    category = selection.component.category
    name = site.name or "Our Platform"
    heading = section.name or ""
    brand = site.brand_description or ""

    if category == "hero":
        return {
            "heading": heading or f"Welcome to {name}",
            "description": section.description or brand[:200] or f"{name} helps you achieve more with less effort.",
            "primary_cta": "Get Started",
            "secondary_cta": "Learn More",
        }
    if category == "feature":
        return {
            "eyebrow": section.section_type or "Feature",
            "heading": heading or "Built for your workflow",
            "description": section.description
            or f"{name} provides powerful tools designed to streamline your operations and boost productivity.",
            "primary_cta": "Learn More",
        }
    if category == "card-grid":
        if content.team and "team" in heading.lower():
            cards = [
                {"heading": member.name, "description": member.role, "cta": "", "link": member.linkedin}
                for member in content.team
            ]
        elif content.services:
            cards = [
                {
                    "heading": service.name,
                    "description": (service.description or "")[:120],
                    "cta": service.cta_label or "Learn More",
                    "link": service.cta_link,
                }
                for service in content.services
            ]
        else:
            cards = [
                {"heading": f"Feature {label}", "description": f"Description of the {label.lower()} feature.", "cta": "", "link": ""}
                for label in ("One", "Two", "Three")
            ]
        return {"heading": heading or "Our Services", "cards": cards}
    if category == "cta":
        return {
            "heading": heading or f"Ready to get started with {name}?",
            "description": section.description or f"Join the teams already using {name} to transform their workflow.",
            "primary_cta": "Get Started Free",
            "secondary_cta": "Contact Sales",
        }
    if category == "testimonial":
        quotes = [
            {"quote": item.quote, "author": item.author, "role": item.role}
            for item in content.testimonials
        ] or [
            {
                "quote": f"{name} has completely transformed how we work. The results speak for themselves.",
                "author": "Customer Name",
                "role": "Role, Company",
            }
        ]
        return {"heading": heading or "What our customers say", **quotes[0], "quotes": quotes}
    if category == "pricing":
        priced = [service for service in content.services if service.pricing is not None]
        tiers = [
            {"name": service.name, "price": f"${service.pricing:g}", "features": list(service.features)}
            for service in priced
        ] or [
            {"name": "Free", "price": "$0", "features": ["Basic features", "Community support"]},
            {"name": "Pro", "price": "$29", "features": ["All features", "Priority support", "API access"]},
            {"name": "Enterprise", "price": "Custom", "features": ["Everything in Pro", "Dedicated support"]},
        ]
        return {
            "heading": heading or "Simple, transparent pricing",
            "description": f"Choose the plan that fits your needs. All plans include core {name} features.",
            "tiers": tiers,
        }
    if category == "faq":
        return {
            "heading": heading or "Frequently Asked Questions",
            "items": [
                {"question": f"What is {name}?", "answer": brand[:200] or f"{name} is a platform designed to help you work smarter."},
                {"question": "How do I get started?", "answer": f"Contact us or sign up to get started with {name} in minutes."},
                {"question": "Is there a free plan?", "answer": f"{name} offers a free tier with essential features."},
            ],
        }
    if category == "logo-wall":
        return {"heading": heading or "Trusted by leading companies", "logos": [f"Logo {index}" for index in range(1, 7)]}
    if category == "header":
        return {"message": heading or brand[:120] or name, "brand": name}
    if category == "footer":
        return {"brand": name, "description": brand[:160]}
    if category in ("navigation", "link-list"):
        return {"heading": heading or "Resources", "links": []}
    return {
        "heading": heading or "About Us",
        "description": section.description
        or brand
        or f"{name} is committed to delivering exceptional value through innovative solutions.",
    }


def generate_page_copy(
    page: PageData,
    site: SiteConfig,
    content: SiteContent,
    selections: Sequence[PageSelection],
    ai_generate: Optional[AIGenerate] = None,
) -> List[Dict[str, Any]]:
    """Return one copy dict per selection, in order.

    AI output is merged over the template copy for each section, so slots
    the model leaves out still render.
    """

    templates = [template_copy(selection, site, content) for selection in selections]
    if ai_generate is None or not selections:
        return templates

    prompt = build_copy_prompt(page, site, content, selections)
    try:
        generated = parse_ai_copy(ai_generate(prompt))
    except Exception as exc:
        logger.warning("AI copy generation failed for %s, using templates: %s", page.name, exc)
        return templates

    merged: List[Dict[str, Any]] = []
    for index, fallback in enumerate(templates):
        entry = generated[index] if index < len(generated) else None
        merged.append({**fallback, **entry} if isinstance(entry, dict) else fallback)
    return merged


def anthropic_generator(api_key: str, model: str = DEFAULT_MODEL, max_tokens: int = 4096) -> AIGenerate:
    """Wrap the Anthropic Messages API as a ``prompt -> text`` callable."""

    client = anthropic.Anthropic(api_key=api_key)

    def generate(prompt: str) -> str:
        response = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")

    return generate
