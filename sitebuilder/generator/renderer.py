"""Render pages, sitemap, robots.txt and theme CSS with Django templates."""

from __future__ import annotations

import json
from datetime import date
from typing import Any, Dict, List, Sequence

from django.template.loader import render_to_string
from django.utils.safestring import mark_safe

from ..selector.types import PageSelection
from ..sync.content import PageData, SiteConfig
from .theme import DEFAULT_THEME, theme_tokens

DRAFT = "Draft"
# Categories drawn by the page chrome rather than inline.
CHROME_CATEGORIES = ("footer",)


def base_url(site: SiteConfig) -> str:
    domain = (site.domain or "").strip().rstrip("/")
    if not domain:
        return ""
    return domain if domain.startswith("http") else f"https://{domain}"


def page_url(site: SiteConfig, route: str) -> str:
    base = base_url(site)
    return base if route in ("", "/") else f"{base}{route}"


def nav_pages(pages: Sequence[PageData]) -> List[PageData]:
    """Published, non-global pages in navigation order."""

    visible = [page for page in pages if not page.is_global and page.status != DRAFT]
    return sorted(visible, key=lambda page: page.nav_order or 0)


def json_ld(page: PageData, site: SiteConfig) -> Dict[str, Any]:
    root = base_url(site)
    if page.route in ("", "/"):
        return {
            "@context": "https://schema.org",
            "@type": "WebSite",
            "name": site.name,
            "url": root,
            "description": site.brand_description or "",
        }
    return {
        "@context": "https://schema.org",
        "@type": "WebPage",
        "name": page.seo_title or page.name,
        "description": page.seo_description or "",
        "url": page_url(site, page.route),
        "isPartOf": {"@type": "WebSite", "name": site.name, "url": root},
    }


def script_json(data: Dict[str, Any]) -> str:
    encoded = json.dumps(data, indent=2).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")
    return mark_safe(encoded)


def render_page(
    page: PageData,
    selections: Sequence[PageSelection],
    copies: Sequence[Dict[str, Any]],
    site: SiteConfig,
    all_pages: Sequence[PageData] = (),
) -> str:
    """Render one page; ``copies`` lines up with ``selections``."""

    sections = []
    footer = None
    for selection, copy in zip(selections, copies):
        entry = {
            "template": f"site/components/{selection.component.category}.html",
            "component": selection.component,
            "section": selection.section,
            "copy": copy,
        }
        if selection.component.category in CHROME_CATEGORIES:
            footer = footer or entry
        else:
            sections.append(entry)

    navigation = [
        {"name": item.name, "route": item.route or "/", "current": item.route == page.route}
        for item in nav_pages(all_pages or [page])
    ]
    utility = [item for item in navigation if item["route"] in ("/privacy", "/terms")]
    has_contact = any(item.route == "/contact" for item in all_pages)

    context = {
        "site": site,
        "page": page,
        "title": page.seo_title or f"{page.name} | {site.name}",
        "description": page.seo_description or (site.brand_description or "")[:160],
        "canonical_url": page_url(site, page.route),
        "navigation": [item for item in navigation if item not in utility],
        "legal_links": utility,
        "sections": sections,
        "footer": footer,
        "contact_href": "/contact" if has_contact else "#main-content",
        "json_ld": script_json(json_ld(page, site)),
        "year": date.today().year,
    }
    return render_to_string("site/page.html", context)


def render_sitemap(site: SiteConfig, pages: Sequence[PageData], today: date | None = None) -> str:
    urls = []
    for page in pages:
        if page.status == DRAFT:
            continue
        home = page.route in ("", "/")
        urls.append(
            {
                "loc": page_url(site, page.route),
                "changefreq": "weekly" if page.page_type == "Blog Post" else "monthly",
                "priority": "1.0" if home else "0.9" if page.page_type == "Landing" else "0.8",
            }
        )
    lastmod = (today or date.today()).isoformat()
    return render_to_string("site/sitemap.xml", {"urls": urls, "lastmod": lastmod})


def render_robots(site: SiteConfig) -> str:
    return render_to_string("site/robots.txt", {"base_url": base_url(site)})


def render_theme_css(site: SiteConfig) -> str:
    theme = site.theme or DEFAULT_THEME
    tokens = theme_tokens(theme, site.primary_color)
    return render_to_string(
        "site/theme.css",
        {
            "theme": theme,
            "theme_slug": theme.lower(),
            "brand_name": site.name,
            "tokens": sorted(tokens.items()),
            "primary": tokens["interactive"],
            "brand_light": tokens["brand-light"],
            "highlight": tokens["highlight"],
        },
    )
