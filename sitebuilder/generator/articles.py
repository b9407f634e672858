"""Render article pages, area landing pages and the areas index."""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from django.template.loader import render_to_string
from django.utils.html import escape
from django.utils.safestring import SafeString, mark_safe
from django.utils.text import slugify

from ..sync.articles import Area, Article, Block, FaqEntry
from ..sync.content import SiteConfig
from .renderer import base_url, script_json

# Section groups carried as metadata in Notion, never shown in the body.
HIDDEN_GROUPS = ("SEO", "DAT", "META")
FAQ_GROUP = "QST"
FAQ_TITLE = "Frequently Asked Questions"
_GROUP_RE = re.compile(r"^SEC-([A-Z$]+)-\d{3}")

LIST_TAGS = {"bulleted_list_item": "ul", "numbered_list_item": "ol"}
ANNOTATION_TAGS = (
    ("bold", "strong"),
    ("italic", "em"),
    ("strikethrough", "s"),
    ("underline", "u"),
    ("code", "code"),
)


def article_route(area: Area, article: Article) -> str:
    return f"{area.path}{article.slug}/"


def article_path(area: Area, article: Article) -> str:
    return f"{article_route(area, article).strip('/')}/index.html"


def absolute_url(site: SiteConfig, route: str) -> str:
    return f"{base_url(site)}{route}"


# ── Block HTML ────────────────────────────────────────────────────────


def rich_text_html(segments: Sequence[Mapping[str, Any]]) -> str:
    parts = []
    for segment in segments:
        text = str(escape(segment.get("plain_text", "")))
        annotations = segment.get("annotations") or {}
        for flag, tag in ANNOTATION_TAGS:
            if annotations.get(flag):
                text = f"<{tag}>{text}</{tag}>"
        if segment.get("href"):
            text = f'<a href="{escape(segment["href"])}">{text}</a>'
        parts.append(text)
    return "".join(parts)


def _block_html(block: Block) -> str:
    text = escape(block.text)
    kind = block.type
    if kind == "paragraph":
        return f"<p>{rich_text_html(block.rich_text) if block.rich_text else text}</p>"
    if kind in ("heading_1", "heading_2", "heading_3"):
        level = kind[-1]
        return f"<h{level}>{text}</h{level}>"
    if kind in LIST_TAGS:
        return f"<li>{text}{blocks_to_html(block.children)}</li>"
    if kind == "quote":
        return f"<blockquote>{text}</blockquote>"
    if kind == "callout":
        return f'<div class="callout"><p>{text}</p></div>'
    if kind == "toggle":
        return f"<details><summary>{text}</summary>{blocks_to_html(block.children)}</details>"
    if kind == "code":
        return f'<pre><code class="language-{escape(block.language or "text")}">{text}</code></pre>'
    if kind == "image":
        caption = f"<figcaption>{escape(block.caption)}</figcaption>" if block.caption else ""
        return f'<figure><img src="{escape(block.url)}" alt="{escape(block.caption)}">{caption}</figure>'
    if kind == "divider":
        return "<hr>"
    return ""


def blocks_to_html(blocks: Sequence[Block]) -> SafeString:
    """Notion blocks as HTML; consecutive list items share one list element."""

    parts: List[str] = []
    open_list: Optional[str] = None
    for block in blocks:
        list_tag = LIST_TAGS.get(block.type)
        if open_list and open_list != list_tag:
            parts.append(f"</{open_list}>")
            open_list = None
        if list_tag and not open_list:
            parts.append(f"<{list_tag}>")
            open_list = list_tag
        html = _block_html(block)
        if html:
            parts.append(html)
    if open_list:
        parts.append(f"</{open_list}>")
    return mark_safe("\n".join(parts))


# ── Sections ──────────────────────────────────────────────────────────


@dataclass
class ArticleSection:
    anchor: str
    title: str
    html: str = ""
    questions: List[FaqEntry] = field(default_factory=list)


def section_group(name: str) -> Optional[str]:
    match = _GROUP_RE.match(name)
    return match.group(1) if match else None


def article_sections(article: Article) -> List[ArticleSection]:
    """Visible body sections with unique anchors, in document order.

    A questions section turns into an FAQ when the article has linked
    questions; empty sections get a placeholder paragraph.
    """

    sections: List[ArticleSection] = []
    anchors: Counter = Counter()
    for name, blocks in (article.body_sections or {}).items():
        group = section_group(name)
        if group in HIDDEN_GROUPS:
            continue
        anchor = slugify(name) or "section"
        anchors[anchor] += 1
        if anchors[anchor] > 1:
            anchor = f"{anchor}-{anchors[anchor]}"

        if article.questions and (group == FAQ_GROUP or name == FAQ_TITLE):
            sections.append(ArticleSection(anchor=anchor, title=FAQ_TITLE, questions=list(article.questions)))
            continue
        html = blocks_to_html(blocks) if blocks else mark_safe("<p>Content coming soon.</p>")
        sections.append(ArticleSection(anchor=anchor, title=name, html=html))
    return sections


# ── Pages ─────────────────────────────────────────────────────────────


def article_json_ld(article: Article, area: Area, site: SiteConfig, url: str) -> List[Dict[str, Any]]:
    publisher = {"@type": "Organization", "name": site.name, "url": base_url(site)}
    data: Dict[str, Any] = {
        "@context": "https://schema.org",
        "@type": "Article",
        "headline": article.heading,
        "description": article.meta_description or article.primary_definition,
        "url": url,
        "author": {"@type": "Organization", "name": site.name},
        "publisher": publisher,
    }
    for key, value in (
        ("datePublished", article.publish_date),
        ("dateModified", article.last_updated),
        ("image", article.featured_image),
    ):
        if value:
            data[key] = value

    schemas = [data]
    if article.questions:
        schemas.append(
            {
                "@context": "https://schema.org",
                "@type": "FAQPage",
                "mainEntity": [
                    {
                        "@type": "Question",
                        "name": entry.question,
                        "acceptedAnswer": {"@type": "Answer", "text": entry.answer},
                    }
                    for entry in article.questions
                ],
            }
        )
    schemas.append(
        {
            "@context": "https://schema.org",
            "@type": "BreadcrumbList",
            "itemListElement": [
                {"@type": "ListItem", "position": 1, "name": "Areas", "item": absolute_url(site, "/areas/")},
                {"@type": "ListItem", "position": 2, "name": area.name, "item": absolute_url(site, area.path)},
                {"@type": "ListItem", "position": 3, "name": article.title},
            ],
        }
    )
    return schemas


def render_article_page(article: Article, area: Area, site: SiteConfig) -> str:
    title = article.seo_title or article.heading
    description = article.meta_description or article.primary_definition
    url = article.canonical_url or absolute_url(site, article_route(area, article))
    context = {
        "site": site,
        "article": article,
        "area": area,
        "title": title,
        "description": description,
        "canonical_url": url,
        "og_title": article.og_title or title,
        "og_description": article.og_description or description,
        "og_image": article.og_image or article.featured_image,
        "og_type": "article",
        "breadcrumbs": [
            {"label": "Areas", "href": "/areas/"},
            {"label": area.name, "href": area.path},
            {"label": article.title, "href": ""},
        ],
        "sections": article_sections(article),
        "json_ld": [script_json(data) for data in article_json_ld(article, area, site, url)],
    }
    return render_to_string("site/articles/article.html", context)


def _card(article: Article, area: Area) -> Dict[str, Any]:
    return {
        "article": article,
        "href": article_route(area, article),
        "image": article.thumbnail_image or article.featured_image,
    }


def render_area_landing(area: Area, articles: Sequence[Article], site: SiteConfig) -> str:
    """Landing page listing an area's articles, grouped by content type."""

    groups: Dict[str, List[Dict[str, Any]]] = {}
    for article in articles:
        groups.setdefault(article.content_type or "Uncategorized", []).append(_card(article, area))

    url = absolute_url(site, area.path)
    title = f"{area.name} | {site.name}" if site.name else area.name
    collection = {
        "@context": "https://schema.org",
        "@type": "CollectionPage",
        "name": area.name,
        "description": area.description,
        "url": url,
        "isPartOf": {"@type": "WebSite", "name": site.name},
        "numberOfItems": len(articles),
    }
    context = {
        "site": site,
        "area": area,
        "title": title,
        "description": area.description,
        "canonical_url": url,
        "og_title": title,
        "og_description": area.description,
        "og_type": "website",
        "breadcrumbs": [{"label": "Areas", "href": "/areas/"}, {"label": area.name, "href": ""}],
        "groups": sorted(groups.items()),
        "article_count": len(articles),
        "json_ld": [script_json(collection)],
    }
    return render_to_string("site/articles/area.html", context)


def render_areas_home(areas: Sequence[Area], counts: Mapping[str, int], site: SiteConfig) -> str:
    """Index of every area with its article count; ``counts`` is keyed by area id."""

    total = sum(counts.get(area.id, 0) for area in areas)
    url = absolute_url(site, "/areas/")
    description = f"Explore {len(areas)} areas" + (f" of {site.name}" if site.name else "") + "."
    collection = {
        "@context": "https://schema.org",
        "@type": "CollectionPage",
        "name": "Areas",
        "description": description,
        "url": url,
        "isPartOf": {"@type": "WebSite", "name": site.name},
        "numberOfItems": len(areas),
    }
    context = {
        "site": site,
        "title": f"Areas | {site.name}" if site.name else "Areas",
        "description": description,
        "canonical_url": url,
        "og_title": "Areas",
        "og_description": description,
        "og_type": "website",
        "areas": [{"area": area, "count": counts.get(area.id, 0)} for area in areas],
        "total": total,
        "json_ld": [script_json(collection)],
    }
    return render_to_string("site/articles/areas.html", context)
