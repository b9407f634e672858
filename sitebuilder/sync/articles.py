"""Articles and the areas that group them.

Articles live in their own Notion database. List queries return property
data only; :func:`fetch_article_with_body` also walks the page's block tree
and splits it into sections at each level-2 heading.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml
from django.utils.text import slugify

from ..exceptions import ConfigurationError
from .notion import (
    NotionClient,
    Record,
    extract_date,
    extract_multi_select,
    extract_number,
    extract_select,
    extract_text,
    extract_title,
    extract_url,
)

logger = logging.getLogger(__name__)

AREAS_PATH = Path(__file__).resolve().parent.parent / "data" / "areas.yaml"
DEFAULT_PUBLISH_STATUS = "Approved"
TEXT_BLOCKS = (
    "paragraph",
    "heading_1",
    "heading_2",
    "heading_3",
    "bulleted_list_item",
    "numbered_list_item",
    "quote",
    "callout",
    "toggle",
)


@dataclass(frozen=True)
class Area:
    id: str
    name: str
    description: str = ""

    @property
    def path(self) -> str:
        return f"/areas/{self.id}/"


def load_areas(path: str | Path | None = None) -> List[Area]:
    areas_path = Path(path) if path is not None else AREAS_PATH
    try:
        with areas_path.open("r", encoding="utf-8") as stream:
            data = yaml.safe_load(stream) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read areas from {areas_path}: {exc}") from exc
    entries = data.get("areas") if isinstance(data, dict) else data
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError(f"{areas_path} must hold a non-empty list of areas")
    return [
        Area(id=str(entry["id"]), name=str(entry["name"]), description=str(entry.get("description") or ""))
        for entry in entries
    ]


def area_named(areas: Sequence[Area], name: str) -> Optional[Area]:
    return next((area for area in areas if area.name == name), None)


@dataclass
class Block:
    """One Notion content block, reduced to what the renderer needs."""

    type: str
    id: str = ""
    text: str = ""
    rich_text: List[Dict[str, Any]] = field(default_factory=list)
    language: str = ""
    url: str = ""
    caption: str = ""
    children: List["Block"] = field(default_factory=list)


@dataclass
class FaqEntry:
    question: str
    answer: str = ""


@dataclass
class Article:
    id: str = ""
    title: str = ""
    subtitle: str = ""
    content_type: str = ""
    area: str = ""
    publish_status: str = "Draft"
    publish_date: str = ""
    last_updated: str = ""
    tags: List[str] = field(default_factory=list)
    priority: str = ""
    difficulty: str = ""
    reading_time: Optional[float] = None
    featured_image: str = ""
    thumbnail_image: str = ""
    published_url: str = ""
    build_status: str = ""
    batch_id: str = ""
    seo_title: str = ""
    meta_description: str = ""
    h1: str = ""
    url_slug: str = ""
    canonical_url: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    primary_definition: str = ""
    tldr_summary: str = ""
    body_sections: Optional[Dict[str, List[Block]]] = None
    questions: List[FaqEntry] = field(default_factory=list)

    @property
    def slug(self) -> str:
        """Last segment of ``URL Slug`` when set, else the slugified title."""

        from_slug = slugify(self.url_slug.strip("/").rsplit("/", 1)[-1])
        return from_slug or slugify(self.title) or self.id

    @property
    def heading(self) -> str:
        return self.h1 or self.title


def _plain(rich_text: Sequence[Mapping[str, Any]] | None) -> str:
    return "".join(item.get("plain_text", "") for item in rich_text or [])


def parse_block(payload: Mapping[str, Any]) -> Block:
    kind = payload.get("type", "")
    data = payload.get(kind) or {}
    block = Block(type=kind, id=payload.get("id", ""))
    if kind in TEXT_BLOCKS:
        block.rich_text = list(data.get("rich_text") or [])
        block.text = _plain(block.rich_text)
    elif kind == "code":
        block.text = _plain(data.get("rich_text"))
        block.language = data.get("language") or ""
    elif kind in ("image", "video"):
        source = data.get(data.get("type") or "external") or {}
        block.url = source.get("url") or ""
        block.caption = _plain(data.get("caption"))
    return block


def parse_body_sections(blocks: Sequence[Block]) -> Dict[str, List[Block]]:
    """Group blocks under the preceding level-2 heading.

    Blocks before the first heading are dropped.
    """

    sections: Dict[str, List[Block]] = {}
    current: Optional[List[Block]] = None
    for block in blocks:
        if block.type == "heading_2":
            current = sections.setdefault(block.text, [])
        elif current is not None:
            current.append(block)
    return sections


def parse_article(record: Record) -> Article:
    props = record.properties
    return Article(
        id=record.id,
        title=extract_title(props.get("Article Title") or props.get("Name")),
        subtitle=extract_text(props.get("Article Subtitle")),
        content_type=extract_select(props.get("Content Type")),
        area=extract_select(props.get("Area of IO")),
        publish_status=extract_select(props.get("Publish Status")) or "Draft",
        publish_date=extract_date(props.get("Publish Date")),
        last_updated=extract_date(props.get("Last Updated")),
        tags=extract_multi_select(props.get("Tags")),
        priority=extract_select(props.get("Priority")),
        difficulty=extract_select(props.get("Difficulty Level")),
        reading_time=extract_number(props.get("Reading Time")),
        featured_image=extract_url(props.get("Featured Image")),
        thumbnail_image=extract_url(props.get("Thumbnail Image")),
        published_url=extract_url(props.get("Published URL")),
        build_status=extract_select(props.get("Build Status")),
        batch_id=extract_text(props.get("Batch ID")),
        seo_title=extract_text(props.get("SEO Title")),
        meta_description=extract_text(props.get("Meta Description")),
        h1=extract_text(props.get("H1 Tag")),
        url_slug=extract_text(props.get("URL Slug")),
        canonical_url=extract_url(props.get("Canonical URL")),
        og_title=extract_text(props.get("OG Title")),
        og_description=extract_text(props.get("OG Description")),
        og_image=extract_url(props.get("OG Image")),
        primary_definition=extract_text(props.get("Primary Definition")),
        tldr_summary=extract_text(props.get("TL;DR Summary")),
    )


def parse_faq_entry(record: Record) -> FaqEntry:
    props = record.properties
    return FaqEntry(
        question=extract_title(props.get("Question")) or "Question",
        answer=extract_text(props.get("Answer")),
    )


async def fetch_articles_for_area(
    client: NotionClient,
    collection_id: str,
    area_name: str,
    *,
    status: str | None = None,
    content_type: str | None = None,
) -> List[Article]:
    """Every article in ``area_name``, optionally narrowed by status and content type."""

    conditions: List[Dict[str, Any]] = [{"property": "Area of IO", "select": {"equals": area_name}}]
    if status:
        conditions.append({"property": "Publish Status", "select": {"equals": status}})
    if content_type:
        conditions.append({"property": "Content Type", "select": {"equals": content_type}})

    records = await client.query_all(
        collection_id,
        filter=conditions[0] if len(conditions) == 1 else {"and": conditions},
        sorts=[{"property": "Priority", "direction": "ascending"}],
    )
    return [parse_article(record) for record in records]


async def fetch_blocks(client: NotionClient, block_id: str) -> List[Block]:
    """The block tree under ``block_id``; child pages are not descended into."""

    blocks: List[Block] = []
    async for payload in client.iter_block_children(block_id):
        block = parse_block(payload)
        if payload.get("has_children") and block.type != "child_page":
            block.children = await fetch_blocks(client, block.id)
        blocks.append(block)
    return blocks


async def fetch_article_with_body(
    client: NotionClient,
    databases: Mapping[str, str],
    article_id: str,
) -> Article:
    article = parse_article(await client.retrieve_record(article_id))
    article.body_sections = parse_body_sections(await fetch_blocks(client, article_id))
    if databases.get("questions"):
        records = await client.query_all(
            databases["questions"],
            filter={"property": "Article", "relation": {"contains": article_id}},
        )
        article.questions = [parse_faq_entry(record) for record in records]
    logger.debug("Fetched article %s with %d sections", article.title, len(article.body_sections))
    return article
