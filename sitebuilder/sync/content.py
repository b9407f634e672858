"""Site content model and its mapping from Notion records."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..exceptions import ConfigurationError
from ..selector.types import Section
from .notion import (
    NotionClient,
    Record,
    extract_checkbox,
    extract_multi_select,
    extract_number,
    extract_relation,
    extract_select,
    extract_text,
    extract_title,
    extract_url,
)

logger = logging.getLogger(__name__)

DEFAULT_THEME = "G100"
DRAFT = "Draft"


@dataclass
class SiteConfig:
    id: str = ""
    name: str = ""
    domain: str = ""
    repo: str = ""
    business_type: str = ""
    brand_description: str = ""
    target_audience: List[str] = field(default_factory=list)
    primary_color: str = ""
    theme: str = DEFAULT_THEME
    status: str = DRAFT


@dataclass
class PageData:
    id: str = ""
    name: str = ""
    route: str = "/"
    page_type: str = "Landing"
    nav_order: float = 0
    is_global: bool = False
    status: str = DRAFT
    seo_title: str = ""
    seo_description: str = ""
    sections: List[Section] = field(default_factory=list)


@dataclass
class Service:
    id: str = ""
    name: str = ""
    description: str = ""
    pricing: Optional[float] = None
    features: List[str] = field(default_factory=list)
    cta_label: str = ""
    cta_link: str = ""


@dataclass
class Testimonial:
    id: str = ""
    quote: str = ""
    author: str = ""
    role: str = ""
    rating: Optional[float] = None


@dataclass
class TeamMember:
    id: str = ""
    name: str = ""
    role: str = ""
    bio: str = ""
    linkedin: str = ""


@dataclass
class SiteContent:
    services: List[Service] = field(default_factory=list)
    testimonials: List[Testimonial] = field(default_factory=list)
    team: List[TeamMember] = field(default_factory=list)


@dataclass
class SiteData:
    """Everything the generator needs to build one site."""

    site: SiteConfig
    pages: List[PageData] = field(default_factory=list)
    content: SiteContent = field(default_factory=SiteContent)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SiteData":
        content = data.get("content") or {}
        return cls(
            site=_build(SiteConfig, data.get("site") or {}),
            pages=[_page_from_dict(page) for page in data.get("pages") or []],
            content=SiteContent(
                services=[_build(Service, item) for item in content.get("services") or []],
                testimonials=[_build(Testimonial, item) for item in content.get("testimonials") or []],
                team=[_build(TeamMember, item) for item in content.get("team") or []],
            ),
        )


def _build(cls: type, data: Mapping[str, Any]) -> Any:
    known = cls.__dataclass_fields__
    return cls(**{key: value for key, value in data.items() if key in known})


def _section_from_dict(data: Mapping[str, Any], order: int) -> Section:
    count = data.get("content_count")
    return Section(
        section_type=str(data.get("section_type") or data.get("type") or "content"),
        name=str(data.get("name") or ""),
        description=str(data.get("description") or ""),
        content_count=int(count) if count is not None else None,
        order=int(data.get("order", order) or 0),
        component_override=data.get("component_override") or None,
        id=data.get("id"),
        metadata=dict(data.get("metadata") or {}),
    )


def _page_from_dict(data: Mapping[str, Any]) -> PageData:
    page = _build(PageData, {key: value for key, value in data.items() if key != "sections"})
    page.sections = [_section_from_dict(section, index) for index, section in enumerate(data.get("sections") or [])]
    return page


# ── Notion record parsing ─────────────────────────────────────────────


def parse_site(record: Record) -> SiteConfig:
    props = record.properties
    return SiteConfig(
        id=record.id,
        name=extract_title(props.get("Site Name") or props.get("Name")),
        domain=extract_url(props.get("Domain")),
        repo=extract_text(props.get("GitHub Repo")),
        business_type=extract_select(props.get("Business Type")),
        brand_description=extract_text(props.get("Brand Description")),
        target_audience=extract_multi_select(props.get("Target Audience")),
        primary_color=extract_text(props.get("Primary Color")),
        theme=extract_select(props.get("Theme")) or DEFAULT_THEME,
        status=extract_select(props.get("Status")) or DRAFT,
    )


def parse_page(record: Record) -> PageData:
    props = record.properties
    return PageData(
        id=record.id,
        name=extract_title(props.get("Page Name") or props.get("Name")),
        route=extract_text(props.get("Route")) or "/",
        page_type=extract_select(props.get("Page Type")) or "Landing",
        nav_order=extract_number(props.get("Nav Order")) or 0,
        is_global=extract_checkbox(props.get("Is Global")),
        status=extract_select(props.get("Status")) or DRAFT,
        seo_title=extract_text(props.get("SEO Title")),
        seo_description=extract_text(props.get("SEO Description")),
    )


def parse_section(record: Record) -> Section:
    props = record.properties
    count = extract_number(props.get("Content Count"))
    override = extract_text(props.get("Component") or props.get("Carbon Component"))
    return Section(
        section_type=extract_select(props.get("Section Type")) or "Content",
        name=extract_title(props.get("Section Name") or props.get("Name")),
        description=extract_text(props.get("Description")),
        content_count=int(count) if count else None,
        order=int(extract_number(props.get("Order")) or 0),
        component_override=override or None,
        id=record.id,
        metadata={"content_source_ids": extract_relation(props.get("Content Source"))},
    )


def parse_service(record: Record) -> Service:
    props = record.properties
    return Service(
        id=record.id,
        name=extract_title(props.get("Name")),
        description=extract_text(props.get("Description")),
        pricing=extract_number(props.get("Pricing")),
        features=extract_multi_select(props.get("Features")),
        cta_label=extract_text(props.get("CTA Label")),
        cta_link=extract_url(props.get("CTA Link")),
    )


def parse_testimonial(record: Record) -> Testimonial:
    props = record.properties
    return Testimonial(
        id=record.id,
        quote=extract_title(props.get("Quote")),
        author=extract_text(props.get("Author")),
        role=extract_text(props.get("Role")),
        rating=extract_number(props.get("Rating")),
    )


def parse_team_member(record: Record) -> TeamMember:
    props = record.properties
    return TeamMember(
        id=record.id,
        name=extract_title(props.get("Name")),
        role=extract_text(props.get("Role")),
        bio=extract_text(props.get("Bio")),
        linkedin=extract_url(props.get("LinkedIn")),
    )


def _relation_filter(prop: str, record_id: str) -> Dict[str, Any]:
    return {"property": prop, "relation": {"contains": record_id}}


async def _collection(client: NotionClient, collection_id: str | None, parse: Any) -> List[Any]:
    if not collection_id:
        return []
    return [parse(record) for record in await client.query_all(collection_id)]


async def fetch_site(client: NotionClient, databases: Mapping[str, str], site_id: str) -> SiteData:
    """Read one site, its pages and sections, and the shared content collections."""

    site = parse_site(await client.retrieve_record(site_id))

    pages: List[PageData] = []
    if databases.get("pages"):
        records = await client.query_all(
            databases["pages"],
            filter=_relation_filter("Site", site_id),
            sorts=[{"property": "Nav Order", "direction": "ascending"}],
        )
        pages = [parse_page(record) for record in records]

    if databases.get("sections"):
        for page in pages:
            records = await client.query_all(
                databases["sections"],
                filter=_relation_filter("Page", page.id),
                sorts=[{"property": "Order", "direction": "ascending"}],
            )
            page.sections = [parse_section(record) for record in records]

    services, testimonials, team = await asyncio.gather(
        _collection(client, databases.get("services"), parse_service),
        _collection(client, databases.get("testimonials"), parse_testimonial),
        _collection(client, databases.get("team"), parse_team_member),
    )

    logger.info(
        "Extracted site %s: %d pages, %d services, %d testimonials, %d team members",
        site.name,
        len(pages),
        len(services),
        len(testimonials),
        len(team),
    )
    return SiteData(
        site=site,
        pages=pages,
        content=SiteContent(services=services, testimonials=testimonials, team=team),
    )


DEMO_SITE_PATH = Path(__file__).resolve().parent.parent / "data" / "demo_site.yaml"


def load_site_file(path: str | Path | None = None) -> SiteData:
    """Load :class:`SiteData` from YAML or JSON (the demo site by default)."""

    site_path = Path(path) if path is not None else DEMO_SITE_PATH
    try:
        with site_path.open("r", encoding="utf-8") as stream:
            data = yaml.safe_load(stream) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read site data from {site_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Site data in {site_path} must be a mapping")
    return SiteData.from_dict(data)
