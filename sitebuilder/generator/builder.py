"""Build a complete static site from :class:`SiteData`."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import BuildError
from ..selector.index import ComponentSelector
from ..sync.content import PageData, SiteData
from .copywriter import AIGenerate, generate_page_copy
from .linkcheck import BrokenLink, check_internal_links
from .planner import plan_page_sections, plan_pages
from .renderer import render_page, render_robots, render_sitemap, render_theme_css

logger = logging.getLogger(__name__)

MANIFEST_NAME = "build-manifest.json"


@dataclass
class BuiltPage:
    page_id: str
    name: str
    route: str
    path: str
    seo_title: str
    seo_description: str
    components: List[str] = field(default_factory=list)


@dataclass
class BuildResult:
    """Files written by :func:`build_site` and what went into them."""

    output_dir: Path
    files: List[str] = field(default_factory=list)
    pages: List[BuiltPage] = field(default_factory=list)
    broken_links: List[BrokenLink] = field(default_factory=list)
    deploy_url: Optional[str] = None
    commit: Optional[str] = None

    def to_manifest(self) -> Dict[str, Any]:
        data = asdict(self)
        data["output_dir"] = str(self.output_dir)
        return data

    @classmethod
    def from_manifest(cls, data: Mapping[str, Any]) -> "BuildResult":
        return cls(
            output_dir=Path(data.get("output_dir") or "."),
            files=list(data.get("files") or []),
            pages=[BuiltPage(**page) for page in data.get("pages") or []],
            broken_links=[BrokenLink(**link) for link in data.get("broken_links") or []],
            deploy_url=data.get("deploy_url"),
            commit=data.get("commit"),
        )


def page_path(route: str) -> str:
    """``/`` -> ``index.html``, ``/about`` -> ``about.html``."""

    cleaned = (route or "/").strip().strip("/")
    return f"{cleaned}.html" if cleaned else "index.html"


def _write(output_dir: Path, name: str, text: str) -> str:
    target = output_dir / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    return name


def _seo_description(page: PageData, copies: List[Dict[str, Any]], fallback: str) -> str:
    if page.seo_description:
        return page.seo_description
    for copy in copies:
        description = copy.get("description")
        if isinstance(description, str) and description:
            return description[:160]
    return fallback[:160]


def build_site(
    site_data: SiteData,
    output_dir: str | Path,
    selector: ComponentSelector,
    ai_generate: Optional[AIGenerate] = None,
    *,
    base_url: str | None = None,
) -> BuildResult:
    """Select components, write copy and render every page to ``output_dir``.

    Components used on earlier pages seed the history of later ones, so the
    same component is not repeated across the whole site. ``base_url`` is
    used for canonical URLs when the site has no domain of its own.
    """

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    site = site_data.site
    if not site.domain and base_url:
        site = replace(site, domain=base_url)
    content = site_data.content
    pages = site_data.pages or plan_pages(site, content)
    if not site_data.pages:
        logger.info("No pages defined for %s; using %d planned pages", site.name, len(pages))

    routes: Dict[str, str] = {}
    used_component_ids: List[str] = []
    result = BuildResult(output_dir=out, deploy_url=base_url)

    for page in pages:
        path = page_path(page.route)
        if path in routes:
            raise BuildError(f"Pages {routes[path]!r} and {page.name!r} both render to {path}")
        routes[path] = page.name

        sections = sorted(page.sections, key=lambda section: section.order) or plan_page_sections(page, site)
        selections = selector.select_page(
            sections,
            business_type=site.business_type,
            used_component_ids=used_component_ids,
        )
        used_component_ids.extend(selection.component.id for selection in selections)

        copies = generate_page_copy(page, site, content, selections, ai_generate)
        html = render_page(page, selections, copies, site, pages)
        result.files.append(_write(out, path, html))
        result.pages.append(
            BuiltPage(
                page_id=page.id,
                name=page.name,
                route=page.route or "/",
                path=path,
                seo_title=page.seo_title or f"{page.name} | {site.name}",
                seo_description=_seo_description(page, copies, site.brand_description),
                components=[selection.component.id for selection in selections],
            )
        )
        logger.info("Built %s (%d sections)", path, len(selections))

    result.files.append(_write(out, "sitemap.xml", render_sitemap(site, pages)))
    result.files.append(_write(out, "robots.txt", render_robots(site)))
    result.files.append(_write(out, "css/theme.css", render_theme_css(site)))

    result.broken_links = check_internal_links(out, result.files)
    logger.info("Build complete: %d files, %d broken links", len(result.files), len(result.broken_links))
    return result


def write_manifest(result: BuildResult) -> Path:
    path = result.output_dir / MANIFEST_NAME
    path.write_text(json.dumps(result.to_manifest(), indent=2), encoding="utf-8")
    return path


def load_manifest(output_dir: str | Path) -> BuildResult:
    path = Path(output_dir) / MANIFEST_NAME
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise BuildError(f"Cannot read build manifest {path}: {exc}") from exc
    return BuildResult.from_manifest(data)
