"""Publish articles in bulk: area landings, article pages, the areas index.

The run collects articles (by area and status, by batch id, or by explicit
ids), renders them in groups of ``concurrency``, writes the areas index last
so it carries final counts, and then writes each published URL back to its
Notion record in rate-limited batches.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import BuildError, TransientIOError
from ..sync.articles import (
    DEFAULT_PUBLISH_STATUS,
    Area,
    Article,
    area_named,
    fetch_article_with_body,
    fetch_articles_for_area,
    load_areas,
)
from ..sync.content import SiteConfig
from ..sync.notion import NotionClient, date_property, select_property, url_property
from .articles import (
    absolute_url,
    article_path,
    article_route,
    render_area_landing,
    render_areas_home,
    render_article_page,
)
from .linkcheck import BrokenLink, check_internal_links
from .renderer import render_theme_css

logger = logging.getLogger(__name__)

DEPLOYED = "Deployed"
AREAS_INDEX = "areas/index.html"

Progress = Callable[[str, int, int], None]
Sleep = Callable[[float], Awaitable[None]]


@dataclass
class PublishedArticle:
    id: str
    title: str
    url: str
    path: str


@dataclass
class FailedArticle:
    id: str
    title: str
    error: str


@dataclass
class BulkPublishResult:
    output_dir: Path
    built: List[PublishedArticle] = field(default_factory=list)
    failed: List[FailedArticle] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    area_counts: Dict[str, int] = field(default_factory=dict)
    files: List[str] = field(default_factory=list)
    broken_links: List[BrokenLink] = field(default_factory=list)
    written_back: int = 0
    write_back_failed: int = 0


def _write(output_dir: Path, name: str, text: str) -> str:
    target = output_dir / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(text, encoding="utf-8")
    return name


def _landing_path(area: Area) -> str:
    return f"{area.path.strip('/')}/index.html"


def _report(on_progress: Optional[Progress], phase: str, current: int, total: int) -> None:
    if on_progress is not None:
        on_progress(phase, current, total)


class BulkPublisher:
    """Render and publish many articles from the articles database."""

    def __init__(
        self,
        client: NotionClient,
        databases: Mapping[str, str],
        site: SiteConfig,
        *,
        areas: Sequence[Area] | None = None,
        concurrency: int = 3,
        batch_delay: float = 1.1,
        write_batch_size: int = 3,
        write_batch_delay: float = 0.35,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.databases = databases
        self.site = site
        self.areas = list(areas) if areas is not None else load_areas()
        self.concurrency = max(1, concurrency)
        self.batch_delay = batch_delay
        self.write_batch_size = write_batch_size
        self.write_batch_delay = write_batch_delay
        self.sleep = sleep

    # ── Collection ────────────────────────────────────────────────────

    def _scope(self, area_id: str | None) -> List[Area]:
        if not area_id:
            return self.areas
        area = next((area for area in self.areas if area.id == area_id), None)
        if area is None:
            logger.warning("Unknown area %r; nothing to publish", area_id)
            return []
        return [area]

    async def collect(
        self,
        result: BulkPublishResult,
        *,
        area_id: str | None = None,
        batch_id: str | None = None,
        article_ids: Sequence[str] = (),
        status: str | None = DEFAULT_PUBLISH_STATUS,
    ) -> Tuple[List[Area], List[Article]]:
        """Articles to publish and the areas whose landing pages they touch."""

        if article_ids:
            articles: List[Article] = []
            for article_id in article_ids:
                try:
                    articles.append(await fetch_article_with_body(self.client, self.databases, article_id))
                except TransientIOError as exc:
                    result.failed.append(FailedArticle(id=article_id, title="", error=str(exc)))
            names = {article.area for article in articles}
            return [area for area in self.areas if area.name in names], articles

        collection_id = self.databases.get("articles")
        if not collection_id:
            logger.warning("No articles database configured; nothing to publish")
            return [], []

        scope = self._scope(area_id)
        articles = []
        for area in scope:
            found = await fetch_articles_for_area(self.client, collection_id, area.name, status=status)
            if batch_id:
                found = [article for article in found if article.batch_id == batch_id]
            result.area_counts[area.id] = len(found)
            articles.extend(found)
        return scope, articles

    # ── Rendering ─────────────────────────────────────────────────────

    async def _build_article(self, article: Article, output_dir: Path) -> PublishedArticle:
        if article.body_sections is None:
            article = await fetch_article_with_body(self.client, self.databases, article.id)
        area = area_named(self.areas, article.area)
        if area is None:
            raise BuildError(f"Article {article.title or article.id!r} has no known area ({article.area!r})")
        path = _write(output_dir, article_path(area, article), render_article_page(article, area, self.site))
        return PublishedArticle(
            id=article.id,
            title=article.title,
            url=absolute_url(self.site, article_route(area, article)),
            path=path,
        )

    async def publish(
        self,
        output_dir: str | Path,
        *,
        area_id: str | None = None,
        batch_id: str | None = None,
        article_ids: Sequence[str] = (),
        status: str | None = DEFAULT_PUBLISH_STATUS,
        write_back: bool = True,
        resume: bool = False,
        on_progress: Optional[Progress] = None,
    ) -> BulkPublishResult:
        """Run the whole pipeline into ``output_dir``.

        With ``resume`` set, articles whose page already exists in
        ``output_dir`` are skipped and their URLs are not written back
        again, so a failed run can be restarted where it stopped.
        """

        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        result = BulkPublishResult(output_dir=out)

        _report(on_progress, "collecting", 0, 0)
        landing_areas, articles = await self.collect(
            result,
            area_id=area_id,
            batch_id=batch_id,
            article_ids=article_ids,
            status=status,
        )
        _report(on_progress, "collected", len(articles), len(articles))
        if not articles:
            logger.info("No articles to publish")
            return result

        by_area: Dict[str, List[Article]] = {}
        for article in articles:
            by_area.setdefault(article.area, []).append(article)

        for area in landing_areas:
            html = render_area_landing(area, by_area.get(area.name, []), self.site)
            result.files.append(_write(out, _landing_path(area), html))
        # The areas index links every area, so areas outside this run get an
        # empty landing unless an earlier run already wrote one.
        for area in self.areas:
            if area not in landing_areas and not (out / _landing_path(area)).exists():
                result.files.append(_write(out, _landing_path(area), render_area_landing(area, [], self.site)))
        _report(on_progress, "area-landings", len(landing_areas), len(landing_areas))

        pending: List[Article] = []
        for article in articles:
            area = area_named(self.areas, article.area)
            if resume and area is not None and (out / article_path(area, article)).exists():
                result.skipped.append(article.id)
            else:
                pending.append(article)

        for start in range(0, len(pending), self.concurrency):
            if start:
                await self.sleep(self.batch_delay)
            batch = pending[start:start + self.concurrency]
            outcomes = await asyncio.gather(
                *(self._build_article(article, out) for article in batch),
                return_exceptions=True,
            )
            for article, outcome in zip(batch, outcomes):
                if isinstance(outcome, (TransientIOError, BuildError)):
                    logger.warning("Failed to build article %s: %s", article.title or article.id, outcome)
                    result.failed.append(FailedArticle(id=article.id, title=article.title, error=str(outcome)))
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.built.append(outcome)
                    result.files.append(outcome.path)
            _report(on_progress, "articles", min(start + len(batch), len(pending)), len(pending))

        counts = {area.id: len(by_area.get(area.name, [])) for area in self.areas}
        result.files.append(_write(out, AREAS_INDEX, render_areas_home(self.areas, counts, self.site)))
        result.files.append(_write(out, "css/theme.css", render_theme_css(self.site)))
        _report(on_progress, "areas-home", 1, 1)

        if write_back and result.built:
            await self.write_back(result)

        on_disk = sorted(path.relative_to(out).as_posix() for path in out.rglob("*") if path.is_file())
        result.broken_links = check_internal_links(out, on_disk)
        _report(on_progress, "complete", len(result.built), len(articles))
        logger.info(
            "Bulk publish: %d built, %d skipped, %d failed",
            len(result.built),
            len(result.skipped),
            len(result.failed),
        )
        return result

    async def write_back(self, result: BulkPublishResult) -> None:
        """Write ``Published URL`` and ``Build Status`` to every built article."""

        updates = [
            (
                item.id,
                {
                    "Published URL": url_property(item.url),
                    "Build Status": select_property(DEPLOYED),
                    "Build Timestamp": date_property(),
                },
            )
            for item in result.built
        ]
        result.written_back, result.write_back_failed = await self.client.write_batched(
            updates,
            batch_size=self.write_batch_size,
            delay=self.write_batch_delay,
        )
