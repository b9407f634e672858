"""Two-way content sync: pull site content, push build results back."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..conf import SiteBuilderSettings
from ..exceptions import ConfigurationError, TransientIOError
from ..generator.publisher import deploy_url as github_pages_url
from .content import SiteData, fetch_site, parse_service, parse_team_member, parse_testimonial
from .detector import ChangeDetector, ChangeRecord, SnapshotStore
from .notion import NotionClient, Record, rich_text_property, url_property
from .orchestrator import STATUS_BUILDING, STATUS_FAILED, STATUS_PUBLISHED, StatusReporter

logger = logging.getLogger(__name__)

COLLECTION_PARSERS = {
    "services": parse_service,
    "testimonials": parse_testimonial,
    "team": parse_team_member,
}


@dataclass
class FullSyncResult:
    site_data: SiteData
    build_result: Any = None
    deploy_url: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ContentSync:
    """Pull content for one site and report build outcomes back to it."""

    def __init__(
        self,
        client: NotionClient,
        settings: SiteBuilderSettings,
        reporter: StatusReporter | None = None,
    ) -> None:
        self.client = client
        self.settings = settings
        self.reporter = reporter or StatusReporter(
            client,
            settings.site_id,
            settings.databases.get("build_log"),
        )

    def _require_site(self) -> str:
        if not self.settings.site_id:
            raise ConfigurationError("NOTION_SITE_ID must be set to sync a site.")
        return self.settings.site_id

    async def pull(self) -> SiteData:
        site_id = self._require_site()
        logger.info("Pulling content from Notion")
        site_data = await fetch_site(self.client, self.settings.databases, site_id)
        await self.reporter.report(STATUS_BUILDING)
        return site_data

    async def push(self, build_result: Any = None, error: BaseException | str | None = None) -> Tuple[int, int]:
        """Write status, deploy URL and page SEO fields; returns ``(succeeded, failed)`` writes."""

        if error is not None:
            await self.reporter.report(STATUS_FAILED, error=str(error) or error.__class__.__name__)
            logger.info("Reported build failure to Notion")
            return 0, 0

        url = getattr(build_result, "deploy_url", None) or github_pages_url(self.settings.github_repo)
        await self.reporter.report(
            STATUS_PUBLISHED,
            deploy_url=url,
            files=getattr(build_result, "files", None),
        )

        updates: List[Tuple[str, Dict[str, Any]]] = []
        if url and self.settings.site_id:
            updates.append((self.settings.site_id, {"Domain": url_property(url)}))
        for page in getattr(build_result, "pages", None) or []:
            fields = {}
            if page.page_id and page.seo_title:
                fields["SEO Title"] = rich_text_property(page.seo_title)
            if page.page_id and page.seo_description:
                fields["SEO Description"] = rich_text_property(page.seo_description)
            if fields:
                updates.append((page.page_id, fields))

        succeeded, failed = await self.client.write_batched(
            updates,
            batch_size=self.settings.write_batch_size,
            delay=self.settings.write_batch_delay,
        )
        logger.info("Build results synced to Notion (%d written, %d failed)", succeeded, failed)
        return succeeded, failed

    async def full(self, build_fn: Callable[[SiteData], Any]) -> FullSyncResult:
        """Pull, build with ``build_fn`` and push; build errors are reported, not raised."""

        site_data = await self.pull()
        outcome = FullSyncResult(site_data=site_data)
        try:
            result = build_fn(site_data)
            if inspect.isawaitable(result):
                result = await result
            outcome.build_result = result
            outcome.deploy_url = getattr(result, "deploy_url", None) or github_pages_url(self.settings.github_repo)
        except ConfigurationError:
            raise
        except Exception as exc:
            logger.error("Build failed: %s", exc)
            outcome.error = exc

        await self.push(outcome.build_result, outcome.error)
        return outcome

    async def detect_changes(self, store: SnapshotStore | None = None) -> List[ChangeRecord]:
        """One-shot detection against the persisted snapshot."""

        store = store or SnapshotStore(self.settings.state_path)
        detector = ChangeDetector(self.client, self.settings.tracked_collections, snapshot=store.load())
        changes = await detector.detect()
        store.save(detector.snapshot)
        return changes

    async def sync_pages(self, record_ids: Sequence[str]) -> List[Record]:
        """Fetch specific records by id, skipping any that cannot be read."""

        records: List[Record] = []
        for record_id in record_ids:
            try:
                records.append(await self.client.retrieve_record(record_id))
            except TransientIOError as exc:
                logger.warning("Failed to fetch page %s: %s", record_id, exc)
        return records

    async def sync_collection(self, key: str) -> List[Any]:
        """Read one configured collection, parsed when a content model exists for it."""

        collection_id = self.settings.databases.get(key)
        if not collection_id:
            raise ConfigurationError(f"Unknown database key: {key}")
        records = await self.client.query_all(collection_id)
        parse = COLLECTION_PARSERS.get(key)
        return [parse(record) for record in records] if parse else records
