"""Change detection and two-way sync with the Notion workspace."""

from .articles import Area, Article, fetch_article_with_body, fetch_articles_for_area, load_areas
from .content import SiteData, fetch_site, load_site_file
from .detector import ChangeDetector, ChangeRecord, SnapshotStore, SyncSnapshot, content_hash, diff
from .notion import NotionClient, Record, RecordPage
from .orchestrator import CycleOutcome, StatusReporter, SyncOrchestrator, SyncState

__all__ = [
    "Area",
    "Article",
    "ChangeDetector",
    "ChangeRecord",
    "CycleOutcome",
    "NotionClient",
    "Record",
    "RecordPage",
    "SiteData",
    "SnapshotStore",
    "StatusReporter",
    "SyncOrchestrator",
    "SyncSnapshot",
    "SyncState",
    "content_hash",
    "diff",
    "fetch_article_with_body",
    "fetch_articles_for_area",
    "fetch_site",
    "load_areas",
    "load_site_file",
]
