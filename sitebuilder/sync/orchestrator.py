"""Polling loop that turns detected changes into builds and status writes."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from ..exceptions import ConfigurationError, TransientIOError
from .detector import ChangeDetector, ChangeRecord, SnapshotStore
from .notion import (
    date_property,
    number_property,
    rich_text_property,
    select_property,
    title_property,
    url_property,
)

logger = logging.getLogger(__name__)

STATUS_BUILDING = "Building"
STATUS_PUBLISHED = "Published"
STATUS_FAILED = "Build Failed"
ERROR_LIMIT = 2000

BuildCallback = Callable[[List[ChangeRecord]], Union[Any, Awaitable[Any]]]


class SyncState(str, Enum):
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    POLLING = "polling"
    DETECTING = "detecting"
    BUILDING = "building"


@dataclass
class CycleOutcome:
    """What a single detection cycle observed and did."""

    changes: List[ChangeRecord] = field(default_factory=list)
    built: bool = False
    status: Optional[str] = None
    error: Optional[str] = None
    result: Any = None

    @property
    def changed(self) -> bool:
        return bool(self.changes)


class StatusReporter:
    """Write build status to the site record and an optional build log.

    ``source`` needs ``write_status(record_id, fields)`` and
    ``create_record(collection_id, properties)``, which
    :class:`~sitebuilder.sync.notion.NotionClient` provides.
    """

    def __init__(self, source: Any, site_id: str | None, build_log_collection: str | None = None) -> None:
        self.source = source
        self.site_id = site_id
        self.build_log_collection = build_log_collection

    async def report(
        self,
        status: str,
        *,
        deploy_url: str | None = None,
        files: Sequence[str] | None = None,
        change_count: int | None = None,
        error: str | None = None,
    ) -> bool:
        if not self.site_id:
            logger.debug("No site id configured; skipping status %r", status)
            return False

        ok = await self.source.write_status(self.site_id, {"Status": select_property(status)})
        if ok:
            logger.info("Updated site status to: %s", status)

        if self.build_log_collection:
            timestamp = datetime.now(timezone.utc)
            properties = {
                "Name": title_property(f"{status} {timestamp:%Y-%m-%d %H:%M:%S}"),
                "Build Status": select_property(status),
                "Timestamp": date_property(timestamp),
                "Deploy URL": url_property(deploy_url) if deploy_url else None,
                "Files Count": number_property(len(files)) if files is not None else None,
                "Changes": number_property(change_count) if change_count is not None else None,
                "Error": rich_text_property(error[:ERROR_LIMIT]) if error else None,
            }
            try:
                await self.source.create_record(self.build_log_collection, properties)
            except TransientIOError as exc:
                logger.warning("Failed to write build log entry: %s", exc)
                ok = False
        return ok


class SyncOrchestrator:
    """Drive a :class:`ChangeDetector` and invoke ``build`` once per batch of changes.

    ``build`` receives the full change list of a cycle and may be a plain
    function or a coroutine function. Its return value is handed to the
    reporter; ``deploy_url`` and ``files`` attributes are used when present.
    """

    def __init__(
        self,
        detector: ChangeDetector,
        build: BuildCallback,
        reporter: StatusReporter | None = None,
        interval: float = 60.0,
        store: SnapshotStore | None = None,
    ) -> None:
        self.detector = detector
        self.build = build
        self.reporter = reporter
        self.interval = interval
        self.store = store
        self.state = SyncState.IDLE
        self._stop = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save(self.detector.snapshot)

    async def _report(self, status: str, **kwargs: Any) -> None:
        if self.reporter is not None:
            await self.reporter.report(status, **kwargs)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    def _settle(self) -> None:
        self.state = SyncState.POLLING if self._running else SyncState.IDLE

    async def start(self, max_cycles: int | None = None) -> None:
        """Snapshot, then poll until :meth:`stop` is called.

        A persisted snapshot that already tracks records replaces the
        initial full snapshot.
        """

        if self._running:
            return
        self._running = True
        self._stop.clear()
        logger.info("Started polling every %ss", self.interval)
        try:
            if len(self.detector.snapshot):
                logger.info("Resuming from saved state: tracking %d records", len(self.detector.snapshot))
            else:
                self.state = SyncState.SNAPSHOTTING
                await self.detector.snapshot_all()
                self._persist()

            cycles = 0
            while not self._stop.is_set():
                try:
                    await self.run_cycle()
                except ConfigurationError:
                    raise
                except Exception:
                    logger.exception("Sync cycle failed")
                cycles += 1
                if max_cycles is not None and cycles >= max_cycles:
                    break
                self.state = SyncState.POLLING
                await self._sleep(self.interval)
        finally:
            self._running = False
            self.state = SyncState.IDLE
            logger.info("Stopped polling")

    def stop(self) -> None:
        self._stop.set()

    async def run_once(self, build: bool = True) -> List[ChangeRecord]:
        """Run exactly one detection pass and return its changes."""

        if build:
            outcome = await self.run_cycle()
            return outcome.changes

        self.state = SyncState.DETECTING
        try:
            changes = await self.detector.detect()
            self._persist()
        finally:
            self._settle()
        return changes

    async def run_cycle(self) -> CycleOutcome:
        self.state = SyncState.DETECTING
        try:
            changes = await self.detector.detect()
            if not changes:
                self._persist()
                return CycleOutcome()

            logger.info("Detected %d change(s)", len(changes))
            for change in changes:
                logger.info("  %s: %s (%s)", change.type, change.title, change.collection)

            self.state = SyncState.BUILDING
            await self._report(STATUS_BUILDING, change_count=len(changes))
            try:
                result = self.build(changes)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                error = str(exc) or exc.__class__.__name__
                logger.exception("Build failed")
                await self._report(STATUS_FAILED, change_count=len(changes), error=error)
                outcome = CycleOutcome(changes=changes, status=STATUS_FAILED, error=error)
            else:
                await self._report(
                    STATUS_PUBLISHED,
                    deploy_url=getattr(result, "deploy_url", None),
                    files=getattr(result, "files", None),
                    change_count=len(changes),
                )
                outcome = CycleOutcome(changes=changes, built=True, status=STATUS_PUBLISHED, result=result)

            self._persist()
            return outcome
        finally:
            self._settle()
