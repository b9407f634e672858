"""Change detection against an eventually-consistent record source.

The detector keeps a snapshot of ``record id -> content hash`` plus a
"last checked" cursor per collection. Each detection cycle only asks the
source for records edited at or after that cursor, then compares hashes
so that re-reading an unchanged record never produces an event.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Protocol

from ..exceptions import TransientIOError
from .notion import Record, record_title

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"

SNAPSHOT_VERSION = 1


class RecordSource(Protocol):
    def iter_records(self, collection_id: str, edited_at_or_after: str | None = None) -> AsyncIterator[Record]:
        ...


@dataclass(frozen=True)
class ChangeRecord:
    """A created, updated or deleted record observed during a cycle."""

    type: str
    external_id: str
    title: str
    observed_at: str
    collection: str = ""
    last_edited_at: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class SnapshotEntry:
    hash: str
    collection: str
    title: str = ""


@dataclass
class SyncSnapshot:
    """Last known state of every tracked record, plus per-collection cursors."""

    records: Dict[str, SnapshotEntry] = field(default_factory=dict)
    cursors: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.records)

    def hash_for(self, record_id: str) -> Optional[str]:
        entry = self.records.get(record_id)
        return entry.hash if entry else None

    @property
    def last_checked(self) -> Optional[str]:
        return max(self.cursors.values()) if self.cursors else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "records": {record_id: asdict(entry) for record_id, entry in self.records.items()},
            "cursors": dict(self.cursors),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SyncSnapshot":
        records = {
            record_id: SnapshotEntry(
                hash=str(entry.get("hash", "")),
                collection=str(entry.get("collection", "")),
                title=str(entry.get("title", "")),
            )
            for record_id, entry in (data.get("records") or {}).items()
        }
        cursors = {str(key): str(value) for key, value in (data.get("cursors") or {}).items()}
        return cls(records=records, cursors=cursors)


def content_hash(record: Record) -> str:
    """Fingerprint a record from its edit time and serialized properties.

    Only used as an equality check between two observations of the same
    record.
    """

    serialized = json.dumps(record.properties, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:16]
    return f"{record.last_edited_at}:{digest}"


class SnapshotStore:
    """Load and save a :class:`SyncSnapshot` as JSON on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> SyncSnapshot:
        if not self.path.exists():
            return SyncSnapshot()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable sync state %s: %s", self.path, exc)
            return SyncSnapshot()
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed sync state %s", self.path)
            return SyncSnapshot()
        return SyncSnapshot.from_dict(data)

    def save(self, snapshot: SyncSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".sync-state-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChangeDetector:
    """Classify records of the tracked collections as created/updated/deleted.

    ``collections`` maps a human label (``"Pages"``) to a collection id.
    """

    def __init__(
        self,
        source: RecordSource,
        collections: Mapping[str, str],
        snapshot: SyncSnapshot | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.source = source
        self.collections = {label: cid for label, cid in collections.items() if cid}
        self.snapshot = snapshot if snapshot is not None else SyncSnapshot()
        self._clock = clock or _utcnow

    def _now(self) -> str:
        return self._clock().isoformat()

    async def _fetch(self, label: str, collection_id: str, since: str | None) -> Optional[List[Record]]:
        try:
            return [record async for record in self.source.iter_records(collection_id, since)]
        except TransientIOError as exc:
            logger.warning("Failed to query %s (%s): %s", label, collection_id, exc)
            return None

    def _remember(self, record: Record, collection_id: str) -> str:
        digest = content_hash(record)
        self.snapshot.records[record.id] = SnapshotEntry(
            hash=digest,
            collection=collection_id,
            title=record_title(record),
        )
        return digest

    def _classify(self, record: Record, label: str, collection_id: str, observed_at: str) -> Optional[ChangeRecord]:
        previous = self.snapshot.hash_for(record.id)
        current = self._remember(record, collection_id)
        if previous == current:
            return None
        return ChangeRecord(
            type=CREATED if previous is None else UPDATED,
            external_id=record.id,
            title=record_title(record),
            observed_at=observed_at,
            collection=label,
            last_edited_at=record.last_edited_at,
        )

    async def snapshot_all(self) -> int:
        """Record a baseline hash for every record; reports no changes."""

        for label, collection_id in self.collections.items():
            started = self._now()
            records = await self._fetch(label, collection_id, None)
            if records is None:
                continue
            for record in records:
                self._remember(record, collection_id)
            self.snapshot.cursors[collection_id] = started
        logger.info("Snapshot: tracking %d records", len(self.snapshot))
        return len(self.snapshot)

    async def detect(self) -> List[ChangeRecord]:
        """Run one detection cycle over every tracked collection.

        The cursor for a collection moves to the instant captured before
        its query, and only when the query succeeded, so an edit landing
        mid-query or in a failed collection is seen next cycle.
        """

        changes: List[ChangeRecord] = []
        for label, collection_id in self.collections.items():
            started = self._now()
            since = self.snapshot.cursors.get(collection_id)
            records = await self._fetch(label, collection_id, since)
            if records is None:
                continue
            for record in records:
                change = self._classify(record, label, collection_id, started)
                if change is not None:
                    changes.append(change)
            self.snapshot.cursors[collection_id] = started
        return changes

    async def reconcile(self) -> List[ChangeRecord]:
        """Full pass that also reports records missing from their collection.

        Detection alone cannot tell a deleted record from one that simply
        was not edited; this re-reads every collection in full and diffs
        the complete id set.
        """

        changes: List[ChangeRecord] = []
        for label, collection_id in self.collections.items():
            started = self._now()
            records = await self._fetch(label, collection_id, None)
            if records is None:
                continue
            previous = {
                record_id: entry.hash
                for record_id, entry in self.snapshot.records.items()
                if entry.collection == collection_id
            }
            titles = {record_id: entry.title for record_id, entry in self.snapshot.records.items()}
            current = {record.id: content_hash(record) for record in records}
            by_id = {record.id: record for record in records}

            for change in diff(previous, current, observed_at=started, collection=label):
                if change.type == DELETED:
                    change = ChangeRecord(
                        type=DELETED,
                        external_id=change.external_id,
                        title=titles.get(change.external_id, ""),
                        observed_at=started,
                        collection=label,
                    )
                    self.snapshot.records.pop(change.external_id, None)
                else:
                    record = by_id[change.external_id]
                    change = ChangeRecord(
                        type=change.type,
                        external_id=record.id,
                        title=record_title(record),
                        observed_at=started,
                        collection=label,
                        last_edited_at=record.last_edited_at,
                    )
                changes.append(change)
            for record in records:
                self._remember(record, collection_id)
            self.snapshot.cursors[collection_id] = started
        return changes


def diff(
    previous: Mapping[str, str],
    current: Mapping[str, str],
    *,
    observed_at: str = "",
    collection: str = "",
) -> List[ChangeRecord]:
    """Compare two ``id -> hash`` maps. Titles are left for the caller to fill."""

    changes: List[ChangeRecord] = []
    for record_id, digest in current.items():
        before = previous.get(record_id)
        if before is None:
            changes.append(ChangeRecord(CREATED, record_id, "", observed_at, collection))
        elif before != digest:
            changes.append(ChangeRecord(UPDATED, record_id, "", observed_at, collection))
    for record_id in previous:
        if record_id not in current:
            changes.append(ChangeRecord(DELETED, record_id, "", observed_at, collection))
    return changes
