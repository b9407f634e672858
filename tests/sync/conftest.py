"""Shared fakes for the sync layer tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from sitebuilder.exceptions import TransientIOError
from sitebuilder.sync.notion import Record


def make_record(record_id: str, title: str, edited: str = "2024-05-01T10:00:00.000Z", **extra: Any) -> Record:
    properties: Dict[str, Any] = {"Name": {"type": "title", "title": [{"plain_text": title}]}}
    properties.update(extra)
    return Record(id=record_id, last_edited_at=edited, properties=properties)


class FakeSource:
    """In-memory record source that also accepts status writes."""

    def __init__(self, collections: Dict[str, List[Record]] | None = None) -> None:
        self.collections: Dict[str, List[Record]] = collections or {}
        self.failing: set[str] = set()
        self.queries: List[Tuple[str, Optional[str]]] = []
        self.status_writes: List[Tuple[str, Dict[str, Any]]] = []
        self.created: List[Tuple[str, Dict[str, Any]]] = []

    def put(self, collection_id: str, record: Record) -> None:
        records = self.collections.setdefault(collection_id, [])
        records[:] = [existing for existing in records if existing.id != record.id] + [record]

    def remove(self, collection_id: str, record_id: str) -> None:
        self.collections[collection_id] = [
            record for record in self.collections.get(collection_id, []) if record.id != record_id
        ]

    async def iter_records(self, collection_id: str, edited_at_or_after: str | None = None):
        self.queries.append((collection_id, edited_at_or_after))
        if collection_id in self.failing:
            raise TransientIOError(f"{collection_id} is unavailable", status_code=503)
        for record in list(self.collections.get(collection_id, [])):
            yield record

    async def write_status(self, record_id: str, fields: Dict[str, Any]) -> bool:
        self.status_writes.append((record_id, fields))
        return True

    async def create_record(self, collection_id: str, properties: Dict[str, Any]) -> Record:
        self.created.append((collection_id, properties))
        return Record(id=f"log-{len(self.created)}", last_edited_at="")


class StepClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.calls: List[datetime] = []

    def __call__(self) -> datetime:
        now = self.current
        self.calls.append(now)
        self.current = now + timedelta(seconds=1)
        return now


@pytest.fixture()
def source():
    return FakeSource()


@pytest.fixture()
def clock():
    return StepClock()
