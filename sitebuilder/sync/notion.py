"""Async client for the Notion REST API and property helpers.

Only the calls the sync and build layers need are implemented: paginated
database queries (optionally filtered by ``last_edited_time``), page
retrieval, block children, page updates and page creation. Transport and HTTP failures
surface as :class:`TransientIOError` so callers can isolate them per
collection or per write.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from ..exceptions import ConfigurationError, TransientIOError

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
DEFAULT_PAGE_SIZE = 100
RICH_TEXT_LIMIT = 2000


@dataclass(frozen=True)
class Record:
    """One row of a Notion database (a Notion "page")."""

    id: str
    last_edited_at: str
    properties: Dict[str, Any] = field(default_factory=dict)
    collection: Optional[str] = None


@dataclass(frozen=True)
class RecordPage:
    """A single page of query results."""

    records: List[Record]
    next_page_token: Optional[str] = None


def _record_from_payload(payload: Mapping[str, Any], collection: str | None = None) -> Record:
    return Record(
        id=payload.get("id", ""),
        last_edited_at=payload.get("last_edited_time", "") or "",
        properties=dict(payload.get("properties") or {}),
        collection=collection,
    )


class NotionClient:
    """Thin async wrapper around the Notion API."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = NOTION_API_URL,
        notion_version: str = NOTION_VERSION,
        timeout: float = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("NOTION_API_KEY must be set to talk to Notion.")
        self.page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        json: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise TransientIOError(f"Notion {method} {path} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise ConfigurationError(
                f"Notion rejected the API key for {method} {path} (HTTP {response.status_code})."
            )
        if response.status_code >= 400:
            raise TransientIOError(
                f"Notion {method} {path} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TransientIOError(
                f"Notion {method} {path} returned a body that is not JSON: {response.text[:200]}",
                status_code=response.status_code,
            ) from exc

    # ── Queries ───────────────────────────────────────────────────────

    async def query_records(
        self,
        collection_id: str,
        edited_at_or_after: str | None = None,
        page_token: str | None = None,
        *,
        filter: Dict[str, Any] | None = None,
        sorts: List[Dict[str, Any]] | None = None,
    ) -> RecordPage:
        """Fetch one page of records from a database."""

        body: Dict[str, Any] = {"page_size": self.page_size}
        conditions: List[Dict[str, Any]] = []
        if edited_at_or_after:
            conditions.append(
                {
                    "timestamp": "last_edited_time",
                    "last_edited_time": {"on_or_after": edited_at_or_after},
                }
            )
        if filter:
            conditions.append(filter)
        if len(conditions) == 1:
            body["filter"] = conditions[0]
        elif conditions:
            body["filter"] = {"and": conditions}
        if sorts:
            body["sorts"] = sorts
        if page_token:
            body["start_cursor"] = page_token

        payload = await self._request("POST", f"/databases/{collection_id}/query", json=body)
        records = [_record_from_payload(item, collection_id) for item in payload.get("results", [])]
        next_token = payload.get("next_cursor") if payload.get("has_more") else None
        return RecordPage(records=records, next_page_token=next_token)

    async def iter_records(
        self,
        collection_id: str,
        edited_at_or_after: str | None = None,
        *,
        filter: Dict[str, Any] | None = None,
        sorts: List[Dict[str, Any]] | None = None,
    ) -> AsyncIterator[Record]:
        """Yield every matching record, following pagination to completion."""

        token: str | None = None
        while True:
            page = await self.query_records(
                collection_id,
                edited_at_or_after,
                token,
                filter=filter,
                sorts=sorts,
            )
            for record in page.records:
                yield record
            token = page.next_page_token
            if not token:
                break

    async def query_all(
        self,
        collection_id: str,
        *,
        filter: Dict[str, Any] | None = None,
        sorts: List[Dict[str, Any]] | None = None,
    ) -> List[Record]:
        return [record async for record in self.iter_records(collection_id, filter=filter, sorts=sorts)]

    async def retrieve_record(self, record_id: str) -> Record:
        payload = await self._request("GET", f"/pages/{record_id}")
        return _record_from_payload(payload)

    async def iter_block_children(self, block_id: str) -> AsyncIterator[Dict[str, Any]]:
        """Yield the raw child blocks of a page or block, one level deep."""

        token: str | None = None
        while True:
            params: Dict[str, Any] = {"page_size": self.page_size}
            if token:
                params["start_cursor"] = token
            payload = await self._request("GET", f"/blocks/{block_id}/children", params=params)
            for block in payload.get("results", []):
                yield block
            token = payload.get("next_cursor") if payload.get("has_more") else None
            if not token:
                break

    # ── Writes ────────────────────────────────────────────────────────

    async def update_record(self, record_id: str, properties: Dict[str, Any]) -> Record:
        payload = await self._request("PATCH", f"/pages/{record_id}", json={"properties": properties})
        return _record_from_payload(payload)

    async def create_record(self, collection_id: str, properties: Dict[str, Any]) -> Record:
        body = {
            "parent": {"database_id": collection_id},
            "properties": {key: value for key, value in properties.items() if value is not None},
        }
        payload = await self._request("POST", "/pages", json=body)
        return _record_from_payload(payload, collection_id)

    async def write_status(self, record_id: str, fields: Dict[str, Any]) -> bool:
        """Update ``fields`` on a record; returns ``False`` instead of raising on I/O errors."""

        try:
            await self.update_record(record_id, fields)
        except TransientIOError as exc:
            logger.warning("Failed to write status to %s: %s", record_id, exc)
            return False
        return True

    async def write_batched(
        self,
        updates: Sequence[Tuple[str, Dict[str, Any]]],
        *,
        batch_size: int = 3,
        delay: float = 0.35,
    ) -> Tuple[int, int]:
        """Apply ``(record_id, properties)`` updates in small groups.

        Each group runs concurrently; a fixed ``delay`` separates groups to
        stay under the API rate limit. Returns ``(succeeded, failed)``.
        """

        size = max(1, batch_size)
        succeeded = failed = 0
        for start in range(0, len(updates), size):
            if start:
                await asyncio.sleep(delay)
            batch = updates[start:start + size]
            outcomes = await asyncio.gather(
                *(self.write_status(record_id, properties) for record_id, properties in batch)
            )
            succeeded += sum(1 for ok in outcomes if ok)
            failed += sum(1 for ok in outcomes if not ok)
        return succeeded, failed


# ── Property readers ──────────────────────────────────────────────────


def _plain_text(items: Any) -> str:
    return "".join(item.get("plain_text") or item.get("text", {}).get("content", "") for item in items or [])


def extract_title(prop: Mapping[str, Any] | None) -> str:
    if not prop:
        return ""
    return _plain_text(prop.get("title"))


def extract_text(prop: Mapping[str, Any] | None) -> str:
    """Read rich text, title, url or select values as a plain string."""

    if not prop:
        return ""
    kind = prop.get("type")
    if kind == "title":
        return _plain_text(prop.get("title"))
    if kind == "url":
        return prop.get("url") or ""
    if kind == "select":
        return extract_select(prop)
    return _plain_text(prop.get("rich_text"))


def extract_select(prop: Mapping[str, Any] | None) -> str:
    if not prop or not prop.get("select"):
        return ""
    return prop["select"].get("name", "")


def extract_multi_select(prop: Mapping[str, Any] | None) -> List[str]:
    if not prop:
        return []
    return [option.get("name", "") for option in prop.get("multi_select") or []]


def extract_number(prop: Mapping[str, Any] | None) -> Optional[float]:
    if not prop:
        return None
    return prop.get("number")


def extract_checkbox(prop: Mapping[str, Any] | None) -> bool:
    return bool(prop and prop.get("checkbox"))


def extract_relation(prop: Mapping[str, Any] | None) -> List[str]:
    if not prop:
        return []
    return [item.get("id", "") for item in prop.get("relation") or []]


def extract_url(prop: Mapping[str, Any] | None) -> str:
    if not prop:
        return ""
    return prop.get("url") or ""


def extract_date(prop: Mapping[str, Any] | None) -> str:
    """Start of a date property as its ISO string, or ``""``."""

    if not prop or not prop.get("date"):
        return ""
    return prop["date"].get("start") or ""


def record_title(record: Record) -> str:
    """Return the record's title property, or ``(untitled)``."""

    for prop in record.properties.values():
        if isinstance(prop, dict) and prop.get("type") == "title" and prop.get("title"):
            return _plain_text(prop["title"])
    return "(untitled)"


# ── Property writers ──────────────────────────────────────────────────


def select_property(name: str) -> Dict[str, Any]:
    return {"select": {"name": name}}


def rich_text_property(text: str) -> Dict[str, Any]:
    return {"rich_text": [{"text": {"content": text[:RICH_TEXT_LIMIT]}}]}


def title_property(text: str) -> Dict[str, Any]:
    return {"title": [{"text": {"content": text[:RICH_TEXT_LIMIT]}}]}


def url_property(url: str) -> Dict[str, Any]:
    return {"url": url}


def number_property(value: float) -> Dict[str, Any]:
    return {"number": value}


def date_property(moment: datetime | None = None) -> Dict[str, Any]:
    moment = moment or datetime.now(timezone.utc)
    return {"date": {"start": moment.isoformat()}}
