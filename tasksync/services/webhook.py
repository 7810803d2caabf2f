"""Resolution and caching of the destination webhook URL.

The URL lives in the first cell of the primary column of a lookup table. It is
read once per process and cached; concurrent callers during the read share a
single in-flight lookup.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Protocol
from urllib.parse import quote

import httpx
from loguru import logger

from ..errors import ConfigError, RemoteError
from ..utils.responses import parse_body, remote_error_message

WebhookLookup = Callable[[], Awaitable[str]]

MAX_PAGE_SIZE = 5000
DEFAULT_PAGE_SIZE = 1000


def cell_value_to_string(value: Any) -> str:
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, list):
        return "".join(cell_value_to_string(item) for item in value)
    if isinstance(value, dict):
        for key in ("link", "text", "name", "value"):
            if isinstance(value.get(key), str):
                return value[key]
    return ""


class RecordTable(Protocol):
    name: str

    async def get_field_metas(self) -> List[Dict[str, Any]]: ...

    async def fetch_all_records(self) -> List[Dict[str, Any]]: ...


class HttpRecordTable:
    """Records API access for one table, following pagination."""

    def __init__(
        self,
        base_url: str,
        name: str,
        page_size: int = DEFAULT_PAGE_SIZE,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.name = name
        self.page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
        self.client = client
        self.timeout = timeout

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _url(self, suffix: str) -> str:
        return f"{self.base_url}/tables/{quote(self.name, safe='')}/{suffix}"

    async def _get(self, client: httpx.AsyncClient, suffix: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = await client.get(self._url(suffix), params=params)
        data = parse_body(resp.text)
        if resp.status_code == 404:
            raise ConfigError(f"Lookup table {self.name!r} not found")
        if not resp.is_success:
            raise RemoteError(resp.status_code, remote_error_message(data, resp.text, "records API request failed"))
        return data

    async def get_field_metas(self) -> List[Dict[str, Any]]:
        async with self._session() as client:
            data = await self._get(client, "fields")
        items = data.get("fields") if isinstance(data, dict) else data
        return [f for f in items or [] if isinstance(f, dict)]

    async def fetch_all_records(self) -> List[Dict[str, Any]]:
        collected: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        async with self._session() as client:
            while True:
                params: Dict[str, Any] = {"pageSize": self.page_size}
                if page_token:
                    params["pageToken"] = page_token
                data = await self._get(client, "records", params=params)
                if not isinstance(data, dict):
                    break
                for item in data.get("records") or []:
                    if not isinstance(item, dict):
                        continue
                    record_id = item.get("recordId") or item.get("id") or ""
                    collected.append({"recordId": record_id, "fields": item.get("fields") or {}})
                page_token = data.get("pageToken")
                if not (data.get("hasMore") and page_token):
                    break
        return collected


class TableWebhookLookup:
    """Reads the webhook URL from the first non-empty primary cell of a table."""

    def __init__(self, table: RecordTable):
        self.table = table

    async def __call__(self) -> str:
        if not self.table.name or not self.table.name.strip():
            raise ConfigError("Webhook lookup table name is not configured")

        field_metas = await self.table.get_field_metas()
        if not field_metas:
            raise ConfigError(f"Lookup table {self.table.name!r} has no fields")

        primary = next((f for f in field_metas if f.get("isPrimary")), field_metas[0])
        primary_id = primary.get("id")
        if not isinstance(primary_id, str) or not primary_id.strip():
            raise ConfigError(f"Cannot determine the primary field of {self.table.name!r}")

        records = await self.table.fetch_all_records()
        if not records:
            raise ConfigError(f"Lookup table {self.table.name!r} has no records")

        first = next((r for r in records if (r.get("fields") or {}).get(primary_id)), None)
        if first is None:
            raise ConfigError(f"No record in {self.table.name!r} holds a webhook URL")

        url = cell_value_to_string(first["fields"][primary_id]).strip()
        if not url:
            raise ConfigError(f"First cell of {self.table.name!r} is not a valid URL")
        return url


class StaticWebhookLookup:
    def __init__(self, url: str):
        self.url = url

    async def __call__(self) -> str:
        return self.url


class UnconfiguredWebhookLookup:
    async def __call__(self) -> str:
        raise ConfigError("No webhook URL source configured (set TASK_SYNC_WEBHOOK_URL or RECORDS_API_URL)")


def build_webhook_lookup(webhook_url: str, records_api_url: str, table_name: str, timeout: float = 30) -> WebhookLookup:
    if webhook_url.strip():
        return StaticWebhookLookup(webhook_url)
    if records_api_url.strip():
        return TableWebhookLookup(HttpRecordTable(records_api_url, table_name, timeout=timeout))
    return UnconfiguredWebhookLookup()


class WebhookResolver:
    """Process-wide cache of the webhook URL with request coalescing.

    States: uninitialized → resolving (one shared task) → resolved. ``reset``
    returns to uninitialized from any state. Failures are never cached.
    """

    def __init__(self, lookup: WebhookLookup):
        self._lookup = lookup
        self._cached_url: Optional[str] = None
        self._in_flight: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def cached_url(self) -> Optional[str]:
        return self._cached_url

    @property
    def resolving(self) -> bool:
        return self._in_flight is not None

    async def resolve(self) -> str:
        if self._cached_url:
            return self._cached_url
        if self._in_flight is None:
            self._in_flight = asyncio.ensure_future(self._load(self._generation))
        # shield: a cancelled caller must not cancel the lookup others are waiting on
        return await asyncio.shield(self._in_flight)

    async def _load(self, generation: int) -> str:
        task = asyncio.current_task()
        try:
            raw = await self._lookup()
            url = (raw or "").strip()
            if not url:
                raise ConfigError("Resolved webhook URL is empty")
            if generation == self._generation:
                self._cached_url = url
                logger.info("Webhook URL resolved and cached")
            return url
        finally:
            if self._in_flight is task:
                self._in_flight = None

    def reset(self) -> None:
        self._cached_url = None
        self._in_flight = None
        self._generation += 1
