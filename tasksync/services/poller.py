from __future__ import annotations

import asyncio
from typing import Awaitable, Callable
from urllib.parse import quote

import httpx
from loguru import logger

from ..errors import ConfigError, NotFoundError, PollTimeoutError, RemoteError
from ..models import TERMINAL_STATUSES, TaskSyncResponse
from ..utils.responses import field, normalize_results, parse_body, remote_error_message

FIRST_WAIT_MS = 3000
DEFAULT_ATTEMPTS = 12
DEFAULT_INTERVAL_MS = 5000


class JobPoller:
    """Queries a deferred job until it reaches a terminal status.

    Attempt-bounded, not wall-clock bounded: worst case is roughly
    ``3000 + (attempts - 1) * interval_ms`` milliseconds plus request time.
    Polling the same job concurrently from two callers is not supported.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        status_endpoint: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.status_endpoint = status_endpoint
        self._sleep = sleep

    async def delay(self, ms: int) -> None:
        if ms > 0:
            await self._sleep(ms / 1000)

    def job_url(self, job_id: str) -> str:
        return f"{self.status_endpoint.strip().rstrip('/')}/{quote(job_id, safe='')}"

    async def poll(self, job_id: str, attempts: int = DEFAULT_ATTEMPTS, interval_ms: int = DEFAULT_INTERVAL_MS) -> TaskSyncResponse:
        if not self.status_endpoint or not self.status_endpoint.strip():
            raise ConfigError("Task sync status endpoint is not configured")

        url = self.job_url(job_id)
        for attempt in range(attempts):
            await self.delay(FIRST_WAIT_MS if attempt == 0 else interval_ms)

            resp = await self.client.get(url)
            raw = resp.text
            data = parse_body(raw)

            if resp.status_code == 404:
                raise NotFoundError(f"Job {job_id} does not exist or has expired")
            if not resp.is_success:
                raise RemoteError(resp.status_code, remote_error_message(data, raw, "status query failed"))

            status = str(field(data, "status") or "unknown")
            if status not in TERMINAL_STATUSES:
                logger.debug(f"Job {job_id} is {status} (attempt {attempt + 1}/{attempts})")
                continue

            logger.info(f"Job {job_id} finished with status {status} after {attempt + 1} attempts")
            return TaskSyncResponse(
                status=status,
                job_id=job_id,
                results=normalize_results(data),
                created_at=field(data, "createdAt"),
                updated_at=field(data, "updatedAt"),
                completed_at=field(data, "completedAt"),
            )

        raise PollTimeoutError(f"Job {job_id} did not complete in time; check again later")
