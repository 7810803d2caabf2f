from __future__ import annotations

from typing import List

import httpx
import orjson
from loguru import logger

from ..errors import ConfigError, ProtocolError, RemoteError
from ..models import TaskSyncEntry, TaskSyncResponse
from ..utils.responses import field, normalize_results, parse_body, remote_error_message
from .webhook import WebhookResolver


class BatchSubmitter:
    """Sends a whole batch to the trigger endpoint in one POST.

    A 202 means the automation deferred the work and returned a job handle;
    any other 2xx carries the finished per-record results.
    """

    def __init__(self, client: httpx.AsyncClient, resolver: WebhookResolver, trigger_endpoint: str):
        self.client = client
        self.resolver = resolver
        self.trigger_endpoint = trigger_endpoint

    async def _ensure_config(self) -> str:
        if not self.trigger_endpoint or not self.trigger_endpoint.strip():
            raise ConfigError("Task sync trigger endpoint is not configured")
        webhook_url = await self.resolver.resolve()
        if not webhook_url or not webhook_url.strip():
            raise ConfigError("No valid task sync webhook URL found")
        return webhook_url.strip()

    async def submit(self, entries: List[TaskSyncEntry]) -> TaskSyncResponse:
        webhook_url = await self._ensure_config()
        body = {
            "webhookUrl": webhook_url,
            "records": [e.model_dump(by_alias=True) for e in entries],
        }
        logger.info(f"Submitting {len(entries)} task entries to {self.trigger_endpoint}")
        resp = await self.client.post(
            self.trigger_endpoint.strip(),
            content=orjson.dumps(body),
            headers={"Content-Type": "application/json"},
        )
        raw = resp.text
        data = parse_body(raw)

        if resp.status_code == 202:
            job_id = field(data, "jobId")
            if not job_id:
                raise ProtocolError("Batch accepted but no jobId was returned")
            logger.info(f"Batch deferred as job {job_id}")
            return TaskSyncResponse(
                status=str(field(data, "status") or "accepted"),
                job_id=str(job_id),
                results=[],
                created_at=field(data, "createdAt"),
            )

        if resp.is_success:
            results = normalize_results(data)
            status = str(field(data, "status") or "success")
            logger.info(f"Batch completed synchronously with status {status} ({len(results)} results)")
            return TaskSyncResponse(
                status=status,
                results=results,
                created_at=field(data, "createdAt"),
                updated_at=field(data, "updatedAt"),
                completed_at=field(data, "completedAt"),
            )

        raise RemoteError(resp.status_code, remote_error_message(data, raw, "submission failed"))
