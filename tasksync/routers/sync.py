from typing import AsyncIterator
import httpx
from fastapi import APIRouter, Depends, HTTPException, Response
from loguru import logger
from ..auth import require_token
from ..config import settings
from ..errors import ConfigError, NotFoundError, PollTimeoutError, ProtocolError, RemoteError, TaskSyncError
from ..models import SyncOutcome, SyncRequest, TaskSyncResponse
from ..services.poller import JobPoller
from ..services.submitter import BatchSubmitter
from ..services.sync import TaskSyncService
from ..services.webhook import WebhookResolver, build_webhook_lookup
from ..utils.records import build_sync_entries

router = APIRouter()
webhook_resolver = WebhookResolver(build_webhook_lookup(
    settings.task_sync_webhook_url,
    settings.records_api_url,
    settings.task_sync_webhook_table,
    timeout=settings.http_timeout_seconds,
))


def reset_webhook_cache() -> None:
    webhook_resolver.reset()


async def get_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


def get_poller(client: httpx.AsyncClient = Depends(get_client)) -> JobPoller:
    return JobPoller(client, settings.task_sync_status_api)


def get_service(client: httpx.AsyncClient = Depends(get_client), poller: JobPoller = Depends(get_poller)) -> TaskSyncService:
    submitter = BatchSubmitter(client, webhook_resolver, settings.task_sync_trigger_api)
    return TaskSyncService(
        submitter,
        poller,
        interval_ms=settings.poll_interval_ms,
        min_attempts=settings.poll_min_attempts,
    )


_STATUS_CODES = {
    ConfigError: 500,
    ProtocolError: 502,
    RemoteError: 502,
    NotFoundError: 404,
    PollTimeoutError: 504,
}


def _to_http(exc: TaskSyncError) -> HTTPException:
    code = next((c for t, c in _STATUS_CODES.items() if isinstance(exc, t)), 500)
    logger.error(f"Task sync failed: {exc}")
    return HTTPException(status_code=code, detail=str(exc))


@router.post("/sync", response_model=SyncOutcome)
async def sync_tasks(payload: SyncRequest, service: TaskSyncService = Depends(get_service), _=Depends(require_token)):
    entries, skipped = build_sync_entries(payload.records, payload.fields)
    if not entries:
        detail = "All records are missing required fields" if skipped else "No records to sync"
        raise HTTPException(status_code=422, detail=detail)
    try:
        return await service.run(entries, skipped_count=skipped)
    except TaskSyncError as exc:
        raise _to_http(exc) from exc


@router.get("/status/{job_id}", response_model=TaskSyncResponse)
async def job_status(job_id: str, poller: JobPoller = Depends(get_poller), _=Depends(require_token)):
    try:
        return await poller.poll(job_id, interval_ms=settings.poll_interval_ms)
    except TaskSyncError as exc:
        raise _to_http(exc) from exc


@router.delete("/webhook/cache", status_code=204)
async def clear_webhook_cache(_=Depends(require_token)):
    reset_webhook_cache()
    return Response(status_code=204)
