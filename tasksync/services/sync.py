from __future__ import annotations

import math
from typing import List

from loguru import logger

from ..models import SyncOutcome, TaskSyncEntry
from .aggregator import summarize
from .poller import DEFAULT_ATTEMPTS, DEFAULT_INTERVAL_MS, JobPoller
from .submitter import BatchSubmitter


def poll_attempts_for(count: int, min_attempts: int = DEFAULT_ATTEMPTS) -> int:
    # larger batches take the automation longer, so scale the budget with the batch
    return max(min_attempts, math.ceil(count * 1.5))


class TaskSyncService:
    """submit → (poll if deferred) → summarize."""

    def __init__(
        self,
        submitter: BatchSubmitter,
        poller: JobPoller,
        interval_ms: int = DEFAULT_INTERVAL_MS,
        min_attempts: int = DEFAULT_ATTEMPTS,
    ):
        self.submitter = submitter
        self.poller = poller
        self.interval_ms = interval_ms
        self.min_attempts = min_attempts

    async def run(self, entries: List[TaskSyncEntry], skipped_count: int = 0) -> SyncOutcome:
        if not entries:
            raise ValueError("Cannot submit an empty batch")

        response = await self.submitter.submit(entries)
        if response.job_id:
            attempts = poll_attempts_for(len(entries), self.min_attempts)
            logger.info(f"Polling job {response.job_id} up to {attempts} times")
            response = await self.poller.poll(response.job_id, attempts=attempts, interval_ms=self.interval_ms)

        summary = summarize(
            response.results,
            len(entries),
            skipped_count,
            status=response.status,
            entries=entries,
        )
        logger.info(f"Task sync {summary.kind}: {summary.text}")
        return SyncOutcome(
            status=response.status,
            job_id=response.job_id,
            submitted=len(entries),
            summary=summary,
        )
