from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..models import SummaryMessage, TaskSyncEntry, TaskSyncResultEntry
from ..utils.responses import extract_message

DIGEST_LIMIT = 3
UNKNOWN_RECORD = "unknown record"


def synthesize_success(
    results: List[TaskSyncResultEntry],
    status: Optional[str],
    total_submitted: int,
    entries: Optional[Sequence[TaskSyncEntry]] = None,
) -> List[TaskSyncResultEntry]:
    """Expand an un-itemized ``success`` into one success entry per submitted record.

    Only a bare ``success`` qualifies; ``accepted`` or ``partial`` with no results
    leaves the list empty, so those records count as pending.
    """
    if results or status != "success":
        return results
    if entries is not None:
        return [TaskSyncResultEntry(record_id=e.record_id, status="success") for e in entries]
    return [TaskSyncResultEntry(status="success") for _ in range(total_submitted)]


def failure_digest(failures: Sequence[TaskSyncResultEntry], limit: int = DIGEST_LIMIT) -> str:
    parts = [f"{item.record_id or UNKNOWN_RECORD}:{extract_message(item)}" for item in failures[:limit]]
    digest = "; ".join(parts)
    if len(failures) > limit:
        digest += f", …(+{len(failures) - limit} more)"
    return digest


def latest_per_record(results: Sequence[TaskSyncResultEntry]) -> List[TaskSyncResultEntry]:
    """Collapse repeated record ids to their last reported entry, keeping first-seen order.

    Entries without a record id cannot be matched to each other and are all kept.
    """
    by_id: Dict[str, int] = {}
    kept: List[TaskSyncResultEntry] = []
    for item in results:
        if item.record_id is None:
            kept.append(item)
        elif item.record_id in by_id:
            kept[by_id[item.record_id]] = item
        else:
            by_id[item.record_id] = len(kept)
            kept.append(item)
    return kept


def summarize(
    results: List[TaskSyncResultEntry],
    total_submitted: int,
    skipped_count: int = 0,
    status: Optional[str] = None,
    entries: Optional[Sequence[TaskSyncEntry]] = None,
) -> SummaryMessage:
    results = latest_per_record(synthesize_success(results, status, total_submitted, entries))

    # never count more outcomes than records were submitted; errors claim slots first
    failures = [r for r in results if r.status == "error"][:total_submitted]
    error = len(failures)
    accepted = min(sum(1 for r in results if r.status == "accepted"), total_submitted - error)
    success = min(sum(1 for r in results if r.status == "success"), total_submitted - error - accepted)
    pending = total_submitted - (success + accepted + error)

    # no itemized outcome at all reads as pending, not as "succeeded for 0 tasks"
    if error == 0 and accepted == 0 and (results or total_submitted == 0):
        kind = "success"
        text = f"Sync succeeded for {success} tasks"
        if skipped_count > 0:
            text += f", skipped {skipped_count}"
    elif error == 0:
        kind = "pending"
        text = f"Submitted {total_submitted} tasks"
        if accepted > 0:
            text += f", {accepted} still running upstream"
        if pending > 0:
            text += f", {pending} awaiting confirmation"
        if skipped_count > 0:
            text += f", skipped {skipped_count}"
        text += "; check results later"
    else:
        kind = "failure"
        text = f"Sync finished: {success} succeeded, {error} failed"
        if accepted > 0:
            text += f", {accepted} more awaiting confirmation"
        if skipped_count > 0:
            text += f", {skipped_count} skipped"
        text += f". Failures: {failure_digest(failures)}"

    return SummaryMessage(
        kind=kind,
        text=text,
        total=total_submitted,
        success=success,
        accepted=accepted,
        error=error,
        pending=pending,
        skipped=skipped_count,
        failures=failures,
    )
