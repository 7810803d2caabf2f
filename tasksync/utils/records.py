"""Mapping of raw table records to task sync entries."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Tuple

from loguru import logger

from ..models import RawRecord, SyncFieldMap, TaskSyncEntry


def fmt_ymd(d: date) -> str:
    return f"{d.year}/{d.month:02d}/{d.day:02d}"


def has_meaningful_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, list):
        return any(has_meaningful_value(item) for item in value)
    if isinstance(value, dict):
        for key in ("text", "name", "id"):
            if isinstance(value.get(key), str):
                return bool(value[key].strip())
        return len(value) > 0
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, float):
        return not math.isnan(value)
    return True


def _text_of(value: Any) -> str:
    if isinstance(value, dict):
        for key in ("text", "name", "value"):
            if isinstance(value.get(key), str):
                return value[key]
    return ""


def cell_to_plain_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, (datetime, date)):
        return fmt_ymd(value)
    if isinstance(value, list):
        parts = []
        for item in value:
            if item is None:
                continue
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, (int, float)) and not isinstance(item, bool):
                parts.append(str(item))
            else:
                parts.append(_text_of(item))
        return "".join(p for p in parts if p.strip())
    if isinstance(value, dict):
        return _text_of(value)
    return str(value)


def extract_users(value: Any) -> List[Dict[str, str]]:
    if not isinstance(value, list):
        return []
    users = []
    for item in value:
        if not isinstance(item, dict):
            continue
        user_id = str(item.get("id") or "").strip()
        if not user_id:
            continue
        person = {"id": user_id}
        name = item.get("name")
        en_name = item.get("enName") or item.get("en_name")
        if isinstance(name, str) and name.strip():
            person["name"] = name
        if isinstance(en_name, str) and en_name.strip():
            person["enName"] = en_name
        users.append(person)
    return users


def users_to_display(users: Iterable[Dict[str, str]]) -> str:
    names = [u.get("name") or u.get("enName") or u.get("id") or "" for u in users]
    return ",".join(n for n in names if n.strip())


def format_deadline_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if isinstance(value, float) and math.isnan(value):
            return ""
        # epoch milliseconds, rendered in local time like the table UI
        return fmt_ymd(datetime.fromtimestamp(value / 1000))
    if isinstance(value, (datetime, date)):
        return fmt_ymd(value)
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        text = _text_of(value)
        if text:
            return text
    return cell_to_plain_text(value)


def missing_required(fields: Dict[str, Any], field_map: SyncFieldMap) -> List[str]:
    required = (
        ("task name", field_map.task_name),
        ("assignees", field_map.assignees),
        ("deadline", field_map.deadline),
        ("status", field_map.status),
    )
    return [label for label, field_id in required if not has_meaningful_value(fields.get(field_id))]


def build_payload(record: RawRecord, field_map: SyncFieldMap) -> Dict[str, Any]:
    fields = record.fields
    executors = extract_users(fields.get(field_map.assignees))
    payload: Dict[str, Any] = {
        "recordId": record.record_id,
        "action": "sync_task",
        "taskName": cell_to_plain_text(fields.get(field_map.task_name)),
        "deadline": format_deadline_value(fields.get(field_map.deadline)),
        "status": cell_to_plain_text(fields.get(field_map.status)),
        "assignees": executors,
        "assigneeNames": users_to_display(executors),
    }
    if field_map.remark:
        payload["remark"] = cell_to_plain_text(fields.get(field_map.remark))
    if field_map.comment:
        payload["comment"] = cell_to_plain_text(fields.get(field_map.comment))
    if field_map.followers:
        followers = extract_users(fields.get(field_map.followers))
        payload["followers"] = followers
        payload["followerNames"] = users_to_display(followers)
    return payload


def build_sync_entries(records: Iterable[RawRecord], field_map: SyncFieldMap) -> Tuple[List[TaskSyncEntry], int]:
    """Return the eligible entries, in input order, and how many records were skipped."""
    entries: List[TaskSyncEntry] = []
    skipped = 0
    seen = set()
    for record in records:
        if record.record_id in seen:
            continue
        seen.add(record.record_id)
        missing = missing_required(record.fields, field_map)
        if missing:
            skipped += 1
            logger.warning(f"Skipping record {record.record_id}: missing {', '.join(missing)}")
            continue
        entries.append(TaskSyncEntry(record_id=record.record_id, payload=build_payload(record, field_map)))
    return entries, skipped
