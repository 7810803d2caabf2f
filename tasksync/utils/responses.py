"""Helpers for reading trigger/status endpoint bodies.

Both endpoints may answer with JSON in several shapes, with plain text, or with
nothing at all. Everything here is pure so each branch can be tested alone.
"""

from __future__ import annotations

from typing import Any, Callable, List, Optional, Tuple

import orjson
from loguru import logger

from ..models import TaskSyncResultEntry

UNKNOWN_ERROR = "unknown error"
_ENTRY_KEYS = ("recordId", "status", "message", "detail")


def parse_body(text: str) -> Any:
    """Decode a response body; invalid JSON comes back as ``{"raw": text}``."""
    if not text:
        return {}
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        logger.warning(f"Response body is not JSON, keeping raw text: {text[:200]!r}")
        return {"raw": text}


def field(data: Any, key: str) -> Any:
    if isinstance(data, dict):
        return data.get(key)
    return None


# Result shapes, checked in order. Each returns the raw item list or None.

def bare_list(data: Any) -> Optional[list]:
    return data if isinstance(data, list) else None


def results_key(data: Any) -> Optional[list]:
    value = field(data, "results")
    return value if isinstance(value, list) else None


def data_key(data: Any) -> Optional[list]:
    value = field(data, "data")
    return value if isinstance(value, list) else None


def result_key(data: Any) -> Optional[list]:
    # legacy alias some automation flows still emit
    value = field(data, "result")
    return value if isinstance(value, list) else None


def single_entry(data: Any) -> Optional[list]:
    if isinstance(data, dict) and any(data.get(k) for k in _ENTRY_KEYS):
        return [data]
    return None


RESULT_SHAPES: List[Tuple[str, Callable[[Any], Optional[list]]]] = [
    ("list", bare_list),
    ("results", results_key),
    ("data", data_key),
    ("result", result_key),
    ("entry", single_entry),
]


def classify_results(data: Any) -> Tuple[Optional[str], list]:
    """Return the matching shape tag and its raw items, or ``(None, [])``."""
    if not data:
        return None, []
    for tag, check in RESULT_SHAPES:
        items = check(data)
        if items is not None:
            return tag, items
    return None, []


def normalize_results(data: Any) -> List[TaskSyncResultEntry]:
    _, items = classify_results(data)
    entries: List[TaskSyncResultEntry] = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning(f"Dropping result item that is not an object: {item!r}")
            continue
        entries.append(TaskSyncResultEntry.model_validate(item))
    return entries


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list)) and value:
        return orjson.dumps(value, default=str).decode()
    return ""


def extract_message(entry: TaskSyncResultEntry) -> str:
    """message → detail → body → "unknown error".

    Strings are trimmed and blank ones skipped; structured values are JSON-dumped.
    """
    for candidate in (entry.message, entry.detail, entry.body):
        text = _as_text(candidate)
        if text:
            return text
    return UNKNOWN_ERROR


def remote_error_message(data: Any, raw: str, fallback: str) -> str:
    """Best-effort message for a non-2xx body: message → detail → error → raw text."""
    for key in ("message", "detail", "error"):
        value = field(data, key)
        if value:
            return value if isinstance(value, str) else orjson.dumps(value, default=str).decode()
    if raw:
        return raw
    return fallback
