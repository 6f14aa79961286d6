from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence, Union

JsonValue = Union[str, int, float, bool, None, list, dict]

OR_KEY = "$or"
LTE_KEY = "$lte"
GTE_KEY = "$gte"

_DATE_TIME_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
_DROP = object()


class MalformedQueryError(ValueError):
    def __init__(self, raw: str, reason: str):
        super().__init__(f"Malformed query filter: {reason}")
        self.raw = raw
        self.reason = reason


def parse_query(raw: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedQueryError(str(raw), str(exc)) from exc
    if not isinstance(parsed, dict):
        raise MalformedQueryError(str(raw), "filter must be a JSON object")
    return parsed


def or_clauses(term: Any, search_or: Iterable[str]) -> list[dict[str, Any]]:
    if isinstance(term, bool):
        text = "true" if term else "false"
    else:
        text = str(term)
    pattern = re.escape(text)
    return [{field: {"$regex": pattern, "$options": "i"}} for field in search_or]


def _coerce_date(key: str, text: str) -> Any:
    if not _DATE_TIME_RE.search(text):
        return text
    try:
        parsed = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError:
        return text
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if key == LTE_KEY:
        return parsed.replace(hour=23, minute=59)
    if key == GTE_KEY:
        return parsed.replace(hour=0, minute=0)
    return parsed


def normalize_field(key: str, value: JsonValue, search_or: Sequence[str]) -> Any:
    """Apply the per-field coercion rules; returns ``_DROP`` for removed keys."""
    if value == "" or value is None:
        return _DROP
    if value == "false":
        value = False
    elif value == "true":
        value = True
    if key == OR_KEY and not isinstance(value, (dict, list)):
        return or_clauses(value, search_or)
    if isinstance(value, str):
        return _coerce_date(key, value)
    if isinstance(value, dict):
        return _normalize_container(value, search_or)
    if isinstance(value, list):
        return _normalize_container(value, search_or)
    return value


def _normalize_container(value: dict | list, search_or: Sequence[str]) -> Any:
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for sub_key, sub_value in value.items():
            normalized = normalize_field(sub_key, sub_value, search_or)
            if normalized is not _DROP:
                out[sub_key] = normalized
    else:
        out_list: list[Any] = []
        for item in value:
            normalized = normalize_field("", item, search_or)
            if normalized is not _DROP:
                out_list.append(normalized)
        out = out_list
    if not out:
        return _DROP
    return out


def normalize_filter(query: dict[str, Any], search_or: Sequence[str] = ()) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in query.items():
        result = normalize_field(key, value, search_or)
        if result is not _DROP:
            normalized[key] = result
    return normalized


def normalize_query(raw: str, search_or: Sequence[str] = ()) -> dict[str, Any]:
    """Parse the JSON ``query`` parameter into a document-store filter.

    ``""``/``null`` values are dropped, ``"true"``/``"false"`` become booleans,
    an ``$or`` search term expands into one case-insensitive substring match per
    ``search_or`` field, and ISO date-times become aware datetimes (``$lte``
    pinned to 23:59, ``$gte`` to 00:00). Objects and arrays that end up empty
    are removed.

    Naive date-times are read as UTC, so a pinned 23:59 is 23:59 UTC and not
    the server's local time. A value with an explicit offset is pinned in
    that offset.
    """
    return normalize_filter(parse_query(raw), search_or)
