"""Turn documents read from MongoDB into plain JSON values."""

from __future__ import annotations

import base64
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Callable

from bson import DBRef, Decimal128, Int64, ObjectId, Timestamp


def _decimal(value: Decimal) -> float | str:
    # JSON has no NaN or Infinity.
    return float(value) if value.is_finite() else str(value)


def _dbref(value: DBRef) -> dict[str, Any]:
    return {"$ref": value.collection, "$id": to_json_safe(value.id)}


# First match wins; Int64 and Binary subclass int and bytes.
_SCALARS: tuple[tuple[type, Callable[[Any], Any]], ...] = (
    (ObjectId, str),
    (Int64, int),
    (Decimal128, lambda value: _decimal(value.to_decimal())),
    (Decimal, _decimal),
    (Timestamp, lambda value: value.as_datetime().isoformat()),
    (date, lambda value: value.isoformat()),
    (uuid.UUID, str),
    (DBRef, _dbref),
    (bytes, lambda value: base64.b64encode(value).decode("ascii")),
)


def to_json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: to_json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_safe(item) for item in value]
    if isinstance(value, (str, bool, float)) or value is None:
        return value
    for kind, convert in _SCALARS:
        if isinstance(value, kind):
            return convert(value)
    return value
