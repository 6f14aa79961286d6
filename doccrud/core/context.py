from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class RequestContext:
    """Per-request state shared between the HTTP binding and a controller.

    ``request_body`` is the decoded JSON payload, ``body`` is what the
    controller writes back. ``extend_query``, ``full_list`` and
    ``merged_item`` are set by upstream middleware when they need to narrow a
    listing or enrich a single item.
    """

    method: str = "GET"
    params: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    request_body: Any = None
    body: Any = None
    extend_query: dict[str, Any] | None = None
    full_list: bool = False
    merged_item: dict[str, Any] | None = None
    request_id: str | None = None
