from __future__ import annotations

import logging
import re
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
_LOG = logging.getLogger("doccrud.http")


def resolve_request_id(raw: str | None) -> str:
    """Reuse a caller-supplied request id when it is safe to echo back."""
    value = str(raw or "").strip()
    if _REQUEST_ID_RE.fullmatch(value):
        return value
    return uuid4().hex


def resource_of(request: Request) -> str:
    """Name of the CRUD resource the request was routed to, or ``-``.

    Resources are mounted as ``/api/<name>``; the matched route template is
    used so the item id never leaks into the name.
    """
    template = getattr(request.scope.get("route"), "path", "") or ""
    parts = [part for part in template.split("/") if part]
    if len(parts) >= 2 and parts[0] == "api":
        return parts[1]
    return "-"


def install_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def _access_log(request: Request, call_next):
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        started_at = perf_counter()

        response = await call_next(request)

        # Listings change with every write.
        response.headers["Cache-Control"] = "no-store"
        response.headers[REQUEST_ID_HEADER] = request_id

        _LOG.info(
            "%s %s resource=%s id=%s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            resource_of(request),
            request.path_params.get("id", "-"),
            response.status_code,
            (perf_counter() - started_at) * 1000.0,
            request_id,
        )
        return response
