from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from doccrud.schemas.envelope import fail
from doccrud.services.query_normalizer import MalformedQueryError

_LOG = logging.getLogger("doccrud.http")


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MalformedQueryError)
    async def _malformed_query(request: Request, exc: MalformedQueryError):
        _LOG.info("rejected filter path=%s reason=%s", request.url.path, exc.reason)
        return JSONResponse(status_code=400, content=fail(str(exc), 400))

    @app.exception_handler(PyMongoError)
    async def _store_failure(request: Request, exc: PyMongoError):
        _LOG.error("store failure path=%s error=%s", request.url.path, exc)
        return JSONResponse(status_code=503, content=fail("Storage is unavailable", 503))
