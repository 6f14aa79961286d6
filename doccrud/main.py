from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Mapping

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doccrud.api.router import build_crud_router
from doccrud.core.config import settings
from doccrud.core.errors import install_error_handlers
from doccrud.core.http_logging import install_request_logging
from doccrud.db.connection import check_db_connection, close_db, get_db_info, init_db
from doccrud.services.base_controller import BaseController


@asynccontextmanager
async def _mongo_lifespan(app: FastAPI):
    await init_db()
    try:
        yield
    finally:
        await close_db()


def create_app(resources: Mapping[str, BaseController] | None = None, *, connect_db: bool = True) -> FastAPI:
    """Build the API; each entry of ``resources`` is mounted under ``/api/<name>``."""
    logging.getLogger("doccrud").setLevel(settings.LOG_LEVEL.upper())

    app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=_mongo_lifespan if connect_db else None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_request_logging(app)
    install_error_handlers(app)

    for name, controller in (resources or {}).items():
        app.include_router(build_crud_router(controller), prefix=f"/api/{name}", tags=[name])

    @app.get("/", include_in_schema=False)
    def landing():
        return JSONResponse({"service": settings.APP_NAME, "status": "ok"})

    @app.get("/health")
    async def health():
        db_ok = await check_db_connection()
        return {"status": "ok" if db_ok else "degraded", "database": get_db_info()}

    return app


app = create_app()
