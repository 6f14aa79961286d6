from __future__ import annotations

from typing import Any, Awaitable, Callable

from fastapi import APIRouter, Request

from doccrud.core.context import RequestContext
from doccrud.services.base_controller import BaseController
from doccrud.services.serialization import to_json_safe


def build_context(request: Request, payload: Any = None) -> RequestContext:
    state = request.state
    return RequestContext(
        method=request.method,
        params={key: str(value) for key, value in request.path_params.items()},
        query=dict(request.query_params),
        request_body=payload,
        extend_query=getattr(state, "extend_query", None),
        full_list=bool(getattr(state, "full_list", False)),
        merged_item=getattr(state, "merged_item", None),
        request_id=getattr(state, "request_id", None),
    )


async def _run(handler: Callable[[RequestContext], Awaitable[None]], ctx: RequestContext) -> Any:
    await handler(ctx)
    return to_json_safe(ctx.body)


def build_crud_router(controller: BaseController) -> APIRouter:
    """Expose a controller as ``POST /``, ``GET /``, ``GET|PUT|PATCH|DELETE /{id}``."""
    router = APIRouter()

    @router.post("")
    async def create_item(request: Request, payload: dict[str, Any]):
        return await _run(controller.create, build_context(request, payload))

    @router.get("")
    async def list_items(request: Request):
        return await _run(controller.list, build_context(request))

    @router.get("/{id}")
    async def show_item(id: str, request: Request):
        return await _run(controller.show, build_context(request))

    @router.patch("/{id}")
    @router.put("/{id}")
    async def update_item(id: str, request: Request, payload: dict[str, Any]):
        return await _run(controller.update, build_context(request, payload))

    @router.delete("/{id}")
    async def delete_item(id: str, request: Request):
        return await _run(controller.delete, build_context(request))

    return router
