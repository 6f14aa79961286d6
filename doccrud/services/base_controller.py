from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from doccrud.core.config import settings
from doccrud.core.context import RequestContext
from doccrud.db.collection import CollectionAccess, id_filter
from doccrud.schemas.envelope import fail, ok
from doccrud.schemas.field_spec import FieldSpec, projection_for, sort_for
from doccrud.services.query_normalizer import normalize_query

_LOG = logging.getLogger("doccrud.crud")


def utcnow() -> datetime:
    # Stored as BSON dates so normalized $gte/$lte filters compare against them.
    return datetime.now(timezone.utc)


def _non_negative_int(raw: Any, default: int) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        number = int(str(raw).strip(), 10)
    except ValueError:
        return default
    if number < 0:
        return default
    return number


def _not_found(item_id: Any) -> dict:
    return fail(f"item with id {item_id} does not exist", 404)


class BaseController:
    """CRUD handlers over one document collection.

    Every handler takes a ``RequestContext``; all but ``get_list`` write a
    response envelope to ``ctx.body``. ``get_list`` returns its result so
    other handlers and middleware can compose it.
    """

    def __init__(self, collection: CollectionAccess, field_spec: FieldSpec | None = None):
        self.collection = collection
        self.field_spec = field_spec or FieldSpec()

    @property
    def projection(self) -> Optional[dict[str, int]]:
        return projection_for(self.field_spec.fields)

    @property
    def count_limit(self) -> int:
        if self.field_spec.count_limit is not None:
            return self.field_spec.count_limit
        return settings.DEFAULT_COUNT_LIMIT

    def build_filter(self, ctx: RequestContext) -> dict[str, Any]:
        query: dict[str, Any] = {}
        raw = (ctx.query or {}).get("query")
        if raw:
            query = normalize_query(raw, self.field_spec.search_or)
        if self.field_spec.extend_query:
            query = {**query, **self.field_spec.extend_query}
        if ctx.extend_query:
            query = {**query, **ctx.extend_query}
        return query

    def resolve_page(self, ctx: RequestContext) -> tuple[int, int]:
        params = ctx.query or {}
        skip = _non_negative_int(params.get("skip"), 0)
        limit = _non_negative_int(params.get("limit"), self.count_limit)
        return skip, limit

    def resolve_sort(self, ctx: RequestContext) -> list[tuple]:
        raw = (ctx.query or {}).get("sort")
        if raw:
            return sort_for(raw.split(","))
        return sort_for(self.field_spec.sort)

    async def create(self, ctx: RequestContext) -> None:
        item = await self.collection.create_one({"createdAt": utcnow(), **(ctx.request_body or {})})
        _LOG.info("created item id=%s collection=%s", item.get("_id"), getattr(self.collection, "name", "-"))
        ctx.body = ok(item)

    async def delete(self, ctx: RequestContext) -> None:
        item_id = ctx.params.get("id")
        existing = await self.collection.find_by_id(item_id)
        if existing is None:
            ctx.body = _not_found(item_id)
            return
        result = await self.collection.delete_many(id_filter(item_id))
        _LOG.info("deleted item id=%s", item_id)
        ctx.body = ok(result)

    async def show(self, ctx: RequestContext) -> None:
        item_id = ctx.params.get("id")
        item = await self.collection.find_by_id(
            item_id,
            projection=self.projection,
            populate=self.field_spec.populate,
        )
        if item is None:
            ctx.body = _not_found(item_id)
            return
        ctx.body = ok({**(ctx.merged_item or {}), **item})

    async def get_list(self, ctx: RequestContext) -> dict[str, Any]:
        query = self.build_filter(ctx)
        skip, limit = self.resolve_page(ctx)
        items = await self.collection.find(
            query,
            projection=self.projection,
            populate=self.field_spec.populate,
            sort=self.resolve_sort(ctx),
            skip=skip,
            limit=limit,
        )
        count = await self.collection.count_documents(query)
        full_items = await self.collection.find(query) if ctx.full_list else []
        return {
            "list": items,
            "fullList": full_items,
            "count": count,
        }

    async def list(self, ctx: RequestContext) -> None:
        query = self.build_filter(ctx)
        skip, limit = self.resolve_page(ctx)
        items = await self.collection.find(
            query,
            projection=self.projection,
            populate=self.field_spec.populate,
            populate_select=self.field_spec.populate_select,
            sort=self.resolve_sort(ctx),
            skip=skip,
            limit=limit,
        )
        count = await self.collection.count_documents(query)
        _LOG.debug("listed %d of %d items skip=%d limit=%d", len(items), count, skip, limit)
        ctx.body = ok({"list": items, "count": count})

    async def update(self, ctx: RequestContext) -> None:
        item_id = ctx.params.get("id")
        existing = await self.collection.find_by_id(item_id)
        if existing is None:
            ctx.body = _not_found(item_id)
            return
        changes = {**(ctx.request_body or {}), "updatedAt": utcnow()}
        changes.pop("_id", None)
        await self.collection.update_one(id_filter(item_id), changes)
        item = await self.collection.find_by_id(item_id, projection=self.projection)
        _LOG.info("updated item id=%s", item_id)
        ctx.body = ok(item)
