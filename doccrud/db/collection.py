from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from doccrud.schemas.field_spec import PopulateSpec, projection_for

_LOG = logging.getLogger("doccrud.db")

Document = dict[str, Any]


class CollectionAccess(Protocol):
    async def create_one(self, doc: Document) -> Document:
        ...

    async def find_by_id(
        self,
        item_id: Any,
        *,
        projection: Optional[dict[str, int]] = None,
        populate: Sequence[PopulateSpec] = (),
        populate_select: Optional[list[str]] = None,
    ) -> Optional[Document]:
        ...

    async def delete_many(self, filter: Document) -> Document:
        ...

    async def update_one(self, filter: Document, doc: Document) -> Document:
        ...

    async def find(
        self,
        filter: Optional[Document] = None,
        *,
        projection: Optional[dict[str, int]] = None,
        populate: Sequence[PopulateSpec] = (),
        populate_select: Optional[list[str]] = None,
        sort: Optional[list[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        ...

    async def count_documents(self, filter: Optional[Document] = None) -> int:
        ...


def coerce_object_id(value: Any) -> Any:
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def id_filter(item_id: Any) -> Document:
    return {"_id": coerce_object_id(item_id)}


def _ref_ids(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return [coerce_object_id(item) for item in value if item is not None]
    return [coerce_object_id(value)]


class MotorCollection:
    """CollectionAccess over a Motor collection.

    The database is resolved lazily so controllers can be built at import
    time, before the application lifespan opens the client. Reads always
    return plain dicts.
    """

    def __init__(self, name: str, database: AsyncIOMotorDatabase | None = None):
        self.name = name
        self._database = database

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self._database is not None:
            return self._database
        from doccrud.db.connection import get_database

        return get_database()

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.database[self.name]

    async def create_one(self, doc: Document) -> Document:
        item = dict(doc)
        result = await self.collection.insert_one(item)
        item["_id"] = result.inserted_id
        return item

    async def find_by_id(
        self,
        item_id: Any,
        *,
        projection: Optional[dict[str, int]] = None,
        populate: Sequence[PopulateSpec] = (),
        populate_select: Optional[list[str]] = None,
    ) -> Optional[Document]:
        item = await self.collection.find_one(id_filter(item_id), projection)
        if item is None:
            return None
        await self._populate([item], populate, populate_select)
        return item

    async def delete_many(self, filter: Document) -> Document:
        result = await self.collection.delete_many(filter)
        return {"acknowledged": result.acknowledged, "deletedCount": result.deleted_count}

    async def update_one(self, filter: Document, doc: Document) -> Document:
        result = await self.collection.update_one(filter, {"$set": doc})
        return {
            "acknowledged": result.acknowledged,
            "matchedCount": result.matched_count,
            "modifiedCount": result.modified_count,
        }

    async def find(
        self,
        filter: Optional[Document] = None,
        *,
        projection: Optional[dict[str, int]] = None,
        populate: Sequence[PopulateSpec] = (),
        populate_select: Optional[list[str]] = None,
        sort: Optional[list[tuple]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Document]:
        cursor = self.collection.find(filter or {}, projection)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        items = await cursor.to_list(length=None)
        await self._populate(items, populate, populate_select)
        return items

    async def count_documents(self, filter: Optional[Document] = None) -> int:
        return await self.collection.count_documents(filter or {})

    async def _populate(
        self,
        items: list[Document],
        populate: Sequence[PopulateSpec],
        populate_select: Optional[list[str]],
    ) -> None:
        for spec in populate:
            ids: list[Any] = []
            for item in items:
                ids.extend(_ref_ids(item.get(spec.path)))
            if not ids:
                continue
            projection = projection_for(spec.select if spec.select is not None else populate_select)
            refs = await self.database[spec.collection].find({"_id": {"$in": ids}}, projection).to_list(length=None)
            by_id = {ref["_id"]: ref for ref in refs}
            if len(by_id) < len(set(ids)):
                _LOG.debug("populate %s.%s: %d of %d references resolved", self.name, spec.path, len(by_id), len(set(ids)))
            for item in items:
                if spec.path not in item:
                    continue
                value = item[spec.path]
                if isinstance(value, list):
                    item[spec.path] = [by_id[ref] for ref in _ref_ids(value) if ref in by_id]
                elif value is not None:
                    item[spec.path] = by_id.get(coerce_object_id(value))
