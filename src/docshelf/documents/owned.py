"""Facade view bound to a single owner."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from docshelf.documents.facade import DocumentFacade
from docshelf.documents.query import DEFAULT_LIMIT, DEFAULT_SKIP, QueryOptions


@dataclass(slots=True, frozen=True)
class OwnedDocuments:
    """Every facade verb, with documents created on behalf of ``owner``.

    Reads and writes are not filtered by owner; only ``create`` uses it.
    """

    facade: DocumentFacade
    owner: str

    async def create(self, collection: str, data: Mapping[str, Any]) -> str:
        return await self.facade.create(collection, self.owner, data)

    async def get(self, collection: str, identity: str) -> dict[str, Any]:
        return await self.facade.get(collection, identity)

    async def find_one(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None,
        fields: Sequence[str] | None = None,
    ) -> dict[str, Any] | None:
        return await self.facade.find_one(collection, criteria, fields)

    async def find(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        options: QueryOptions | Mapping[str, Any] | None = None,
        skip: int = DEFAULT_SKIP,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        return await self.facade.find(collection, criteria, options, skip, limit)

    async def aggregate(
        self,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        skip: int = DEFAULT_SKIP,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        return await self.facade.aggregate(collection, pipeline, skip, limit)

    async def update_all(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None,
        values: Mapping[str, Any],
    ) -> int:
        return await self.facade.update_all(collection, criteria, values)

    async def update(
        self,
        collection: str,
        identity: str,
        data: Mapping[str, Any],
        replace: bool = False,
    ) -> int:
        return await self.facade.update(collection, identity, data, replace)

    async def delete_all(self, collection: str, criteria: Mapping[str, Any] | None) -> int:
        return await self.facade.delete_all(collection, criteria)

    async def delete(self, collection: str, identity: str) -> int:
        return await self.facade.delete(collection, identity)

    async def restore(self, collection: str, criteria: Mapping[str, Any] | None) -> int:
        return await self.facade.restore(collection, criteria)

    async def purge(self, collection: str, identity: str) -> str:
        return await self.facade.purge(collection, identity)

    async def count(self, collection: str, criteria: Mapping[str, Any] | None = None) -> int:
        return await self.facade.count(collection, criteria)

    async def drop(self, collection: str) -> None:
        await self.facade.drop(collection)

    async def create_index(
        self,
        collection: str,
        keys: Mapping[str, int] | Sequence[tuple[str, int]],
        *,
        unique: bool = False,
        name: str | None = None,
    ) -> str:
        return await self.facade.create_index(collection, keys, unique=unique, name=name)

    async def run_transaction(self, operations: Callable[[Any], Awaitable[None]]) -> None:
        await self.facade.run_transaction(operations)

    async def drop_database(self) -> None:
        await self.facade.drop_database()

    async def is_healthy(self) -> bool:
        return await self.facade.is_healthy()
