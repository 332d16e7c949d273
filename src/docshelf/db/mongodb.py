"""MongoDB resource backed by the Motor async client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from time import perf_counter
from typing import Any, ClassVar

from docshelf.config.models import MongoDbSettings
from docshelf.observability._observable import ObservableMixin
from docshelf.observability.metrics import MetricsRecorder
from docshelf.runtime.errors import MissingDependencyError
from docshelf.runtime.health import HealthStatus

logger = logging.getLogger(__name__)


def _import_motor_asyncio() -> Any:
    try:
        from motor import motor_asyncio
    except ImportError as exc:  # pragma: no cover - exercised when motor is absent
        raise MissingDependencyError(
            "MongoDB resource requires dependency 'motor'. Install with: pip install motor"
        ) from exc
    return motor_asyncio


@dataclass(slots=True)
class MongoDbResource(ObservableMixin):
    """Managed MongoDB connection with thin per-collection primitives.

    Driver exceptions are re-raised untouched after being recorded.
    """

    _resource_name: ClassVar[str] = "mongodb"

    _client: Any
    _database: Any
    database_name: str
    ping_timeout_seconds: float = 2.0
    _metrics: MetricsRecorder | None = None
    _closed: bool = False

    @classmethod
    async def create(
        cls,
        settings: MongoDbSettings,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> MongoDbResource:
        """Create and validate a MongoDB resource from settings."""
        motor_asyncio = _import_motor_asyncio()
        logger.debug(
            "Connecting to MongoDB",
            extra={"uri": settings.redacted_uri(), "database": settings.database},
        )
        client = motor_asyncio.AsyncIOMotorClient(
            settings.connection_uri(),
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
            connectTimeoutMS=settings.connect_timeout_ms,
            appname=settings.app_name,
        )
        resource = cls(
            _client=client,
            _database=client[settings.database],
            database_name=settings.database,
            ping_timeout_seconds=settings.ping_timeout_seconds,
            _metrics=metrics,
        )
        try:
            await resource.ping()
        except Exception:
            client.close()
            raise
        logger.info("Connected to MongoDB", extra={"database": settings.database})
        return resource

    @property
    def client(self) -> Any:
        """Expose underlying Motor client for advanced usage."""
        return self._client

    @property
    def database(self) -> Any:
        """Expose active database handle."""
        return self._database

    @property
    def is_connected(self) -> bool:
        """Whether resource can still serve requests."""
        return not self._closed

    def collection(self, name: str) -> Any:
        """Return a collection handle by name."""
        return self._database[name]

    async def ping(self) -> bool:
        """Run MongoDB ping command."""
        started = perf_counter()
        try:
            await asyncio.wait_for(
                self._database.command("ping"),
                timeout=self.ping_timeout_seconds,
            )
        except Exception as exc:
            self._observe_error("ping", started, exc)
            raise

        self._observe_operation("ping", started, success=True)
        return True

    async def insert_one(self, collection: str, document: dict[str, Any]) -> Any:
        """Insert a single document and return inserted id."""
        started = perf_counter()
        try:
            result = await self.collection(collection).insert_one(document)
        except Exception as exc:
            self._observe_error("insert_one", started, exc)
            raise

        self._observe_operation("insert_one", started, success=True)
        return result.inserted_id

    async def find_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        *,
        projection: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Find a single document by query."""
        started = perf_counter()
        try:
            document = await self.collection(collection).find_one(query, projection=projection)
        except Exception as exc:
            self._observe_error("find_one", started, exc)
            raise

        self._observe_operation("find_one", started, success=True)
        if document is None:
            return None
        return dict(document)

    async def find_many(
        self,
        collection: str,
        query: Mapping[str, Any],
        *,
        projection: Mapping[str, Any] | None = None,
        sort: list[tuple[str, int]] | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents with optional projection, sort and pagination.

        Args:
            skip: Number of matching documents to skip.
            limit: Handed to the cursor unchanged when not ``None``. The driver
                   treats ``0`` as "no limit" and a negative value as a single
                   batch of ``abs(limit)`` documents.
        """
        started = perf_counter()
        try:
            cursor = self.collection(collection).find(query, projection=projection)
            if sort:
                cursor = cursor.sort(sort)
            if skip:
                cursor = cursor.skip(skip)
            if limit is not None:
                cursor = cursor.limit(limit)
            documents = await cursor.to_list(length=None)
        except Exception as exc:
            self._observe_error("find_many", started, exc)
            raise

        self._observe_operation("find_many", started, success=True)
        return [dict(document) for document in documents]

    async def update_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        update: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> int:
        """Update a single document and return modified count."""
        started = perf_counter()
        try:
            result = await self.collection(collection).update_one(query, update)
        except Exception as exc:
            self._observe_error("update_one", started, exc)
            raise

        self._observe_operation("update_one", started, success=True)
        return int(result.modified_count)

    async def update_many(
        self,
        collection: str,
        query: Mapping[str, Any],
        update: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> int:
        """Update every matching document and return modified count."""
        started = perf_counter()
        try:
            result = await self.collection(collection).update_many(query, update)
        except Exception as exc:
            self._observe_error("update_many", started, exc)
            raise

        self._observe_operation("update_many", started, success=True)
        return int(result.modified_count)

    async def replace_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        replacement: Mapping[str, Any],
    ) -> int:
        """Replace a single document and return modified count."""
        started = perf_counter()
        try:
            result = await self.collection(collection).replace_one(query, replacement)
        except Exception as exc:
            self._observe_error("replace_one", started, exc)
            raise

        self._observe_operation("replace_one", started, success=True)
        return int(result.modified_count)

    async def delete_many(self, collection: str, query: Mapping[str, Any]) -> int:
        """Delete every matching document and return removed count."""
        started = perf_counter()
        try:
            result = await self.collection(collection).delete_many(query)
        except Exception as exc:
            self._observe_error("delete_many", started, exc)
            raise

        self._observe_operation("delete_many", started, success=True)
        return int(result.deleted_count)

    async def count(
        self,
        collection: str,
        query: Mapping[str, Any] | None = None,
    ) -> int:
        """Return document count for a collection, optionally filtered by query."""
        started = perf_counter()
        try:
            result = await self.collection(collection).count_documents(query or {})
        except Exception as exc:
            self._observe_error("count", started, exc)
            raise

        self._observe_operation("count", started, success=True)
        return int(result)

    async def aggregate(
        self,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Run an aggregation pipeline and return every output document."""
        started = perf_counter()
        try:
            cursor = self.collection(collection).aggregate(list(pipeline))
            documents = await cursor.to_list(length=None)
        except Exception as exc:
            self._observe_error("aggregate", started, exc)
            raise

        self._observe_operation("aggregate", started, success=True)
        return [dict(document) for document in documents]

    async def create_index(
        self,
        collection: str,
        keys: list[tuple[str, int]],
        *,
        unique: bool = False,
        name: str | None = None,
    ) -> str:
        """Create an index and return its name."""
        options: dict[str, Any] = {"unique": unique}
        if name is not None:
            options["name"] = name

        started = perf_counter()
        try:
            index_name = await self.collection(collection).create_index(keys, **options)
        except Exception as exc:
            self._observe_error("create_index", started, exc)
            raise

        self._observe_operation("create_index", started, success=True)
        return str(index_name)

    async def drop_collection(self, collection: str) -> None:
        """Drop a collection."""
        started = perf_counter()
        try:
            await self.collection(collection).drop()
        except Exception as exc:
            self._observe_error("drop_collection", started, exc)
            raise

        self._observe_operation("drop_collection", started, success=True)

    async def drop_database(self) -> None:
        """Drop the configured database."""
        started = perf_counter()
        try:
            await self._client.drop_database(self.database_name)
        except Exception as exc:
            self._observe_error("drop_database", started, exc)
            raise

        self._observe_operation("drop_database", started, success=True)

    async def run_transaction(self, operations: Callable[[Any], Awaitable[None]]) -> None:
        """Run ``operations(session)`` in a transaction.

        The transaction commits when ``operations`` returns and aborts when it
        raises; the exception propagates.
        """
        started = perf_counter()
        try:
            async with await self._client.start_session() as session:
                async with session.start_transaction():
                    await operations(session)
        except Exception as exc:
            self._observe_error("transaction", started, exc)
            raise

        self._observe_operation("transaction", started, success=True)

    async def health_check(self) -> HealthStatus:
        """Verify MongoDB liveness with a ping command."""
        start = perf_counter()
        try:
            await self.ping()
        except Exception as exc:
            return HealthStatus(
                healthy=False,
                latency_ms=(perf_counter() - start) * 1000,
                message=str(exc),
                details={"error_type": exc.__class__.__name__, "database": self.database_name},
            )

        return HealthStatus(
            healthy=True,
            latency_ms=(perf_counter() - start) * 1000,
            message="ok",
            details={"database": self.database_name},
        )

    async def close(self) -> None:
        """Close MongoDB client."""
        started = perf_counter()
        try:
            self._client.close()
        except Exception as exc:
            self._observe_error("close", started, exc)
            raise
        finally:
            self._closed = True

        self._observe_operation("close", started, success=True)
        logger.debug("MongoDB connection released", extra={"database": self.database_name})


async def create_mongodb_resource(
    settings: MongoDbSettings,
    *,
    metrics: MetricsRecorder | None = None,
) -> MongoDbResource:
    """Build a connected resource from settings."""
    return await MongoDbResource.create(settings, metrics=metrics)
