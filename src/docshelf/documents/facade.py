"""Document lifecycle operations over a ``DocumentStore``.

Every verb validates the collection name first, shapes the query and/or
stamps the envelope, then issues one or more store primitives. Driver
exceptions are wrapped into ``DocumentOperationError``; typed
``DocumentStoreError`` instances raised along the way propagate unchanged.

Verbs built from more than one primitive (``update`` with ``replace=True``,
``delete``, ``purge``) do not run in a transaction. A concurrent writer can
change the document between the read and the write.
"""

from __future__ import annotations

import functools
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any, TypeVar, cast

from docshelf.config.models import AppSettings, MongoDbSettings
from docshelf.db.document import (
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    DocumentOperationError,
    DocumentPreconditionError,
    DocumentStore,
    DocumentStoreError,
    DocumentValidationError,
)
from docshelf.db.mongodb import create_mongodb_resource
from docshelf.documents.envelope import (
    NOT_DELETED,
    SystemField,
    stamp_for_create,
    stamp_for_patch,
    stamp_for_replace,
    strip_storage_id,
    update_pipeline,
)
from docshelf.documents.naming import validate_collection_name
from docshelf.documents.query import (
    ALL_FIELDS,
    DEFAULT_LIMIT,
    DEFAULT_SKIP,
    InvalidQueryError,
    QueryOptions,
    apply_visibility,
    build_projection,
    build_sort,
    exclude_deleted,
    shape_pipeline,
)
from docshelf.observability._observable import ObservableMixin
from docshelf.observability.logging import log_context
from docshelf.observability.metrics import MetricsRecorder, PrometheusMetricsRecorder
from docshelf.runtime.health import HealthStatus

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]
Clock = Callable[[], int]
_Verb = TypeVar("_Verb", bound=Callable[..., Awaitable[Any]])

DUPLICATE_KEY_CODE = 11000
IDENTITY_INDEX_NAME = "uuid_unique"

_IDENTITY = SystemField.IDENTITY.value
_DELETED = SystemField.DELETED.value
_UPDATED = SystemField.UPDATED.value


def uuid4_identity() -> str:
    return str(uuid.uuid4())


class MillisecondClock:
    """Epoch milliseconds that never repeat or go backwards within a process."""

    def __init__(self) -> None:
        self._last = 0

    def __call__(self) -> int:
        now = time.time_ns() // 1_000_000
        self._last = now if now > self._last else self._last + 1
        return self._last


@contextmanager
def _store_errors(operation: str, collection: str | None, message: str) -> Iterator[None]:
    try:
        yield
    except DocumentStoreError:
        raise
    except InvalidQueryError as exc:
        raise DocumentValidationError(
            operation, collection, str(exc), code=exc.code, cause=exc
        ) from exc
    except Exception as exc:
        raise DocumentOperationError(
            operation,
            collection,
            f"{message}: {exc}",
            code=f"{operation}.store_error",
            cause=exc,
        ) from exc


def _is_duplicate_identity(exc: Exception) -> bool:
    if getattr(exc, "code", None) != DUPLICATE_KEY_CODE:
        return False
    details = getattr(exc, "details", None) or {}
    key_pattern = details.get("keyPattern") if isinstance(details, Mapping) else None
    return isinstance(key_pattern, Mapping) and _IDENTITY in key_pattern


def _recorded(operation: str) -> Callable[[_Verb], _Verb]:
    """Run a collection verb inside a log context and record its outcome.

    The outcome is ``ok``, the ``kind`` of a ``DocumentStoreError`` or
    ``system_error`` for anything else.
    """

    def decorate(method: _Verb) -> _Verb:
        @functools.wraps(method)
        async def wrapper(self: DocumentFacade, collection: Any, *args: Any, **kwargs: Any) -> Any:
            target = collection if isinstance(collection, str) else ""
            outcome = "ok"
            started = time.perf_counter()
            with log_context(collection=target or None, operation=operation):
                try:
                    return await method(self, collection, *args, **kwargs)
                except DocumentStoreError as exc:
                    outcome = exc.kind
                    raise
                except Exception:
                    outcome = "system_error"
                    raise
                finally:
                    self._metrics_recorder().observe_document_operation(
                        operation=operation,
                        collection=target,
                        outcome=outcome,
                        duration_seconds=time.perf_counter() - started,
                    )

        return cast(_Verb, wrapper)

    return decorate


class DocumentFacade(ObservableMixin):
    """CRUD, soft delete, restore, purge, count and aggregate over collections.

    Example usage::

        facade = await DocumentFacade.connect(settings)
        identity = await facade.create("orders", "alice", {"total": 10})
        order = await facade.get("orders", identity)
        await facade.delete("orders", identity)
        await facade.purge("orders", identity)
        await facade.close()
    """

    _resource_name = "documents"

    def __init__(
        self,
        store: DocumentStore,
        *,
        metrics: MetricsRecorder | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._id_factory = id_factory or uuid4_identity
        self._clock = clock or MillisecondClock()

    @classmethod
    async def connect(
        cls,
        settings: MongoDbSettings,
        *,
        metrics: MetricsRecorder | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
    ) -> DocumentFacade:
        """Open a MongoDB connection and wrap it."""
        try:
            resource = await create_mongodb_resource(settings, metrics=metrics)
        except Exception as exc:
            raise DocumentOperationError(
                "connect",
                None,
                f"failed to connect to {settings.redacted_uri()}: {exc}",
                code="connect.failed",
                cause=exc,
            ) from exc
        return cls(resource, metrics=metrics, id_factory=id_factory, clock=clock)

    @classmethod
    async def from_app_settings(
        cls,
        app_settings: AppSettings,
        *,
        registry: Any | None = None,
        id_factory: IdFactory | None = None,
        clock: Clock | None = None,
    ) -> DocumentFacade:
        """Connect with ``app_settings.mongodb``.

        When ``app_settings.metrics.enabled`` is set, the facade and its store
        record into a ``PrometheusMetricsRecorder`` using the configured prefix
        (on ``registry``, or the default Prometheus registry). Otherwise the
        process-level recorder is used.
        """
        metrics: MetricsRecorder | None = None
        if app_settings.metrics.enabled:
            metrics = PrometheusMetricsRecorder(
                registry=registry, prefix=app_settings.metrics.prefix
            )
        return await cls.connect(
            app_settings.mongodb, metrics=metrics, id_factory=id_factory, clock=clock
        )

    @property
    def store(self) -> DocumentStore:
        return self._store

    @_recorded("create")
    async def create(self, collection: str, owner: str, data: Mapping[str, Any]) -> str:
        """Insert a new document owned by ``owner`` and return its identity."""
        validate_collection_name(collection, operation="create")
        if owner is None or owner == "" or data is None:
            raise DocumentValidationError(
                "create",
                collection,
                "owner and data are required",
                code="create.missing_arguments",
            )
        if not isinstance(owner, str):
            raise DocumentValidationError(
                "create", collection, "owner must be a string", code="create.invalid_owner"
            )
        if not isinstance(data, Mapping):
            raise DocumentValidationError(
                "create", collection, "data must be a mapping", code="create.invalid_data"
            )

        identity = self._id_factory()
        document = stamp_for_create(data, owner=owner, identity=identity, now=self._clock())
        try:
            await self._store.insert_one(collection, document)
        except Exception as exc:
            if _is_duplicate_identity(exc):
                raise DocumentAlreadyExistsError(
                    "create",
                    collection,
                    f"a document with identity {identity} already exists",
                    code="create.duplicate_identity",
                    cause=exc,
                ) from exc
            logger.debug("Insert rejected by store", extra={"identity": identity})
            raise DocumentOperationError(
                "create",
                collection,
                f"error saving document: {exc}",
                code="create.store_error",
                cause=exc,
            ) from exc

        logger.debug("Document created", extra={"identity": identity, "owner": owner})
        return identity

    @_recorded("find_one")
    async def find_one(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None,
        fields: Sequence[str] | None = None,
    ) -> dict[str, Any] | None:
        """Return the first document matching ``criteria`` as given, or ``None``.

        No soft-delete constraint is added; use ``get`` for that.
        """
        return await self._find_one("find_one", collection, criteria, fields)

    @_recorded("get")
    async def get(self, collection: str, identity: str) -> dict[str, Any]:
        """Return the live document with ``identity``.

        Raises:
            DocumentNotFoundError: No live document has that identity.
        """
        return await self._get_live("get", collection, identity)

    @_recorded("find")
    async def find(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None = None,
        options: QueryOptions | Mapping[str, Any] | None = None,
        skip: int = DEFAULT_SKIP,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        """Return documents matching ``criteria``, live ones only by default."""
        validate_collection_name(collection, operation="find")
        self._require_criteria("find", collection, criteria)
        with _store_errors("find", collection, "error executing find query"):
            resolved = QueryOptions.coerce(options)
            query = apply_visibility(
                criteria,
                include_deleted=resolved.include_deleted,
                deleted_only=resolved.deleted_only,
            )
            projection = build_projection(resolved)
            sort = build_sort(resolved.order)
            documents = await self._store.find_many(
                collection,
                query,
                projection=projection,
                sort=sort,
                skip=skip,
                limit=limit,
            )

        if resolved.fields == ALL_FIELDS:
            return documents
        return [strip_storage_id(document) for document in documents]

    @_recorded("aggregate")
    async def aggregate(
        self,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
        skip: int = DEFAULT_SKIP,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict[str, Any]]:
        """Run ``pipeline`` over live documents only."""
        validate_collection_name(collection, operation="aggregate")
        with _store_errors("aggregate", collection, "aggregation failed"):
            stages = shape_pipeline(pipeline or [], skip=skip, limit=limit)
            logger.debug("Running aggregation", extra={"stages": len(stages)})
            return await self._store.aggregate(collection, stages)

    @_recorded("update_all")
    async def update_all(
        self,
        collection: str,
        criteria: Mapping[str, Any] | None,
        values: Mapping[str, Any],
    ) -> int:
        """Merge ``values`` into every live document matching ``criteria``.

        Returns the number of documents modified; zero is not an error.
        """
        return await self._update_all("update_all", collection, criteria, values)

    @_recorded("update")
    async def update(
        self,
        collection: str,
        identity: str,
        data: Mapping[str, Any],
        replace: bool = False,
    ) -> int:
        """Patch (default) or replace the live document with ``identity``.

        A replace keeps every system field of the stored document and drops
        user fields absent from ``data``. Either way ``_updated`` ends up
        greater than its previous value, even if the clock lags behind it.

        Raises:
            DocumentValidationError: A patch key starts with ``$`` or contains ``.``.
            DocumentNotFoundError: Nothing was modified.
            DocumentOperationError: More than one document was modified.
        """
        validate_collection_name(collection, operation="update")
        self._require_identity("update", collection, identity)
        if not isinstance(data, Mapping):
            raise DocumentValidationError(
                "update", collection, "data must be a mapping", code="update.invalid_data"
            )

        if replace:
            existing = await self._get_live("update", collection, identity)
            now = max(self._clock(), int(existing.get(_UPDATED, 0)) + 1)
            replacement = stamp_for_replace(data, existing, now=now)
            with _store_errors("update", collection, "error replacing document"):
                modified = await self._store.replace_one(
                    collection, {_IDENTITY: identity}, replacement
                )
        else:
            self._require_field_names("update", collection, data)
            values = stamp_for_patch(data, now=self._clock())
            with _store_errors("update", collection, "error patching document"):
                modified = await self._store.update_one(
                    collection,
                    {_IDENTITY: identity, _DELETED: dict(NOT_DELETED)},
                    update_pipeline(values),
                )

        return self._expect_one("update", collection, identity, modified)

    @_recorded("delete_all")
    async def delete_all(self, collection: str, criteria: Mapping[str, Any] | None) -> int:
        """Soft delete every live document matching ``criteria``."""
        return await self._update_all("delete_all", collection, criteria, {_DELETED: True})

    @_recorded("delete")
    async def delete(self, collection: str, identity: str) -> int:
        """Soft delete the live document with ``identity``."""
        validate_collection_name(collection, operation="delete")
        self._require_identity("delete", collection, identity)
        deleted = await self._update_all(
            "delete", collection, {_IDENTITY: identity}, {_DELETED: True}
        )
        return self._expect_one("delete", collection, identity, deleted)

    @_recorded("restore")
    async def restore(self, collection: str, criteria: Mapping[str, Any] | None) -> int:
        """Clear the deleted flag on soft-deleted documents matching ``criteria``."""
        validate_collection_name(collection, operation="restore")
        self._require_criteria("restore", collection, criteria)
        query = {**(criteria or {}), _DELETED: True}
        with _store_errors("restore", collection, "error restoring documents"):
            restored = await self._store.update_many(
                collection,
                query,
                update_pipeline({_DELETED: False, _UPDATED: self._clock()}),
            )
        logger.debug("Documents restored", extra={"count": restored})
        return restored

    @_recorded("purge")
    async def purge(self, collection: str, identity: str) -> str:
        """Physically erase a soft-deleted document. Irreversible.

        Raises:
            DocumentPreconditionError: No soft-deleted document has ``identity``.
        """
        validate_collection_name(collection, operation="purge")
        self._require_identity("purge", collection, identity)
        query = {_IDENTITY: identity, _DELETED: True}
        with _store_errors("purge", collection, f"error purging {identity}"):
            if await self._store.find_one(collection, query) is None:
                raise DocumentPreconditionError(
                    "purge",
                    collection,
                    "cannot purge a document that is not deleted",
                    code="purge.not_deleted",
                )
            await self._store.delete_many(collection, query)

        logger.info("Document purged", extra={"identity": identity})
        return identity

    @_recorded("count")
    async def count(self, collection: str, criteria: Mapping[str, Any] | None = None) -> int:
        """Count documents matching ``criteria`` exactly as given.

        Unlike ``find``, soft-deleted documents are counted unless ``criteria``
        says otherwise.
        """
        validate_collection_name(collection, operation="count")
        self._require_criteria("count", collection, criteria)
        with _store_errors("count", collection, "error counting documents"):
            return await self._store.count(collection, dict(criteria or {}))

    @_recorded("drop")
    async def drop(self, collection: str) -> None:
        """Drop the whole collection. Irreversible."""
        validate_collection_name(collection, operation="drop")
        with _store_errors("drop", collection, "error dropping collection"):
            await self._store.drop_collection(collection)
        logger.info("Collection dropped")

    @_recorded("create_index")
    async def create_index(
        self,
        collection: str,
        keys: Mapping[str, int] | Sequence[tuple[str, int]],
        *,
        unique: bool = False,
        name: str | None = None,
    ) -> str:
        """Create an index on ``collection`` and return its name."""
        validate_collection_name(collection, operation="create_index")
        key_list = list(keys.items()) if isinstance(keys, Mapping) else list(keys)
        if not key_list:
            raise DocumentValidationError(
                "create_index",
                collection,
                "index keys cannot be empty",
                code="create_index.empty_keys",
            )
        with _store_errors("create_index", collection, "error creating index"):
            index_name = await self._store.create_index(
                collection, key_list, unique=unique, name=name
            )
        logger.debug("Index created", extra={"index": index_name})
        return index_name

    async def ensure_identity_index(self, collection: str) -> str:
        """Unique index on the identity field, so collisions fail on create."""
        return await self.create_index(
            collection, [(_IDENTITY, 1)], unique=True, name=IDENTITY_INDEX_NAME
        )

    async def drop_database(self) -> None:
        """Drop the whole database. Irreversible."""
        with _store_errors("drop_database", None, "error dropping database"):
            await self._store.drop_database()
        logger.info("Database dropped")

    async def run_transaction(self, operations: Callable[[Any], Awaitable[None]]) -> None:
        """Run ``operations(session)`` inside a store transaction."""
        with _store_errors("transaction", None, "transaction aborted"):
            await self._store.run_transaction(operations)

    async def health_check(self) -> HealthStatus:
        return await self._store.health_check()

    async def is_healthy(self) -> bool:
        return (await self._store.health_check()).healthy

    async def close(self) -> None:
        await self._store.close()

    async def _find_one(
        self,
        operation: str,
        collection: str,
        criteria: Mapping[str, Any] | None,
        fields: Sequence[str] | None,
    ) -> dict[str, Any] | None:
        validate_collection_name(collection, operation=operation)
        self._require_criteria(operation, collection, criteria)
        projection = {name: 1 for name in fields} if fields else None
        with _store_errors(operation, collection, "error finding document"):
            document = await self._store.find_one(
                collection, dict(criteria or {}), projection=projection
            )
        if document is None:
            return None
        return strip_storage_id(document)

    async def _get_live(self, operation: str, collection: str, identity: str) -> dict[str, Any]:
        document = await self._find_one(
            operation,
            collection,
            {_IDENTITY: identity, _DELETED: dict(NOT_DELETED)},
            None,
        )
        if document is None:
            raise DocumentNotFoundError(
                operation,
                collection,
                f"no document with identity {identity}",
                code=f"{operation}.not_found",
            )
        return document

    async def _update_all(
        self,
        operation: str,
        collection: str,
        criteria: Mapping[str, Any] | None,
        values: Mapping[str, Any],
    ) -> int:
        validate_collection_name(collection, operation=operation)
        self._require_criteria(operation, collection, criteria)
        if not isinstance(values, Mapping):
            raise DocumentValidationError(
                operation, collection, "values must be a mapping", code=f"{operation}.invalid_data"
            )
        self._require_field_names(operation, collection, values)

        query = exclude_deleted(criteria)
        payload = stamp_for_patch(values, now=self._clock())
        with _store_errors(operation, collection, f"error updating {collection}"):
            modified = await self._store.update_many(collection, query, update_pipeline(payload))

        logger.debug("Documents updated", extra={"count": modified})
        return modified

    @staticmethod
    def _require_criteria(operation: str, collection: str, criteria: Any) -> None:
        if criteria is not None and not isinstance(criteria, Mapping):
            raise DocumentValidationError(
                operation,
                collection,
                f"criteria must be a mapping, got {type(criteria).__name__}",
                code=f"{operation}.invalid_criteria",
            )

    @staticmethod
    def _require_field_names(operation: str, collection: str, values: Mapping[str, Any]) -> None:
        # Update pipelines cannot address nested paths or operator-like names.
        for key in values:
            if not isinstance(key, str) or key.startswith("$") or "." in key:
                raise DocumentValidationError(
                    operation,
                    collection,
                    f"invalid field name {key!r}",
                    code=f"{operation}.invalid_field",
                )

    @staticmethod
    def _require_identity(operation: str, collection: str, identity: Any) -> None:
        if not isinstance(identity, str) or identity == "":
            raise DocumentValidationError(
                operation,
                collection,
                "identity must be a non-empty string",
                code=f"{operation}.invalid_identity",
            )

    @staticmethod
    def _expect_one(operation: str, collection: str, identity: str, modified: int) -> int:
        if modified == 1:
            return 1
        if modified == 0:
            raise DocumentNotFoundError(
                operation,
                collection,
                f"no document with identity {identity}",
                code=f"{operation}.not_found",
            )
        raise DocumentOperationError(
            operation,
            collection,
            f"{modified} documents matched identity {identity}, expected one",
            code=f"{operation}.multiple_matched",
        )
