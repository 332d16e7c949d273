"""Document store contract and typed errors."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, ClassVar, Protocol, runtime_checkable

from docshelf.runtime.errors import DocshelfError
from docshelf.runtime.health import HealthStatus


class DocumentStoreError(DocshelfError):
    """Base exception for document operations.

    Every instance carries the ``operation`` and ``collection`` it failed on,
    a stable machine-readable ``code`` and the error ``kind``. The lower-level
    exception, when there is one, is kept as ``cause`` and chained.
    """

    kind: ClassVar[str] = "system_error"

    def __init__(
        self,
        operation: str,
        collection: str | None,
        message: str,
        *,
        code: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.collection = collection
        self.reason = message
        self.code = code or f"{operation}.{self.kind}"
        self.cause = cause
        target = "<unknown>" if collection is None else collection
        super().__init__(f"Document {operation} failed for '{target}': {message}")

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "kind": self.kind,
            "code": self.code,
            "operation": self.operation,
            "collection": self.collection,
            "message": self.reason,
        }


class DocumentValidationError(DocumentStoreError):
    """Raised when document operation arguments are invalid."""

    kind = "invalid_argument"


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a single-document operation matches nothing."""

    kind = "not_found"


class DocumentAlreadyExistsError(DocumentStoreError):
    """Raised when a new document collides with an existing identity."""

    kind = "already_exists"


class DocumentPreconditionError(DocumentStoreError):
    """Raised when the document is not in the state the operation requires."""

    kind = "precondition"


class DocumentOperationError(DocumentStoreError):
    """Raised for store failures and broken internal invariants."""

    kind = "system_error"


@runtime_checkable
class DocumentStore(Protocol):
    """Primitives the document facade needs from a backend.

    Implementations return plain dicts and raw counts and let driver
    exceptions propagate; the facade maps them onto ``DocumentStoreError``.
    """

    async def insert_one(self, collection: str, document: dict[str, Any]) -> Any:
        """Insert a single document and return the inserted storage id."""
        ...

    async def find_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        *,
        projection: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Find a single document matching the query."""
        ...

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
        """Find documents with optional projection, sort and pagination."""
        ...

    async def update_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        update: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> int:
        """Update a single document and return the modified count.

        ``update`` is an operator document or an update pipeline.
        """
        ...

    async def update_many(
        self,
        collection: str,
        query: Mapping[str, Any],
        update: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    ) -> int:
        """Update all matching documents and return the modified count."""
        ...

    async def replace_one(
        self,
        collection: str,
        query: Mapping[str, Any],
        replacement: Mapping[str, Any],
    ) -> int:
        """Replace a single document and return the modified count."""
        ...

    async def delete_many(self, collection: str, query: Mapping[str, Any]) -> int:
        """Physically delete matching documents and return the deleted count."""
        ...

    async def count(
        self,
        collection: str,
        query: Mapping[str, Any] | None = None,
    ) -> int:
        """Return document count for a collection, optionally filtered by query."""
        ...

    async def aggregate(
        self,
        collection: str,
        pipeline: Sequence[Mapping[str, Any]],
    ) -> list[dict[str, Any]]:
        """Run an aggregation pipeline."""
        ...

    async def create_index(
        self,
        collection: str,
        keys: list[tuple[str, int]],
        *,
        unique: bool = False,
        name: str | None = None,
    ) -> str:
        """Create an index and return its name."""
        ...

    async def drop_collection(self, collection: str) -> None:
        """Drop a whole collection."""
        ...

    async def drop_database(self) -> None:
        """Drop the whole database."""
        ...

    async def run_transaction(self, operations: Callable[[Any], Awaitable[None]]) -> None:
        """Run ``operations(session)`` inside a transaction."""
        ...

    async def ping(self) -> bool:
        """Check connectivity."""
        ...

    async def health_check(self) -> HealthStatus:
        """Run backend health check."""
        ...

    async def close(self) -> None:
        """Release held connections/resources."""
        ...
