"""Document store contract and the MongoDB backend."""

from docshelf.db.document import (
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    DocumentOperationError,
    DocumentPreconditionError,
    DocumentStore,
    DocumentStoreError,
    DocumentValidationError,
)
from docshelf.db.mongodb import MongoDbResource, create_mongodb_resource

__all__ = [
    "DocumentAlreadyExistsError",
    "DocumentNotFoundError",
    "DocumentOperationError",
    "DocumentPreconditionError",
    "DocumentStore",
    "DocumentStoreError",
    "DocumentValidationError",
    "MongoDbResource",
    "create_mongodb_resource",
]
