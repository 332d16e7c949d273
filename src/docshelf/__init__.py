"""Document lifecycle facade over MongoDB with soft delete and envelope fields."""

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
from docshelf.documents import DocumentFacade, OwnedDocuments, QueryOptions, SystemField
from docshelf.runtime.errors import DocshelfError

__all__ = [
    "DocshelfError",
    "DocumentAlreadyExistsError",
    "DocumentFacade",
    "DocumentNotFoundError",
    "DocumentOperationError",
    "DocumentPreconditionError",
    "DocumentStore",
    "DocumentStoreError",
    "DocumentValidationError",
    "MongoDbResource",
    "OwnedDocuments",
    "QueryOptions",
    "SystemField",
    "create_mongodb_resource",
]
