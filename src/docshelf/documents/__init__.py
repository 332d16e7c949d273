"""Document lifecycle: naming rules, envelope stamping, query shaping and verbs."""

from docshelf.documents.envelope import (
    PROTECTED_FIELDS,
    SystemField,
    is_system_field,
    stamp_for_create,
    stamp_for_patch,
    stamp_for_replace,
    strip_storage_id,
    update_pipeline,
)
from docshelf.documents.facade import DocumentFacade, MillisecondClock, uuid4_identity
from docshelf.documents.naming import validate_collection_name
from docshelf.documents.owned import OwnedDocuments
from docshelf.documents.query import (
    ALL_FIELDS,
    InvalidQueryError,
    QueryOptions,
    apply_visibility,
    build_projection,
    build_sort,
    shape_pipeline,
)

__all__ = [
    "ALL_FIELDS",
    "PROTECTED_FIELDS",
    "DocumentFacade",
    "InvalidQueryError",
    "MillisecondClock",
    "OwnedDocuments",
    "QueryOptions",
    "SystemField",
    "apply_visibility",
    "build_projection",
    "build_sort",
    "is_system_field",
    "shape_pipeline",
    "stamp_for_create",
    "stamp_for_patch",
    "stamp_for_replace",
    "strip_storage_id",
    "update_pipeline",
    "uuid4_identity",
    "validate_collection_name",
]
