"""Collection name validation."""

from __future__ import annotations

from typing import Any

from docshelf.db.document import DocumentValidationError

RESERVED_PREFIX = "system."
INVALID_NAME_CODE = "collection.invalid_name"


def validate_collection_name(name: Any, *, operation: str = "validate") -> None:
    """Raise ``DocumentValidationError`` unless ``name`` is usable as a collection.

    Rejects non-strings, the empty string, embedded null characters, the
    ``system.`` prefix and the ``$`` character.
    """
    if not isinstance(name, str) or name == "":
        reason = "collection name must be a non-empty string"
    elif "\0" in name:
        reason = "collection name cannot contain null characters"
    elif name.startswith(RESERVED_PREFIX):
        reason = f"collection name cannot start with '{RESERVED_PREFIX}'"
    elif "$" in name:
        reason = "collection name cannot contain the '$' character"
    else:
        return

    raise DocumentValidationError(
        operation,
        name if isinstance(name, str) else None,
        reason,
        code=INVALID_NAME_CODE,
    )
