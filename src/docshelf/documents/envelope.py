"""System fields stamped on every stored document.

A document is a plain ``dict``. Keys starting with ``_`` belong to the
system; everything else is caller data. Stamping functions never mutate the
mapping they are given.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

SYSTEM_PREFIX = "_"


class SystemField(StrEnum):
    """Keys of the system envelope."""

    STORAGE_ID = "_id"
    IDENTITY = "_uuid"
    OWNER = "_owner"
    CREATED = "_created"
    UPDATED = "_updated"
    DELETED = "_deleted"


# Never writable through patch or bulk update.
PROTECTED_FIELDS = frozenset(
    field.value
    for field in (
        SystemField.STORAGE_ID,
        SystemField.IDENTITY,
        SystemField.OWNER,
        SystemField.CREATED,
    )
)

NOT_DELETED: dict[str, Any] = {"$ne": True}


def is_system_field(name: str) -> bool:
    return name.startswith(SYSTEM_PREFIX)


def strip_storage_id(document: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``document`` without the store-assigned ``_id``."""
    return {key: value for key, value in document.items() if key != SystemField.STORAGE_ID}


def stamp_for_create(
    data: Mapping[str, Any],
    *,
    owner: str,
    identity: str,
    now: int,
) -> dict[str, Any]:
    """Build a new document; the envelope wins over same-named caller keys."""
    document = strip_storage_id(data)
    document.update(
        {
            SystemField.IDENTITY.value: identity,
            SystemField.OWNER.value: owner,
            SystemField.CREATED.value: now,
            SystemField.UPDATED.value: now,
        }
    )
    return document


def stamp_for_patch(data: Mapping[str, Any], *, now: int) -> dict[str, Any]:
    """Build the ``$set`` payload of a merge update."""
    values = {key: value for key, value in data.items() if key not in PROTECTED_FIELDS}
    values[SystemField.UPDATED.value] = now
    return values


def stamp_for_replace(
    data: Mapping[str, Any],
    existing: Mapping[str, Any],
    *,
    now: int,
) -> dict[str, Any]:
    """Build a full replacement for ``existing``.

    Caller fields replace all user data. Every system field of ``existing`` is
    carried over verbatim, except ``_updated`` which is set to ``now``.
    """
    document = strip_storage_id(data)
    document.update(
        {
            key: value
            for key, value in existing.items()
            if is_system_field(key) and key != SystemField.STORAGE_ID
        }
    )
    document[SystemField.UPDATED.value] = now
    return document


def update_pipeline(values: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Single-stage update pipeline writing ``values`` and advancing ``_updated``.

    ``values`` must carry ``_updated`` (see ``stamp_for_patch``). Other values
    are wrapped in ``$literal`` so strings such as ``"$5"`` are stored verbatim.
    The stored ``_updated`` becomes the greater of the stamped time and its
    previous value plus one.
    """
    updated = SystemField.UPDATED.value
    now = values[updated]
    stage: dict[str, Any] = {
        key: {"$literal": value} for key, value in values.items() if key != updated
    }
    stage[updated] = {"$max": [now, {"$add": [{"$ifNull": [f"${updated}", 0]}, 1]}]}
    return [{"$set": stage}]
