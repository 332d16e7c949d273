"""Turn caller filters and options into concrete store arguments.

Criteria are treated as opaque mappings. The only key this module ever
writes into them is ``_deleted``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from docshelf.documents.envelope import NOT_DELETED, SystemField

ALL_FIELDS = "all"
DEFAULT_SKIP = 0
DEFAULT_LIMIT = 100

_DIRECTIONS = {"asc": 1, "desc": -1}
_OPTION_KEYS = frozenset({"fields", "exclude", "order", "include_deleted", "deleted_only"})


class InvalidQueryError(ValueError):
    """Raised when filter options cannot be shaped into a query."""

    def __init__(self, message: str, *, code: str) -> None:
        self.code = code
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class QueryOptions:
    """Read options accepted by ``find``.

    Attributes:
        fields: Inclusion list, or ``"all"`` to disable projection entirely
            (the store's ``_id`` is then returned as well).
        exclude: Exclusion list. Cannot be combined with an inclusion list.
        order: Field to ``"asc"``/``"desc"``, applied in iteration order.
        include_deleted: Return live and soft-deleted documents.
        deleted_only: Return only soft-deleted documents.
    """

    fields: Sequence[str] | Literal["all"] | None = None
    exclude: Sequence[str] | None = None
    order: Mapping[str, str] | None = None
    include_deleted: bool = False
    deleted_only: bool = False

    @classmethod
    def coerce(cls, options: QueryOptions | Mapping[str, Any] | None) -> QueryOptions:
        """Accept an instance, a plain mapping of the same keys, or ``None``."""
        if options is None:
            return cls()
        if isinstance(options, QueryOptions):
            return options
        if not isinstance(options, Mapping):
            raise InvalidQueryError(
                f"options must be a mapping, got {type(options).__name__}",
                code="query.invalid_options",
            )
        unknown = sorted(set(options) - _OPTION_KEYS)
        if unknown:
            raise InvalidQueryError(
                f"unknown query options: {', '.join(unknown)}",
                code="query.invalid_options",
            )
        return cls(**options)


def apply_visibility(
    criteria: Mapping[str, Any] | None,
    *,
    include_deleted: bool = False,
    deleted_only: bool = False,
) -> dict[str, Any]:
    """Add the soft-delete constraint to a copy of ``criteria``.

    A ``_deleted`` key already present in ``criteria`` is left as is.
    """
    if include_deleted and deleted_only:
        raise InvalidQueryError(
            "include_deleted and deleted_only are mutually exclusive",
            code="query.conflicting_visibility",
        )

    shaped = dict(criteria or {})
    if SystemField.DELETED.value in shaped or include_deleted:
        return shaped
    shaped[SystemField.DELETED.value] = True if deleted_only else dict(NOT_DELETED)
    return shaped


def exclude_deleted(criteria: Mapping[str, Any] | None) -> dict[str, Any]:
    return apply_visibility(criteria)


def build_projection(options: QueryOptions) -> dict[str, int] | None:
    """Projection for ``options``; ``None`` means every stored field."""
    fields = options.fields
    exclude = list(options.exclude or [])

    if isinstance(fields, str):
        if fields != ALL_FIELDS:
            raise InvalidQueryError(
                f"fields must be a list of names or '{ALL_FIELDS}'",
                code="query.invalid_projection",
            )
        return {name: 0 for name in exclude} or None

    include = list(fields or [])
    if include and exclude:
        raise InvalidQueryError(
            "inclusion and exclusion projections cannot be combined",
            code="query.conflicting_projection",
        )

    projection: dict[str, int] = {SystemField.STORAGE_ID.value: 0}
    for name in include:
        projection[name] = 1
    for name in exclude:
        projection[name] = 0
    return projection


def build_sort(order: Mapping[str, str] | None) -> list[tuple[str, int]] | None:
    if not order:
        return None

    sort: list[tuple[str, int]] = []
    for field, token in order.items():
        direction = _DIRECTIONS.get(str(token).lower())
        if direction is None:
            raise InvalidQueryError(
                f"sort direction for '{field}' must be 'asc' or 'desc', got {token!r}",
                code="query.invalid_sort",
            )
        sort.append((field, direction))
    return sort


def shape_pipeline(
    pipeline: Sequence[Mapping[str, Any]],
    *,
    skip: int = DEFAULT_SKIP,
    limit: int = DEFAULT_LIMIT,
) -> list[dict[str, Any]]:
    """Return a new pipeline that never sees soft-deleted documents.

    The exclusion is merged into a leading ``$match`` stage or inserted as one.
    ``$skip`` and ``$limit`` are appended when positive. String ``$exists``
    operands inside ``$match`` stages are turned into booleans.
    """
    if not pipeline:
        raise InvalidQueryError(
            "aggregation pipeline cannot be empty",
            code="aggregate.empty_pipeline",
        )

    stages = [dict(stage) for stage in pipeline]
    leading_match = stages[0].get("$match")
    if isinstance(leading_match, Mapping):
        stages[0]["$match"] = {**leading_match, SystemField.DELETED.value: dict(NOT_DELETED)}
    else:
        stages.insert(0, {"$match": {SystemField.DELETED.value: dict(NOT_DELETED)}})

    for stage in stages:
        if isinstance(stage.get("$match"), Mapping):
            stage["$match"] = _coerce_exists_operands(stage["$match"])

    if skip > 0:
        stages.append({"$skip": skip})
    if limit > 0:
        stages.append({"$limit": limit})
    return stages


def _coerce_exists_operands(value: Any) -> Any:
    if isinstance(value, Mapping):
        coerced = {}
        for key, item in value.items():
            if key == "$exists" and isinstance(item, str):
                coerced[key] = item.strip().lower() == "true"
            else:
                coerced[key] = _coerce_exists_operands(item)
        return coerced
    if isinstance(value, list):
        return [_coerce_exists_operands(item) for item in value]
    return value
