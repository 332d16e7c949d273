"""Tests for collection name validation."""

from __future__ import annotations

import re

import pytest

from docshelf.db.document import DocumentValidationError
from docshelf.documents.naming import INVALID_NAME_CODE, validate_collection_name


class TestValidateCollectionName:
    @pytest.mark.parametrize("name", ["orders", "orders.archive", "user_profiles", "a"])
    def test_accepts_regular_names(self, name: str) -> None:
        assert validate_collection_name(name) is None

    @pytest.mark.parametrize(
        ("name", "reason"),
        [
            ("ord\0ers", "null characters"),
            ("system.users", "system."),
            ("price$", "'$'"),
            ("", "non-empty"),
        ],
    )
    def test_rejects_reserved_names(self, name: str, reason: str) -> None:
        with pytest.raises(DocumentValidationError, match=re.escape(reason)) as exc_info:
            validate_collection_name(name, operation="find")

        assert exc_info.value.code == INVALID_NAME_CODE
        assert exc_info.value.kind == "invalid_argument"
        assert exc_info.value.operation == "find"

    def test_rejects_non_string(self) -> None:
        with pytest.raises(DocumentValidationError) as exc_info:
            validate_collection_name(42)

        assert exc_info.value.collection is None

    def test_system_prefix_only_matters_at_start(self) -> None:
        validate_collection_name("orders.system.log")
