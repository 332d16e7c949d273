"""Tests for unified exception hierarchy."""

from __future__ import annotations

from docshelf.config.errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from docshelf.db.document import DocumentStoreError
from docshelf.runtime.errors import DocshelfError, MissingDependencyError


class TestExceptionHierarchy:
    """Verify every package exception inherits from DocshelfError."""

    def test_config_errors_are_docshelf_errors(self) -> None:
        assert isinstance(ConfigError(), DocshelfError)
        assert isinstance(ConfigFileNotFoundError("missing.json"), DocshelfError)
        assert isinstance(ConfigValidationError([]), DocshelfError)
        assert isinstance(PlaceholderResolutionError("${VAR}", "key.path"), DocshelfError)

    def test_document_errors_are_docshelf_errors(self) -> None:
        assert isinstance(DocumentStoreError("find", "orders", "boom"), DocshelfError)

    def test_missing_dependency_is_docshelf_error(self) -> None:
        assert isinstance(MissingDependencyError("motor"), DocshelfError)

    def test_config_validation_error_lists_locations(self) -> None:
        error = ConfigValidationError([{"loc": "mongodb -> database", "msg": "Field required"}])

        assert "mongodb -> database: Field required" in str(error)

    def test_catch_config_error_with_docshelf_error(self) -> None:
        """Ensure except DocshelfError catches ConfigError."""
        with_caught = False
        try:
            raise ConfigError("test")
        except DocshelfError:
            with_caught = True
        assert with_caught
