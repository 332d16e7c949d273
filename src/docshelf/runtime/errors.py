"""Custom exceptions shared by docshelf modules."""


class DocshelfError(Exception):
    """Base exception for this package."""


class MissingDependencyError(DocshelfError):
    """Raised when an optional dependency is required but not installed."""
