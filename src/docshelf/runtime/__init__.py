"""Runtime primitives: health and error contracts."""

from docshelf.runtime.errors import DocshelfError, MissingDependencyError
from docshelf.runtime.health import HealthStatus

__all__ = [
    "DocshelfError",
    "HealthStatus",
    "MissingDependencyError",
]
