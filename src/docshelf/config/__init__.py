"""Configuration loading and validation module."""

from docshelf.config.errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from docshelf.config.loader import deep_merge, load_config
from docshelf.config.models import (
    AppSettings,
    LoggingSettings,
    MetricsSettings,
    MongoDbSettings,
    MongoHostSettings,
    ServiceSettings,
)

__all__ = [
    "AppSettings",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "LoggingSettings",
    "MetricsSettings",
    "MongoDbSettings",
    "MongoHostSettings",
    "PlaceholderResolutionError",
    "ServiceSettings",
    "deep_merge",
    "load_config",
]
