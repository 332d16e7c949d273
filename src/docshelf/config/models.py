"""Typed configuration models with Pydantic validation."""

from __future__ import annotations

import os
import re
from typing import Literal
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator

DEFAULT_MONGODB_PORT = 27017

_CREDENTIALS_PATTERN = re.compile(r"//[^/@]*@")


class ServiceSettings(BaseModel):
    """Service identification used by logs and metrics."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Service name")
    version: str = Field(default="0.0.0", min_length=1, description="Service version")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log output format")
    sampling: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Optional sampling ratio for low-severity logs",
    )


class MetricsSettings(BaseModel):
    """Prometheus metrics configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Record Prometheus metrics")
    prefix: str = Field(default="docshelf", min_length=1, description="Metric name prefix")


class MongoHostSettings(BaseModel):
    """A single MongoDB host/port pair."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="Host name or IP address")
    port: int = Field(default=DEFAULT_MONGODB_PORT, ge=1, le=65535, description="Port")

    @classmethod
    def parse(cls, value: str) -> MongoHostSettings:
        """Parse ``host`` or ``host:port``."""
        host, _, port = value.strip().partition(":")
        if not port:
            return cls(host=host)
        try:
            return cls(host=host, port=int(port))
        except ValueError as exc:
            raise ValueError(f"Invalid MongoDB host {value!r}: expected host:port") from exc


class MongoDbSettings(BaseModel):
    """MongoDB connection settings.

    Either a full ``uri`` or at least one entry in ``hosts`` must be given.
    When hosts are used the connection string is assembled from the host list,
    the optional credential pair and the replica set name.
    """

    model_config = ConfigDict(frozen=True)

    database: str = Field(..., min_length=1, description="Database name")
    uri: SecretStr | None = Field(default=None, description="Full MongoDB connection URI")
    hosts: list[MongoHostSettings] = Field(default_factory=list, description="Host list")
    user: str | None = Field(default=None, min_length=1, description="Username")
    password: SecretStr | None = Field(default=None, description="Password")
    replica_set: str | None = Field(
        default=None,
        min_length=1,
        description="Replica set name, applied when more than one host is configured",
    )
    server_selection_timeout_ms: int = Field(
        default=2000,
        ge=1,
        description="Server selection timeout in milliseconds",
    )
    connect_timeout_ms: int = Field(
        default=2000,
        ge=1,
        description="Socket connect timeout in milliseconds",
    )
    ping_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Timeout for health ping in seconds",
    )
    app_name: str | None = Field(default=None, min_length=1, description="Optional app name")

    @model_validator(mode="after")
    def _require_target(self) -> MongoDbSettings:
        if self.uri is None and not self.hosts:
            raise ValueError("MongoDB settings require either 'uri' or at least one host")
        return self

    def connection_uri(self) -> str:
        """Return the URI handed to the driver."""
        if self.uri is not None:
            return self.uri.get_secret_value()

        uri = "mongodb://"
        if self.user and self.password is not None:
            uri += f"{quote_plus(self.user)}:{quote_plus(self.password.get_secret_value())}@"
        uri += ",".join(f"{host.host}:{host.port}" for host in self.hosts)
        uri += f"/{self.database}"
        if len(self.hosts) > 1 and self.replica_set:
            uri += f"?replicaSet={quote_plus(self.replica_set)}"
        return uri

    def redacted_uri(self) -> str:
        """Connection URI with credentials masked, safe for logs."""
        return _CREDENTIALS_PATTERN.sub("//*****:*****@", self.connection_uri())

    @classmethod
    def from_env(cls, prefix: str = "DOCSHELF_") -> MongoDbSettings | None:
        """Build settings from environment variables.

        Returns ``None`` when no database name, or neither a URI nor hosts, is set.

        Expected variables:
        - DOCSHELF_MONGODB_DATABASE
        - DOCSHELF_MONGODB_URI
        - DOCSHELF_MONGODB_HOSTS (comma separated ``host:port`` list)
        - DOCSHELF_MONGODB_USER
        - DOCSHELF_MONGODB_PASSWORD
        - DOCSHELF_MONGODB_REPLICA_SET
        - DOCSHELF_MONGODB_SERVER_SELECTION_TIMEOUT_MS
        - DOCSHELF_MONGODB_CONNECT_TIMEOUT_MS
        - DOCSHELF_MONGODB_PING_TIMEOUT_SECONDS
        - DOCSHELF_MONGODB_APP_NAME
        """

        def env(name: str) -> str | None:
            value = os.getenv(f"{prefix}MONGODB_{name}")
            if value is None or value.strip() == "":
                return None
            return value

        def env_number(name: str, default: float, cast: type) -> float:
            value = env(name)
            if value is None:
                return default
            try:
                return cast(value)
            except ValueError as exc:
                raise ValueError(
                    f"Invalid {prefix}MONGODB_{name}={value!r}: expected {cast.__name__}"
                ) from exc

        database = env("DATABASE")
        uri = env("URI")
        raw_hosts = env("HOSTS")
        if database is None or (uri is None and raw_hosts is None):
            return None

        hosts = [
            MongoHostSettings.parse(item) for item in (raw_hosts or "").split(",") if item.strip()
        ]
        password = env("PASSWORD")
        return cls(
            database=database,
            uri=SecretStr(uri) if uri is not None else None,
            hosts=hosts,
            user=env("USER"),
            password=SecretStr(password) if password is not None else None,
            replica_set=env("REPLICA_SET"),
            server_selection_timeout_ms=int(
                env_number("SERVER_SELECTION_TIMEOUT_MS", 2000, int)
            ),
            connect_timeout_ms=int(env_number("CONNECT_TIMEOUT_MS", 2000, int)),
            ping_timeout_seconds=float(env_number("PING_TIMEOUT_SECONDS", 2.0, float)),
            app_name=env("APP_NAME"),
        )


class AppSettings(BaseModel):
    """Root application settings."""

    model_config = ConfigDict(frozen=True)

    service: ServiceSettings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    mongodb: MongoDbSettings
