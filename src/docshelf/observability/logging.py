"""Structured logging bootstrap and the per-task log context.

``log_context`` binds values (request and trace ids supplied by the caller,
collection and operation bound by every facade verb) that both formatters
attach to each record emitted inside the block.
"""

from __future__ import annotations

import contextvars
import dataclasses
import json
import logging
import os
import random
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from docshelf.config.models import AppSettings


@dataclass(frozen=True, slots=True)
class LogContext:
    """Values attached to every record logged in the current task."""

    request_id: str | None = None
    trace_id: str | None = None
    collection: str | None = None
    operation: str | None = None

    def fields(self) -> dict[str, str]:
        return {
            field.name: value
            for field in dataclasses.fields(self)
            if (value := getattr(self, field.name)) is not None
        }


_LOG_CONTEXT: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "docshelf_log_context", default=LogContext()
)

_RESERVED_PAYLOAD_KEYS = frozenset({"service", "env"})
_STANDARD_RECORD_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}


def get_log_context() -> LogContext:
    return _LOG_CONTEXT.get()


@contextmanager
def log_context(**values: str | None) -> Iterator[LogContext]:
    """Bind context values until the block exits.

    Only the given names change; ``None`` clears a value. Unknown names raise
    ``TypeError``.
    """
    updated = dataclasses.replace(
        _LOG_CONTEXT.get(),
        **{name: _clean_optional_string(value) for name, value in values.items()},
    )
    token = _LOG_CONTEXT.set(updated)
    try:
        yield updated
    finally:
        _LOG_CONTEXT.reset(token)


class SamplingFilter(logging.Filter):
    """Keeps every WARNING and above, and a random share of the rest."""

    def __init__(self, sampling: float) -> None:
        super().__init__()
        self._sampling = sampling

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return random.random() < self._sampling


class JsonFormatter(logging.Formatter):
    def __init__(self, *, service: str, env: str) -> None:
        super().__init__()
        self._service = service
        self._env = env

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
            "env": self._env,
        }
        payload.update(_record_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


class TextFormatter(logging.Formatter):
    """``key=value`` pairs after the usual text line."""

    def __init__(self, *, service: str, env: str) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self._service = service
        self._env = env

    def format(self, record: logging.LogRecord) -> str:
        pairs = {"service": self._service, "env": self._env, **_record_fields(record)}
        suffix = " ".join(f"{key}={value}" for key, value in pairs.items())
        return f"{super().format(record)} {suffix}"


def bootstrap_logging(
    *,
    service: str,
    env: str | None = None,
    level: str = "INFO",
    log_format: str = "json",
    sampling: float | None = None,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Attach one formatted stream handler to ``logger`` (the root by default)."""
    resolved_env = env if env is not None else os.getenv("DOCSHELF_ENV", "development")
    target_logger = logger or logging.getLogger()

    if force:
        for handler in list(target_logger.handlers):
            target_logger.removeHandler(handler)

    formatter_class = TextFormatter if log_format == "text" else JsonFormatter
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter_class(service=service, env=resolved_env))
    if sampling is not None and sampling < 1.0:
        handler.addFilter(SamplingFilter(sampling))

    target_logger.addHandler(handler)
    target_logger.setLevel(level.upper())
    if target_logger is not logging.getLogger():
        target_logger.propagate = False
    return target_logger


def bootstrap_logging_from_app_settings(
    app_settings: AppSettings,
    *,
    env: str | None = None,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    return bootstrap_logging(
        service=app_settings.service.name,
        env=env,
        level=app_settings.logging.level,
        log_format=app_settings.logging.format,
        sampling=app_settings.logging.sampling,
        logger=logger,
        stream=stream,
        force=force,
    )


def _clean_optional_string(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    # Explicit ``extra`` values win over the bound context.
    fields: dict[str, Any] = get_log_context().fields()
    fields.update(
        (key, value)
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_KEYS
        and not key.startswith("_")
        and key not in _RESERVED_PAYLOAD_KEYS
    )
    return fields


def _format_timestamp(created: float) -> str:
    timestamp = datetime.fromtimestamp(created, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
