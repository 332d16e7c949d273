"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from docshelf.config import AppSettings
from docshelf.observability.logging import (
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    get_log_context,
    log_context,
)
from tests.fakes import make_facade


def test_json_logs_include_required_fields() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.required_fields")

    bootstrap_logging(
        service="orders-api",
        env="production",
        level="INFO",
        log_format="json",
        logger=logger,
        stream=stream,
    )

    with log_context(request_id="req-123", trace_id="4bf92f3577b34da6a3ce929d0e0e4736"):
        logger.info("hello", extra={"collection": "orders"})

    payload = json.loads(stream.getvalue().strip())

    assert payload["service"] == "orders-api"
    assert payload["env"] == "production"
    assert payload["message"] == "hello"
    assert payload["trace_id"] == "4bf92f3577b34da6a3ce929d0e0e4736"
    assert payload["request_id"] == "req-123"
    assert payload["collection"] == "orders"
    assert payload["timestamp"].endswith("Z")


def test_log_context_restores_previous_values() -> None:
    with log_context(request_id="outer", collection="orders"):
        with log_context(request_id="  ", trace_id="t-1"):
            inner = get_log_context()
        outer = get_log_context()

    assert inner.request_id is None
    assert inner.trace_id == "t-1"
    assert inner.collection == "orders"
    assert outer.request_id == "outer"
    assert outer.trace_id is None
    assert get_log_context().fields() == {}


def test_log_context_rejects_unknown_names() -> None:
    with pytest.raises(TypeError):
        with log_context(tenant="acme"):
            pass


def test_sampling_zero_drops_info_but_keeps_warning() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.sampling")

    bootstrap_logging(
        service="orders-api",
        env="staging",
        level="INFO",
        log_format="json",
        sampling=0.0,
        logger=logger,
        stream=stream,
    )

    logger.info("dropped")
    logger.warning("kept")

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["message"] for line in lines] == ["kept"]


def test_text_format_appends_context_and_extras() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.text")

    bootstrap_logging(
        service="orders-api",
        env="development",
        log_format="text",
        logger=logger,
        stream=stream,
    )
    logger.info("Document purged", extra={"identity": "doc-1"})

    line = stream.getvalue().strip()
    assert "INFO tests.logging.text Document purged" in line
    assert "service=orders-api env=development" in line
    assert "request_id" not in line
    assert line.endswith("identity=doc-1")


def test_env_defaults_to_environment_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCSHELF_ENV", "qa")
    stream = StringIO()
    logger = logging.getLogger("tests.logging.env")

    bootstrap_logging(service="orders-api", logger=logger, stream=stream)
    logger.info("hello")

    assert json.loads(stream.getvalue())["env"] == "qa"


def test_bootstrap_from_app_settings() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.app_settings")
    settings = AppSettings.model_validate(
        {
            "service": {"name": "orders-api"},
            "logging": {"level": "WARNING", "format": "json"},
            "mongodb": {"database": "shop", "uri": "mongodb://localhost"},
        }
    )

    bootstrap_logging_from_app_settings(settings, env="test", logger=logger, stream=stream)
    logger.info("skipped")
    logger.error("reported")

    payload = json.loads(stream.getvalue().strip())
    assert payload["message"] == "reported"
    assert payload["service"] == "orders-api"
    assert logger.propagate is False


async def test_facade_logs_lifecycle_events(caplog: pytest.LogCaptureFixture) -> None:
    facade = make_facade()
    caplog.set_level(logging.DEBUG, logger="docshelf.documents.facade")

    identity = await facade.create("orders", "alice", {"total": 1})
    await facade.delete("orders", identity)
    await facade.purge("orders", identity)

    created = next(r for r in caplog.records if r.getMessage() == "Document created")
    purged = next(r for r in caplog.records if r.getMessage() == "Document purged")
    assert created.owner == "alice"
    assert purged.levelno == logging.INFO
    assert purged.identity == identity


async def test_facade_verbs_bind_collection_and_operation() -> None:
    stream = StringIO()
    logger = logging.getLogger("docshelf.documents.facade")
    bootstrap_logging(
        service="orders-api", env="test", level="DEBUG", logger=logger, stream=stream
    )
    facade = make_facade()

    try:
        with log_context(request_id="req-9"):
            identity = await facade.create("orders", "alice", {"total": 1})
            await facade.delete("orders", identity)
    finally:
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    created = next(line for line in lines if line["message"] == "Document created")
    updated = next(line for line in lines if line["message"] == "Documents updated")
    assert created["collection"] == "orders"
    assert created["operation"] == "create"
    assert created["request_id"] == "req-9"
    assert created["identity"] == identity
    assert updated["operation"] == "delete"
    assert updated["count"] == 1
    assert get_log_context().collection is None
