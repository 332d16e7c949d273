"""Fixtures for integration tests against a real MongoDB."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from contextlib import suppress
from uuid import uuid4

import pytest

from docshelf.config.models import MongoDbSettings
from docshelf.documents import DocumentFacade


def _require_docker() -> None:
    docker = pytest.importorskip("docker")
    try:
        client = docker.from_env()
        client.ping()
    except Exception as exc:  # pragma: no cover - environment dependent
        pytest.skip(f"Docker is not available for integration tests: {exc}")


@pytest.fixture(scope="session")
def mongodb_uri() -> Iterator[str]:
    pytest.importorskip("motor")

    external_uri = os.getenv("DOCSHELF_MONGODB_URI")
    if external_uri:
        yield external_uri
        return

    _require_docker()
    DockerContainer = pytest.importorskip("testcontainers.core.container").DockerContainer
    image = os.getenv("DOCSHELF_MONGODB_IMAGE", "mongo:7")
    container = DockerContainer(image).with_exposed_ports(27017)

    try:
        container.start()
    except Exception as exc:  # pragma: no cover - environment dependent
        pytest.skip(f"Could not start MongoDB container: {exc}")

    try:
        host = container.get_container_host_ip()
        port = container.get_exposed_port(27017)
        yield f"mongodb://{host}:{port}"
    finally:
        with suppress(Exception):
            container.stop()


@pytest.fixture
def mongodb_settings(mongodb_uri: str) -> MongoDbSettings:
    return MongoDbSettings(
        uri=mongodb_uri,
        database=f"docshelf_it_{uuid4().hex[:12]}",
        server_selection_timeout_ms=5000,
        app_name="docshelf-integration",
    )


@pytest.fixture
async def facade(mongodb_settings: MongoDbSettings) -> AsyncIterator[DocumentFacade]:
    facade = await DocumentFacade.connect(mongodb_settings)
    try:
        yield facade
    finally:
        with suppress(Exception):
            await facade.drop_database()
        await facade.close()
