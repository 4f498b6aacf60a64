"""Root conftest.py for the Civitas test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from loguru import logger

from src.api.server import Server
from src.core.config import LogConfig, ServerConfig, Settings, get_settings
from src.core.error_context import _get_sensitive_fields
from src.infrastructure.storage import Storage
from tests.fakes import FakeIdentity, InMemoryDatabase


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear cached settings before and after each test."""
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings for a local test server on an ephemeral port."""
    return Settings(
        environment="development",
        server=ServerConfig(host="127.0.0.1", port=0, shutdown_grace_seconds=1.0),
        log_config=LogConfig(log_level="DEBUG", log_formatter_type="console"),
    )


@pytest.fixture
def log_records() -> Generator[list[dict[str, Any]]]:
    """Capture every Loguru record emitted during the test.

    Yields:
        list[dict[str, Any]]: Loguru record dicts, in emission order.
    """
    records: list[dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: records.append(message.record), level="DEBUG"
    )
    yield records
    logger.remove(handler_id)


@pytest.fixture
def database() -> InMemoryDatabase:
    """In-memory persistence handle."""
    return InMemoryDatabase()


@pytest.fixture
def identity() -> FakeIdentity:
    """Identity client accepting only the test token."""
    return FakeIdentity()


@pytest.fixture
def storage(mocker: Any) -> Storage:
    """Storage with a mocked S3 client."""
    return Storage(client=mocker.MagicMock(name="s3"), bucket="civitas-test")


@pytest.fixture
def server(
    settings: Settings,
    database: InMemoryDatabase,
    identity: FakeIdentity,
    storage: Storage,
) -> Server:
    """A fully composed server that has not started listening."""
    return Server(settings, logger, database, identity, storage)


@pytest.fixture
async def client(server: Server) -> AsyncGenerator[AsyncClient]:
    """HTTP client talking to the server's application in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=server.app), base_url="http://test"
    ) as ac:
        yield ac

