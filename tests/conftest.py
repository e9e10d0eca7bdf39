"""
Pytest configuration and shared fixtures for DOCSTORE tests.

This module provides:
- In-memory backend and client fixtures
- Mock motor client fixtures
- Test data factories
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import pytest

from docstore.backends.memory import InMemoryBackend
from docstore.client import DocumentClient
from docstore.config import ClientConfig
from docstore.observability.logging import clear_correlation_id
from docstore.observability.metrics import MetricsCollector


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: tests that need a real MongoDB replica set"
    )


@pytest.fixture(autouse=True)
def clean_logging_context():
    """Make sure no correlation ID leaks between tests."""
    yield
    clear_correlation_id()


# ============================================================================
# IN-MEMORY FIXTURES
# ============================================================================


@pytest.fixture
def metrics_collector() -> MetricsCollector:
    """Provide an isolated metrics collector."""
    return MetricsCollector()


@pytest.fixture
def memory_config() -> ClientConfig:
    """Provide a client config for the in-memory backend with fast retries."""
    return ClientConfig(backend="memory", transaction_retry_backoff_ms=1)


@pytest.fixture
def memory_backend() -> InMemoryBackend:
    """Create an in-memory backend with a 'users' collection."""
    return InMemoryBackend(collections=["users"])


@pytest.fixture
def client(
    memory_backend: InMemoryBackend,
    memory_config: ClientConfig,
    metrics_collector: MetricsCollector,
) -> DocumentClient:
    """Create a DocumentClient over the in-memory backend."""
    return DocumentClient(memory_backend, config=memory_config, metrics=metrics_collector)


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


@pytest.fixture
def mongo_config() -> Dict[str, Any]:
    """Provide default configuration for ConnectionManager."""
    return {
        "mongo_uri": "mongodb://localhost:27017",
        "db_name": "test_db",
        "max_pool_size": 10,
        "min_pool_size": 1,
    }


@pytest.fixture
def mock_mongo_collection() -> MagicMock:
    """Create a mock motor collection."""
    collection = MagicMock()
    collection.name = "users"
    collection.find_one = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.replace_one = AsyncMock(return_value=MagicMock(upserted_id="test_id"))
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[])
    collection.find = MagicMock(return_value=cursor)
    return collection


@pytest.fixture
def mock_mongo_session() -> MagicMock:
    """Create a mock client session usable as an async context manager."""
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    session.start_transaction = MagicMock()
    session.commit_transaction = AsyncMock()
    session.abort_transaction = AsyncMock()
    session.in_transaction = True
    return session


@pytest.fixture
def mock_mongo_database(mock_mongo_collection: MagicMock) -> MagicMock:
    """Create a mock motor database whose every collection is mock_mongo_collection."""
    db = MagicMock()
    db.name = "test_db"
    db.list_collection_names = AsyncMock(return_value=["users"])
    db.__getitem__ = MagicMock(return_value=mock_mongo_collection)
    return db


@pytest.fixture
def mock_mongo_client(mock_mongo_database: MagicMock, mock_mongo_session: MagicMock) -> MagicMock:
    """Create a mock motor client."""
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__ = MagicMock(return_value=mock_mongo_database)
    client.start_session = AsyncMock(return_value=mock_mongo_session)
    client.close = MagicMock()
    return client


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


@pytest.fixture
def sample_users() -> Dict[str, Dict[str, Any]]:
    """Provide a small set of user documents keyed by ID."""
    return {
        "alice": {"name": "Alice", "status": "active", "age": 34, "tags": ["admin", "dev"]},
        "bob": {"name": "Bob", "status": "inactive", "age": 27, "tags": ["dev"]},
        "carol": {"name": "Carol", "status": "active", "age": 41, "tags": []},
        "dave": {"name": "Dave", "status": None, "age": 19},
    }
