"""
Unit tests for ClientConfig.
"""

import pytest
from pydantic import ValidationError

from docstore.config import ClientConfig
from docstore.constants import (DEFAULT_CONNECT_TIMEOUT_S,
                                DEFAULT_TRANSACTION_MAX_ATTEMPTS)
from docstore.exceptions import ConfigurationError

ENV_VARS = [
    "DOCSTORE_BACKEND",
    "MONGO_URI",
    "DB_NAME",
    "MONGO_MAX_POOL_SIZE",
    "MONGO_MIN_POOL_SIZE",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    "DOCSTORE_CONNECT_TIMEOUT_S",
    "DOCSTORE_DEFAULT_TIMEOUT_S",
    "DOCSTORE_TRANSACTION_MAX_ATTEMPTS",
    "DOCSTORE_TRANSACTION_RETRY_BACKOFF_MS",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestClientConfig:
    """Test direct construction."""

    def test_defaults(self):
        config = ClientConfig(mongo_uri="mongodb://localhost:27017", db_name="app")

        assert config.backend == "mongodb"
        assert config.connect_timeout_s == DEFAULT_CONNECT_TIMEOUT_S
        assert config.transaction_max_attempts == DEFAULT_TRANSACTION_MAX_ATTEMPTS
        assert config.default_timeout is None

    def test_memory_backend_needs_no_uri(self):
        assert ClientConfig(backend="memory").mongo_uri == ""

    def test_frozen(self):
        config = ClientConfig(backend="memory")
        with pytest.raises(ValidationError):
            config.default_timeout = 3

    @pytest.mark.parametrize(
        "values, key",
        [
            ({"backend": "mongodb", "db_name": "app"}, None),
            ({"backend": "mongodb", "mongo_uri": "mongodb://x"}, None),
            ({"backend": "memory", "max_pool_size": 0}, "max_pool_size"),
            ({"backend": "memory", "min_pool_size": 20, "max_pool_size": 10}, None),
            ({"backend": "memory", "default_timeout": 0}, "default_timeout"),
            ({"backend": "memory", "transaction_max_attempts": 0}, "transaction_max_attempts"),
            ({"backend": "sqlite"}, "backend"),
            ({"backend": "memory", "unknown": 1}, "unknown"),
        ],
    )
    def test_create_rejects_invalid(self, values, key):
        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig.create(**values)
        if key is not None:
            assert exc_info.value.config_key == key


class TestFromEnv:
    """Test building a config from environment variables."""

    def test_reads_environment(self, clean_env):
        clean_env.setenv("MONGO_URI", "mongodb://db:27017")
        clean_env.setenv("DB_NAME", "app")
        clean_env.setenv("MONGO_MAX_POOL_SIZE", "25")
        clean_env.setenv("DOCSTORE_DEFAULT_TIMEOUT_S", "2.5")
        clean_env.setenv("DOCSTORE_TRANSACTION_MAX_ATTEMPTS", "7")

        config = ClientConfig.from_env()

        assert config.mongo_uri == "mongodb://db:27017"
        assert config.db_name == "app"
        assert config.max_pool_size == 25
        assert config.default_timeout == 2.5
        assert config.transaction_max_attempts == 7

    def test_overrides_win(self, clean_env):
        clean_env.setenv("DOCSTORE_BACKEND", "mongodb")

        config = ClientConfig.from_env(backend="memory", db_name=None)

        assert config.backend == "memory"

    def test_missing_uri(self, clean_env):
        clean_env.setenv("DB_NAME", "app")

        with pytest.raises(ConfigurationError, match="mongo_uri is required"):
            ClientConfig.from_env()

    def test_invalid_number(self, clean_env):
        clean_env.setenv("DOCSTORE_BACKEND", "memory")
        clean_env.setenv("MONGO_MAX_POOL_SIZE", "lots")

        with pytest.raises(ConfigurationError) as exc_info:
            ClientConfig.from_env()

        assert exc_info.value.config_key == "max_pool_size"
