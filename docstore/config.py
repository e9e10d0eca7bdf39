"""
Configuration management for DOCSTORE.

ClientConfig can be built directly with keyword arguments or from
environment variables via ClientConfig.from_env(). Validation is done by
Pydantic; failures are reported as ConfigurationError.
"""

import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .constants import (
    DEFAULT_CONNECT_TIMEOUT_S,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
    DEFAULT_TRANSACTION_MAX_ATTEMPTS,
    DEFAULT_TRANSACTION_RETRY_BACKOFF_MS,
)
from .exceptions import ConfigurationError

# Environment variable -> field name
_ENV_FIELDS: dict[str, str] = {
    "DOCSTORE_BACKEND": "backend",
    "MONGO_URI": "mongo_uri",
    "DB_NAME": "db_name",
    "MONGO_MAX_POOL_SIZE": "max_pool_size",
    "MONGO_MIN_POOL_SIZE": "min_pool_size",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS": "server_selection_timeout_ms",
    "DOCSTORE_CONNECT_TIMEOUT_S": "connect_timeout_s",
    "DOCSTORE_DEFAULT_TIMEOUT_S": "default_timeout",
    "DOCSTORE_TRANSACTION_MAX_ATTEMPTS": "transaction_max_attempts",
    "DOCSTORE_TRANSACTION_RETRY_BACKOFF_MS": "transaction_retry_backoff_ms",
}


class ClientConfig(BaseModel):
    """
    Document client configuration.

    Example:
        # Using environment variables
        config = ClientConfig.from_env()

        # Or using direct parameters
        config = ClientConfig(mongo_uri="mongodb://localhost:27017", db_name="my_db")

        # In-memory backend for tests
        config = ClientConfig(backend="memory")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    backend: Literal["mongodb", "memory"] = Field(
        "mongodb", description="Backend driver to use"
    )
    mongo_uri: str = Field("", description="MongoDB connection URI")
    db_name: str = Field("", description="Database name")
    max_pool_size: int = Field(
        DEFAULT_MAX_POOL_SIZE, ge=1, description="Maximum connection pool size"
    )
    min_pool_size: int = Field(
        DEFAULT_MIN_POOL_SIZE, ge=0, description="Minimum connection pool size"
    )
    server_selection_timeout_ms: int = Field(
        DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
        ge=1000,
        description="Server selection timeout in milliseconds",
    )
    connect_timeout_s: float = Field(
        DEFAULT_CONNECT_TIMEOUT_S, gt=0, description="Timeout for the initial ping"
    )
    default_timeout: float | None = Field(
        None, gt=0, description="Deadline applied to operations that pass no timeout"
    )
    transaction_max_attempts: int = Field(
        DEFAULT_TRANSACTION_MAX_ATTEMPTS,
        ge=1,
        description="Attempts allowed for a conditional insert",
    )
    transaction_retry_backoff_ms: int = Field(
        DEFAULT_TRANSACTION_RETRY_BACKOFF_MS,
        ge=0,
        description="Base backoff between conditional insert attempts",
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> "ClientConfig":
        if self.min_pool_size > self.max_pool_size:
            raise ValueError(
                f"min_pool_size ({self.min_pool_size}) cannot be greater than "
                f"max_pool_size ({self.max_pool_size})"
            )
        if self.backend == "mongodb":
            if not self.mongo_uri:
                raise ValueError(
                    "mongo_uri is required (set MONGO_URI environment variable or pass directly)"
                )
            if not self.db_name:
                raise ValueError(
                    "db_name is required (set DB_NAME environment variable or pass directly)"
                )
        return self

    @classmethod
    def create(cls, **values: Any) -> "ClientConfig":
        """
        Build a config, converting validation failures to ConfigurationError.

        Raises:
            ConfigurationError: If any value is missing or invalid
        """
        try:
            return cls(**values)
        except ValidationError as e:
            first = e.errors()[0] if e.errors() else {}
            loc = first.get("loc") or ()
            raise ConfigurationError(
                f"Invalid document store configuration: {e}",
                config_key=str(loc[0]) if loc else None,
            ) from e

    @classmethod
    def from_env(cls, **overrides: Any) -> "ClientConfig":
        """
        Build a config from environment variables.

        Explicit keyword overrides win over the environment. Unset variables
        fall back to the field defaults.
        """
        values: dict[str, Any] = {}
        for env_name, field_name in _ENV_FIELDS.items():
            raw = os.getenv(env_name)
            if raw is not None and raw != "":
                values[field_name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.create(**values)
