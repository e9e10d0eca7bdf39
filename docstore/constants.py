"""
Constants for DOCSTORE.

This module contains all shared constants used across the codebase to avoid
magic numbers and improve maintainability.
"""

from typing import Final

# ============================================================================
# CONNECTION CONSTANTS
# ============================================================================

DEFAULT_MAX_POOL_SIZE: Final[int] = 50
"""Default maximum MongoDB connection pool size."""

DEFAULT_MIN_POOL_SIZE: Final[int] = 10
"""Default minimum MongoDB connection pool size."""

DEFAULT_SERVER_SELECTION_TIMEOUT_MS: Final[int] = 5000
"""Default server selection timeout in milliseconds."""

DEFAULT_MAX_IDLE_TIME_MS: Final[int] = 45000
"""Default maximum idle time before closing connections (milliseconds)."""

DEFAULT_CONNECT_TIMEOUT_S: Final[float] = 5.0
"""Time allowed for the initial connection ping (seconds)."""

APP_NAME: Final[str] = "DOCSTORE"
"""Application name reported to the MongoDB server."""

# ============================================================================
# TRANSACTION CONSTANTS
# ============================================================================

DEFAULT_TRANSACTION_MAX_ATTEMPTS: Final[int] = 5
"""Attempts allowed for a conditional insert before giving up on conflicts."""

DEFAULT_TRANSACTION_RETRY_BACKOFF_MS: Final[int] = 50
"""Base backoff between conditional insert attempts (milliseconds)."""

MAX_COMMIT_RETRIES: Final[int] = 3
"""Commit retries when the server reports an unknown commit result."""

# ============================================================================
# VALIDATION CONSTANTS
# ============================================================================

MAX_COLLECTION_NAME_LENGTH: Final[int] = 255
"""Maximum length for collection names."""

MAX_DOCUMENT_ID_LENGTH: Final[int] = 1024
"""Maximum length for document IDs."""

RESERVED_COLLECTION_PREFIXES: Final[tuple[str, ...]] = ("system.",)
"""Collection name prefixes reserved by the server."""

ID_FIELD: Final[str] = "_id"
"""Field the backend uses to store the document ID."""

MAX_DISJUNCTION_VALUES: Final[int] = 30
"""Maximum number of values accepted by in / not-in / array-contains-any."""

MIN_INT64: Final[int] = -(2**63)
"""Smallest integer a document may hold (BSON int64)."""

MAX_INT64: Final[int] = 2**63 - 1
"""Largest integer a document may hold (BSON int64)."""

# ============================================================================
# HEALTH CONSTANTS
# ============================================================================

HEALTH_DEGRADED_LATENCY_MS: Final[float] = 500.0
"""Ping latency above which the backend is reported as degraded."""

# ============================================================================
# METRICS CONSTANTS
# ============================================================================

MAX_METRICS: Final[int] = 10000
"""Maximum number of metric keys kept before evicting the oldest."""
