"""
DOCSTORE - Document Store Client

Async client for schemaless document stores: reads, inserts, conditional
inserts, predicate queries and existence checks over named collections,
backed by MongoDB (motor) or an in-process store.
"""

# Backends
from .backends import BackendDriver, InMemoryBackend, MongoBackend
# Client
from .client import DocumentClient, create_backend, open_client
# Configuration
from .config import ClientConfig
# Queries
from .core import Operator, Predicate
# Errors
from .exceptions import (BackendError, CollectionUnavailableError, DecodeError,
                         DeadlineExceededError, DocumentAlreadyExistsError,
                         DocumentNotFoundError, DocumentStoreError, QueryError,
                         TransactionError, WriteError)

__version__ = "0.1.0"

__all__ = [
    # Client
    "DocumentClient",
    "open_client",
    "create_backend",
    "ClientConfig",
    # Backends
    "BackendDriver",
    "InMemoryBackend",
    "MongoBackend",
    # Queries
    "Operator",
    "Predicate",
    # Errors
    "DocumentStoreError",
    "CollectionUnavailableError",
    "DocumentNotFoundError",
    "DocumentAlreadyExistsError",
    "DecodeError",
    "QueryError",
    "TransactionError",
    "DeadlineExceededError",
    "WriteError",
    "BackendError",
]
