"""
Backend drivers.

A backend supplies the storage primitives the DocumentClient is written
against: collection resolution, single-document reads, ID-generating adds,
transactions and predicate queries.
"""

from .base import BackendDriver, DocumentSnapshot, Transaction, TransactionBody
from .connection import ConnectionManager
from .memory import InMemoryBackend, MemoryCollectionHandle
from .mongo import MongoBackend

__all__ = [
    "BackendDriver",
    "DocumentSnapshot",
    "Transaction",
    "TransactionBody",
    "ConnectionManager",
    "InMemoryBackend",
    "MemoryCollectionHandle",
    "MongoBackend",
]
