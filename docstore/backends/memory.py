"""
In-memory backend.

A process-local document store implementing the full BackendDriver
contract, used by the test-suite and for embedding the client without a
database server.

Transactions use optimistic concurrency control: every stored document
carries a version number, a transaction records the version of each key it
touches, buffers its writes, and at commit time re-checks those versions
under the store lock. A version that moved means another transaction
committed first, and the commit fails with TransactionConflict.
"""

import asyncio
import copy
import logging
import threading
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..core.query import Predicate
from ..exceptions import (
    BackendError,
    CollectionUnavailableError,
    DeadlineExceededError,
    TransactionConflict,
)
from ..utils.validation import validate_collection_name
from .base import BackendDriver, DocumentSnapshot, Transaction, TransactionBody

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemoryCollectionHandle:
    """Handle returned by InMemoryBackend.resolve_collection()."""

    name: str


@dataclass
class _StoredDocument:
    version: int
    data: Any


class _MemoryTransaction(Transaction):
    """Buffers writes and tracks the versions it observed."""

    def __init__(self, backend: "InMemoryBackend", handle: MemoryCollectionHandle):
        self._backend = backend
        self._handle = handle
        self.observed_versions: dict[str, int] = {}
        self.writes: dict[str, Any] = {}

    def _observe(self, document_id: str) -> _StoredDocument | None:
        stored = self._backend._lookup(self._handle.name, document_id)
        version = stored.version if stored else 0
        seen = self.observed_versions.setdefault(document_id, version)
        if seen != version:
            raise TransactionConflict(
                "Document changed during transaction",
                context={"collection": self._handle.name, "document_id": document_id},
            )
        return stored

    async def get(self, document_id: str) -> DocumentSnapshot:
        await self._backend._io_wait()
        if document_id in self.writes:
            return DocumentSnapshot(
                id=document_id, data=copy.deepcopy(self.writes[document_id]), exists=True
            )
        with self._backend._lock:
            self._backend._check_open()
            stored = self._observe(document_id)
            if stored is None:
                return DocumentSnapshot.missing(document_id)
            return DocumentSnapshot(id=document_id, data=copy.deepcopy(stored.data), exists=True)

    async def set(self, document_id: str, data: dict[str, Any]) -> None:
        with self._backend._lock:
            self._backend._check_open()
            self._observe(document_id)
        self.writes[document_id] = copy.deepcopy(data)


class InMemoryBackend(BackendDriver):
    """
    Thread-safe in-process backend.

    Args:
        latency: Seconds every primitive waits before touching the store,
            simulating a network round trip. The default of 0 still yields
            to the event loop so concurrent tasks interleave.
        collections: Collection names to create up front

    Example:
        backend = InMemoryBackend(collections=["users"])
        async with DocumentClient(backend) as client:
            await client.insert_with_id("users", "alice", {"name": "Alice"})
    """

    name = "memory"

    def __init__(self, *, latency: float = 0.0, collections: Iterable[str] = ()):
        self._lock = threading.RLock()
        self._collections: dict[str, dict[str, _StoredDocument]] = {}
        self._latency = latency
        self._closed = False
        for name in collections:
            self.create_collection(name)

    # ------------------------------------------------------------------
    # Direct store management (setup helpers, not part of BackendDriver)
    # ------------------------------------------------------------------

    def create_collection(self, name: str) -> MemoryCollectionHandle:
        """Create an empty collection if it does not exist yet."""
        validate_collection_name(name)
        with self._lock:
            self._collections.setdefault(name, {})
        return MemoryCollectionHandle(name)

    def drop_collection(self, name: str) -> None:
        with self._lock:
            self._collections.pop(name, None)

    def collection_names(self) -> list[str]:
        with self._lock:
            return sorted(self._collections)

    def store_raw(self, collection: str, document_id: str, raw: Any) -> None:
        """
        Store a payload as-is, bypassing the codec.

        Used to seed data written by other producers (or corrupt data).
        """
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            previous = docs.get(document_id)
            docs[document_id] = _StoredDocument(
                version=(previous.version if previous else 0) + 1, data=copy.deepcopy(raw)
            )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _io_wait(self) -> None:
        await asyncio.sleep(self._latency)

    def _check_open(self) -> None:
        if self._closed:
            raise BackendError("In-memory backend is closed")

    def _lookup(self, collection: str, document_id: str) -> _StoredDocument | None:
        return self._collections.get(collection, {}).get(document_id)

    def _commit(
        self,
        tx: _MemoryTransaction,
        handle: MemoryCollectionHandle,
        deadline: float | None,
    ) -> None:
        with self._lock:
            self._check_open()
            if deadline is not None and asyncio.get_running_loop().time() >= deadline:
                raise DeadlineExceededError(
                    "Deadline exceeded before commit", context={"collection": handle.name}
                )
            for document_id, version in tx.observed_versions.items():
                stored = self._lookup(handle.name, document_id)
                current = stored.version if stored else 0
                if current != version:
                    raise TransactionConflict(
                        "Transaction conflict: document was modified concurrently",
                        context={"collection": handle.name, "document_id": document_id},
                    )
            if not tx.writes:
                return
            docs = self._collections.setdefault(handle.name, {})
            for document_id, data in tx.writes.items():
                previous = docs.get(document_id)
                docs[document_id] = _StoredDocument(
                    version=(previous.version if previous else 0) + 1, data=data
                )

    # ------------------------------------------------------------------
    # BackendDriver
    # ------------------------------------------------------------------

    async def resolve_collection(
        self, name: str, *, create: bool = False
    ) -> MemoryCollectionHandle:
        validate_collection_name(name)
        await self._io_wait()
        with self._lock:
            self._check_open()
            if not create and name not in self._collections:
                raise CollectionUnavailableError(name)
        return MemoryCollectionHandle(name)

    async def get_document(
        self, handle: MemoryCollectionHandle, document_id: str
    ) -> DocumentSnapshot:
        await self._io_wait()
        with self._lock:
            self._check_open()
            stored = self._lookup(handle.name, document_id)
            if stored is None:
                return DocumentSnapshot.missing(document_id)
            return DocumentSnapshot(id=document_id, data=copy.deepcopy(stored.data), exists=True)

    async def add_document(self, handle: MemoryCollectionHandle, data: dict[str, Any]) -> str:
        await self._io_wait()
        with self._lock:
            self._check_open()
            docs = self._collections.setdefault(handle.name, {})
            document_id = uuid.uuid4().hex
            while document_id in docs:
                document_id = uuid.uuid4().hex
            docs[document_id] = _StoredDocument(version=1, data=copy.deepcopy(data))
        logger.debug(f"Added document {document_id} to in-memory collection '{handle.name}'")
        return document_id

    async def run_transaction(
        self,
        handle: MemoryCollectionHandle,
        body: TransactionBody,
        *,
        deadline: float | None = None,
    ) -> Any:
        tx = _MemoryTransaction(self, handle)
        # An exception from body discards the buffered writes (abort).
        result = await body(tx)
        await self._io_wait()
        self._commit(tx, handle, deadline)
        return result

    async def query_documents(
        self, handle: MemoryCollectionHandle, predicate: Predicate
    ) -> list[DocumentSnapshot]:
        await self._io_wait()
        with self._lock:
            self._check_open()
            docs = list(self._collections.get(handle.name, {}).items())
            return [
                DocumentSnapshot(id=document_id, data=copy.deepcopy(stored.data), exists=True)
                for document_id, stored in docs
                if predicate.matches(stored.data)
            ]

    async def ping(self) -> bool:
        return not self._closed

    async def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._collections.clear()
        logger.debug("In-memory backend closed")
