"""
Abstract backend driver.

Defines the narrow set of primitives the DocumentClient calls. A backend
wraps one concrete document database (MongoDB via motor, or the in-process
store used in tests) and is responsible for transport, pooling and wire
encoding. Backends hand back raw payloads; decoding happens in the client.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.query import Predicate

R = TypeVar("R")


@dataclass(frozen=True)
class DocumentSnapshot:
    """
    Result of reading one document.

    ``data`` is the raw stored payload (not yet decoded) and is None when
    the document does not exist.
    """

    id: str
    data: Any = None
    exists: bool = False

    @classmethod
    def missing(cls, document_id: str) -> "DocumentSnapshot":
        return cls(id=document_id, data=None, exists=False)


class Transaction(ABC):
    """
    Primitives available inside BackendDriver.run_transaction().

    Reads and writes issued through a Transaction belong to one atomic unit
    of work: either all writes commit together or none do.
    """

    @abstractmethod
    async def get(self, document_id: str) -> DocumentSnapshot:
        """Read a document as of the transaction's snapshot."""

    @abstractmethod
    async def set(self, document_id: str, data: dict[str, Any]) -> None:
        """Write (create or replace) a document when the transaction commits."""


TransactionBody = Callable[[Transaction], Awaitable[R]]


class BackendDriver(ABC):
    """
    Storage primitives consumed by DocumentClient.

    Error contract:
        - resolve_collection raises CollectionUnavailableError
        - run_transaction raises TransactionConflict for retriable races,
          DeadlineExceededError if the deadline passes before commit, and
          re-raises whatever ``body`` raised after aborting
        - query_documents raises QueryError for predicates the backend
          rejects
        - every other backend failure is a BackendError
    """

    name: str = "backend"

    @abstractmethod
    async def resolve_collection(self, name: str, *, create: bool = False) -> Any:
        """
        Resolve a collection name to a backend handle.

        Args:
            name: Collection name
            create: Whether a missing collection may be created implicitly
                (writes) or must already exist (reads)
        """

    @abstractmethod
    async def get_document(self, handle: Any, document_id: str) -> DocumentSnapshot:
        """Read one document outside any transaction."""

    @abstractmethod
    async def add_document(self, handle: Any, data: dict[str, Any]) -> str:
        """Store a document under a backend-generated ID and return the ID."""

    @abstractmethod
    async def run_transaction(
        self,
        handle: Any,
        body: TransactionBody,
        *,
        deadline: float | None = None,
    ) -> Any:
        """
        Run ``body`` once inside a transaction and commit it.

        Args:
            handle: Collection handle the transaction operates on
            body: Coroutine function receiving a Transaction
            deadline: Event-loop time (loop.time()) after which the
                transaction must not commit
        """

    @abstractmethod
    async def query_documents(self, handle: Any, predicate: Predicate) -> list[DocumentSnapshot]:
        """Return every document in the collection matching ``predicate``."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the backend is reachable."""

    async def close(self) -> None:
        """Release backend resources. Idempotent."""
