"""
Document client.

DocumentClient is the public facade: five operations (read, insert,
insert_with_id, where, exists) over named collections, written against the
BackendDriver primitives.

Every operation:
- validates its inputs and encodes/decodes payloads at the backend boundary
- runs under a deadline (``timeout`` argument, else config.default_timeout)
  and raises DeadlineExceededError when it fires
- is timed as ``docstore.<operation>`` and logged with the collection and
  document in context

The client holds no mutable state besides the backend handle, so one client
may be shared by any number of concurrent tasks.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from .backends.base import BackendDriver
from .backends.memory import InMemoryBackend
from .backends.mongo import MongoBackend
from .config import ClientConfig
from .core.codec import DocumentData, decode_document, encode_document
from .core.query import Operator, Predicate
from .exceptions import (
    BackendError,
    CollectionUnavailableError,
    DeadlineExceededError,
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    DocumentStoreError,
    WriteError,
)
from .observability import (
    MetricsCollector,
    document_context,
    get_logger,
    get_metrics_collector,
    log_operation,
    timed_operation,
)
from .transaction import ConditionalInsert
from .utils.validation import validate_document_id

logger = logging.getLogger(__name__)
contextual_logger = get_logger(__name__)

T = TypeVar("T")

# Outcomes callers branch on; logged below WARNING
_EXPECTED_ERRORS = (DocumentNotFoundError, DocumentAlreadyExistsError)


class DocumentClient:
    """
    Client for a schemaless document store.

    Example:
        async with DocumentClient(InMemoryBackend()) as client:
            await client.insert_with_id("users", "alice", {"status": "active"})
            active = await client.where("users", "status", "==", "active")
    """

    def __init__(
        self,
        backend: BackendDriver,
        *,
        config: ClientConfig | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Args:
            backend: Initialized backend driver; the client closes it on close()
            config: Client settings (timeouts, retry policy). Defaults to an
                in-memory config, whose connection fields are unused here.
            metrics: Collector for operation metrics (defaults to the
                process-wide collector)
        """
        self._backend = backend
        self._config = config or ClientConfig(backend="memory")
        self._metrics = metrics or get_metrics_collector()

    @property
    def backend(self) -> BackendDriver:
        return self._backend

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    async def __aenter__(self) -> "DocumentClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying backend. Idempotent."""
        await self._backend.close()

    async def ping(self, timeout: float | None = None) -> bool:
        """Return True if the backend is reachable."""
        try:
            return await asyncio.wait_for(self._backend.ping(), timeout=timeout)
        except asyncio.TimeoutError:
            return False

    # ------------------------------------------------------------------
    # Execution helpers
    # ------------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        collection: str,
        work: Callable[[float | None], Awaitable[T]],
        timeout: float | None,
        document_id: str | None = None,
    ) -> T:
        """Run ``work(deadline)`` with deadline, metrics, logging and log context."""
        if timeout is None:
            timeout = self._config.default_timeout
        with document_context(collection, document_id, operation=operation):
            async with timed_operation(
                f"docstore.{operation}", self._metrics, collection=collection
            ) as timer:
                try:
                    if timeout is None:
                        result = await work(None)
                    else:
                        deadline = asyncio.get_running_loop().time() + timeout
                        try:
                            result = await asyncio.wait_for(work(deadline), timeout=timeout)
                        except asyncio.TimeoutError as e:
                            raise DeadlineExceededError(
                                f"Operation '{operation}' exceeded its {timeout}s deadline",
                                context={"collection": collection, "operation": operation},
                            ) from e
                except DocumentStoreError as e:
                    level = logging.INFO if isinstance(e, _EXPECTED_ERRORS) else logging.WARNING
                    log_operation(
                        contextual_logger,
                        operation,
                        level=level,
                        success=False,
                        duration_ms=timer.elapsed_ms,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise
                log_operation(contextual_logger, operation, duration_ms=timer.elapsed_ms)
                return result

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def read(
        self, collection: str, document_id: str, *, timeout: float | None = None
    ) -> DocumentData:
        """
        Fetch exactly one document.

        Args:
            collection: Collection name
            document_id: Document ID
            timeout: Deadline in seconds (defaults to config.default_timeout)

        Returns:
            The document's fields

        Raises:
            CollectionUnavailableError: The collection does not resolve
            DocumentNotFoundError: No document has that ID
            DecodeError: The stored payload is not a mapping
            DeadlineExceededError: The deadline fired
        """
        validate_document_id(document_id)

        async def work(deadline: float | None) -> DocumentData:
            logger.debug(f"Reading collection {collection} for ID {document_id}")
            handle = await self._backend.resolve_collection(collection)
            snapshot = await self._backend.get_document(handle, document_id)
            if not snapshot.exists:
                raise DocumentNotFoundError(collection, document_id)
            return decode_document(snapshot.data, document_id)

        return await self._execute("read", collection, work, timeout, document_id)

    async def insert(
        self, collection: str, data: DocumentData, *, timeout: float | None = None
    ) -> str:
        """
        Store a document under a backend-generated ID.

        The collection is created if it does not exist. The document is
        visible to reads issued after this returns.

        Returns:
            The new document's ID

        Raises:
            InvalidDocumentError: The payload cannot be stored
            WriteError: The backend failed to store the document
        """
        encoded = encode_document(data)

        async def work(deadline: float | None) -> str:
            try:
                handle = await self._backend.resolve_collection(collection, create=True)
                return await self._backend.add_document(handle, encoded)
            except WriteError:
                raise
            except BackendError as e:
                raise WriteError(
                    f"Failed to insert document: {e.message}",
                    context={"collection": collection, **e.context},
                ) from e

        document_id = await self._execute("insert", collection, work, timeout)
        logger.debug(f"Inserted document {document_id} into collection {collection}")
        return document_id

    async def insert_with_id(
        self,
        collection: str,
        document_id: str,
        data: DocumentData,
        *,
        timeout: float | None = None,
    ) -> None:
        """
        Store a document at a caller-chosen ID, only if the ID is free.

        Concurrent calls for the same ID are serialized by the backend: at
        most one of them succeeds and the others raise
        DocumentAlreadyExistsError. An existing document is never
        overwritten.

        Raises:
            DocumentAlreadyExistsError: A document already has that ID
            TransactionError: The transaction aborted for another reason
            DeadlineExceededError: The deadline fired (nothing was committed)
            InvalidDocumentIDError: The ID is malformed
            InvalidDocumentError: The payload cannot be stored
        """
        validate_document_id(document_id)
        encoded = encode_document(data)

        async def work(deadline: float | None) -> None:
            handle = await self._backend.resolve_collection(collection, create=True)
            await ConditionalInsert(
                self._backend,
                handle,
                collection,
                document_id,
                encoded,
                max_attempts=self._config.transaction_max_attempts,
                retry_backoff_ms=self._config.transaction_retry_backoff_ms,
                deadline=deadline,
                metrics=self._metrics,
            ).run()

        await self._execute("insert_with_id", collection, work, timeout, document_id)

    async def where(
        self,
        collection: str,
        field: str,
        operator: Operator | str,
        value: Any,
        *,
        timeout: float | None = None,
    ) -> dict[str, DocumentData]:
        """
        Return every document whose ``field`` satisfies ``operator value``.

        Args:
            collection: Collection name
            field: Dotted field path (e.g. "address.city")
            operator: One of ==, !=, <, <=, >, >=, array-contains,
                array-contains-any, in, not-in (or an Operator)
            value: Operand; a list for in, not-in and array-contains-any

        Returns:
            Matching documents keyed by ID, in no particular order. An empty
            dict means nothing matched.

        Raises:
            QueryError: Unsupported operator or malformed predicate
            CollectionUnavailableError: The collection does not resolve
            DecodeError: A matching document could not be decoded
        """
        predicate = Predicate.build(field, operator, value)

        async def work(deadline: float | None) -> dict[str, DocumentData]:
            handle = await self._backend.resolve_collection(collection)
            snapshots = await self._backend.query_documents(handle, predicate)
            results = {
                snapshot.id: decode_document(snapshot.data, snapshot.id) for snapshot in snapshots
            }
            logger.debug(
                f"Query {predicate.describe()} on collection {collection} "
                f"matched {len(results)} document(s)"
            )
            return results

        return await self._execute("where", collection, work, timeout)

    async def exists(
        self, collection: str, document_id: str, *, timeout: float | None = None
    ) -> bool:
        """
        Check whether a document exists.

        Returns False both when the collection does not resolve and when the
        document is absent.

        Raises:
            InvalidDocumentIDError: The ID is malformed
            BackendError: A genuine backend failure
        """
        validate_document_id(document_id)

        async def work(deadline: float | None) -> bool:
            try:
                handle = await self._backend.resolve_collection(collection)
            except CollectionUnavailableError:
                return False
            snapshot = await self._backend.get_document(handle, document_id)
            return snapshot.exists

        return await self._execute("exists", collection, work, timeout, document_id)


def create_backend(config: ClientConfig) -> BackendDriver:
    """Build the backend named by ``config.backend`` (not yet initialized)."""
    if config.backend == "memory":
        return InMemoryBackend()
    return MongoBackend.from_config(config)


@asynccontextmanager
async def open_client(
    config: ClientConfig | None = None, *, metrics: MetricsCollector | None = None
) -> AsyncIterator[DocumentClient]:
    """
    Connect the configured backend and yield a DocumentClient.

    The backend is closed when the block exits.

    Usage:
        async with open_client(ClientConfig.from_env()) as client:
            doc = await client.read("users", "alice")

    Raises:
        InitializationError: The backend could not connect
    """
    config = config or ClientConfig.from_env()
    backend = create_backend(config)
    if isinstance(backend, MongoBackend):
        await backend.initialize()
    contextual_logger.info(
        "Document client opened", extra={"backend": backend.name}
    )
    client = DocumentClient(backend, config=config, metrics=metrics)
    try:
        yield client
    finally:
        await client.close()
        contextual_logger.info("Document client closed", extra={"backend": backend.name})
