"""
Conditional insert (insert-if-absent).

ConditionalInsert runs the read-then-write protocol inside a backend
transaction:

    STARTED -> READING -> ABSENT -> WRITING -> COMMITTED
                       -> PRESENT -> ABORTED (DocumentAlreadyExistsError)
                       -> READ_FAILED -> ABORTED (TransactionError)

The backend guarantees that the read and the write are serialized against
any other transaction touching the same key, so two concurrent inserts of
the same ID cannot both reach COMMITTED. When a backend reports a retriable
conflict the whole protocol is re-run, with backoff, up to max_attempts.
"""

import asyncio
import logging
import random
import time
from enum import Enum
from typing import Any

from .backends.base import BackendDriver, Transaction
from .constants import DEFAULT_TRANSACTION_MAX_ATTEMPTS, DEFAULT_TRANSACTION_RETRY_BACKOFF_MS
from .core.codec import DocumentData
from .exceptions import (
    BackendError,
    DeadlineExceededError,
    DocumentAlreadyExistsError,
    TransactionConflict,
    TransactionError,
)
from .observability import MetricsCollector, get_logger, get_metrics_collector

logger = logging.getLogger(__name__)
contextual_logger = get_logger(__name__)

RETRY_METRIC = "docstore.transaction.retry"


class InsertState(str, Enum):
    """States of a conditional insert attempt."""

    STARTED = "started"
    READING = "reading"
    ABSENT = "absent"
    WRITING = "writing"
    COMMITTED = "committed"
    PRESENT = "present"
    READ_FAILED = "read_failed"
    ABORTED = "aborted"


class ConditionalInsert:
    """
    One insert-if-absent request, including its retries.

    Args:
        backend: Backend to run the transaction on
        handle: Collection handle from backend.resolve_collection()
        collection: Collection name (for errors and logging)
        document_id: Caller-chosen document ID
        data: Encoded document payload
        max_attempts: Attempts allowed before conflicts surface as
            TransactionError
        retry_backoff_ms: Base backoff; attempt n waits roughly n times this
        deadline: Event-loop time after which nothing may commit
        metrics: Collector receiving retry counts

    The states visited are recorded in ``history`` (all attempts), and the
    current one is ``state``.
    """

    def __init__(
        self,
        backend: BackendDriver,
        handle: Any,
        collection: str,
        document_id: str,
        data: DocumentData,
        *,
        max_attempts: int = DEFAULT_TRANSACTION_MAX_ATTEMPTS,
        retry_backoff_ms: int = DEFAULT_TRANSACTION_RETRY_BACKOFF_MS,
        deadline: float | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.handle = handle
        self.collection = collection
        self.document_id = document_id
        self.data = data
        self.max_attempts = max_attempts
        self.retry_backoff_ms = retry_backoff_ms
        self.deadline = deadline
        self._metrics = metrics
        self.attempts = 0
        self.history: list[InsertState] = []

    @property
    def state(self) -> InsertState | None:
        return self.history[-1] if self.history else None

    def _transition(self, state: InsertState) -> None:
        self.history.append(state)

    def _context(self) -> dict[str, Any]:
        return {"collection": self.collection, "document_id": self.document_id}

    async def _body(self, tx: Transaction) -> None:
        self._transition(InsertState.READING)
        try:
            snapshot = await tx.get(self.document_id)
        except TransactionConflict:
            raise
        except BackendError as e:
            self._transition(InsertState.READ_FAILED)
            raise TransactionError(
                f"Transaction read failed: {e.message}",
                attempts=self.attempts,
                context=self._context(),
            ) from e

        if snapshot.exists:
            self._transition(InsertState.PRESENT)
            raise DocumentAlreadyExistsError(self.collection, self.document_id)

        self._transition(InsertState.ABSENT)
        self._transition(InsertState.WRITING)
        await tx.set(self.document_id, self.data)

    async def _backoff(self, attempt: int) -> None:
        delay = self.retry_backoff_ms * attempt / 1000
        if delay <= 0:
            return
        await asyncio.sleep(delay * random.uniform(0.5, 1.0))

    async def run(self) -> None:
        """
        Execute the insert.

        Raises:
            DocumentAlreadyExistsError: The ID is taken
            TransactionError: The transaction aborted for another reason,
                including running out of attempts on conflicts
            DeadlineExceededError: The deadline passed before commit
        """
        metrics = self._metrics or get_metrics_collector()
        last_conflict: TransactionConflict | None = None

        for attempt in range(1, self.max_attempts + 1):
            self.attempts = attempt
            self._transition(InsertState.STARTED)
            start = time.perf_counter()
            try:
                await self.backend.run_transaction(self.handle, self._body, deadline=self.deadline)
            except TransactionConflict as e:
                last_conflict = e
                self._transition(InsertState.ABORTED)
                metrics.record_operation(
                    RETRY_METRIC,
                    (time.perf_counter() - start) * 1000,
                    success=False,
                    collection=self.collection,
                )
                contextual_logger.info(
                    "Conditional insert conflicted, retrying",
                    extra={**self._context(), "attempt": attempt, "error": str(e)},
                )
                if attempt < self.max_attempts:
                    await self._backoff(attempt)
                continue
            except (DocumentAlreadyExistsError, TransactionError, DeadlineExceededError):
                self._transition(InsertState.ABORTED)
                raise
            except BackendError as e:
                self._transition(InsertState.ABORTED)
                raise TransactionError(
                    f"Transaction failed: {e.message}",
                    attempts=attempt,
                    context={**self._context(), **e.context},
                ) from e
            except BaseException:
                self._transition(InsertState.ABORTED)
                raise

            self._transition(InsertState.COMMITTED)
            if attempt > 1:
                logger.debug(
                    f"Conditional insert of '{self.document_id}' committed "
                    f"after {attempt} attempts"
                )
            return

        raise TransactionError(
            f"Transaction gave up after {self.max_attempts} conflicting attempts",
            attempts=self.max_attempts,
            context=self._context(),
        ) from last_conflict
