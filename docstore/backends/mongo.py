"""
MongoDB backend.

Implements BackendDriver on top of motor. Documents are stored with their
ID in ``_id`` (as a string); generated IDs are ObjectId hex strings.

Transactions are MongoDB multi-document transactions and therefore need a
replica set or sharded cluster. They run with snapshot read concern and
majority write concern, so two transactions that read a missing ``_id`` and
then write it cannot both commit: the loser gets a WriteConflict, carrying
the TransientTransactionError label, which is reported as
TransactionConflict.
"""

import asyncio
import logging
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorCollection
from pymongo import ReadPreference
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from ..config import ClientConfig
from ..constants import ID_FIELD, MAX_COMMIT_RETRIES
from ..core.query import Predicate
from ..exceptions import (
    BackendError,
    CollectionUnavailableError,
    DeadlineExceededError,
    InitializationError,
    QueryError,
    TransactionConflict,
)
from ..utils.validation import validate_collection_name
from .base import BackendDriver, DocumentSnapshot, Transaction, TransactionBody
from .connection import ConnectionManager

logger = logging.getLogger(__name__)

TRANSIENT_TRANSACTION_ERROR = "TransientTransactionError"
UNKNOWN_COMMIT_RESULT = "UnknownTransactionCommitResult"

# Server error codes that mean the filter itself was rejected
_QUERY_ERROR_CODES = frozenset({2, 9})  # BadValue, FailedToParse


def _id_filter(document_id: str) -> dict[str, Any]:
    """Match a string ID, or the equivalent ObjectId for documents written elsewhere."""
    if ObjectId.is_valid(document_id):
        return {ID_FIELD: {"$in": [document_id, ObjectId(document_id)]}}
    return {ID_FIELD: document_id}


def translate_error(error: PyMongoError, **context: Any) -> BackendError:
    """
    Map a pymongo error to the backend error taxonomy.

    Transient transaction errors and duplicate keys (two writers racing on
    the same ``_id``) become TransactionConflict; everything else is a
    BackendError.
    """
    context = {k: v for k, v in context.items() if v is not None}
    context["error_type"] = type(error).__name__
    if error.has_error_label(TRANSIENT_TRANSACTION_ERROR) or isinstance(
        error, DuplicateKeyError
    ):
        return TransactionConflict(f"Transaction conflict: {error}", context=context)
    return BackendError(f"MongoDB operation failed: {error}", context=context)


class _MongoTransaction(Transaction):
    """Transaction primitives bound to a motor session."""

    def __init__(self, collection: AsyncIOMotorCollection, session: AsyncIOMotorClientSession):
        self._collection = collection
        self._session = session

    async def get(self, document_id: str) -> DocumentSnapshot:
        try:
            raw = await self._collection.find_one(_id_filter(document_id), session=self._session)
        except PyMongoError as e:
            raise translate_error(
                e, collection=self._collection.name, document_id=document_id
            ) from e
        if raw is None:
            return DocumentSnapshot.missing(document_id)
        return DocumentSnapshot(id=document_id, data=raw, exists=True)

    async def set(self, document_id: str, data: dict[str, Any]) -> None:
        try:
            await self._collection.replace_one(
                {ID_FIELD: document_id},
                {ID_FIELD: document_id, **data},
                upsert=True,
                session=self._session,
            )
        except PyMongoError as e:
            raise translate_error(
                e, collection=self._collection.name, document_id=document_id
            ) from e


class MongoBackend(BackendDriver):
    """
    BackendDriver backed by MongoDB through motor.

    Operations issued before initialize() raise InitializationError.

    Example:
        backend = MongoBackend.from_config(config)
        await backend.initialize()
        async with DocumentClient(backend) as client:
            ...
    """

    name = "mongodb"

    def __init__(self, connection: ConnectionManager):
        self._connection = connection

    @classmethod
    def from_config(cls, config: ClientConfig) -> "MongoBackend":
        return cls(
            ConnectionManager(
                mongo_uri=config.mongo_uri,
                db_name=config.db_name,
                max_pool_size=config.max_pool_size,
                min_pool_size=config.min_pool_size,
                server_selection_timeout_ms=config.server_selection_timeout_ms,
                connect_timeout_s=config.connect_timeout_s,
            )
        )

    @property
    def connection(self) -> ConnectionManager:
        return self._connection

    async def initialize(self) -> None:
        """Connect to MongoDB. Raises InitializationError on failure."""
        await self._connection.initialize()

    async def resolve_collection(
        self, name: str, *, create: bool = False
    ) -> AsyncIOMotorCollection:
        validate_collection_name(name)
        db = self._connection.mongo_db
        if not create:
            try:
                names = await db.list_collection_names(filter={"name": name})
            except PyMongoError as e:
                raise translate_error(e, collection=name) from e
            if name not in names:
                raise CollectionUnavailableError(name)
        return db[name]

    async def get_document(
        self, handle: AsyncIOMotorCollection, document_id: str
    ) -> DocumentSnapshot:
        try:
            raw = await handle.find_one(_id_filter(document_id))
        except PyMongoError as e:
            raise translate_error(e, collection=handle.name, document_id=document_id) from e
        if raw is None:
            return DocumentSnapshot.missing(document_id)
        return DocumentSnapshot(id=document_id, data=raw, exists=True)

    async def add_document(self, handle: AsyncIOMotorCollection, data: dict[str, Any]) -> str:
        document = {ID_FIELD: str(ObjectId()), **data}
        try:
            result = await handle.insert_one(document)
        except PyMongoError as e:
            raise translate_error(e, collection=handle.name) from e
        return str(result.inserted_id)

    @staticmethod
    def _check_deadline(deadline: float | None, collection: str) -> None:
        if deadline is not None and asyncio.get_running_loop().time() >= deadline:
            raise DeadlineExceededError(
                "Deadline exceeded before commit", context={"collection": collection}
            )

    @staticmethod
    def _commit_budget_ms(deadline: float | None) -> int | None:
        if deadline is None:
            return None
        remaining = deadline - asyncio.get_running_loop().time()
        return max(1, int(remaining * 1000))

    async def _commit(
        self, session: AsyncIOMotorClientSession, deadline: float | None, collection: str
    ) -> None:
        for attempt in range(1, MAX_COMMIT_RETRIES + 1):
            self._check_deadline(deadline, collection)
            try:
                await session.commit_transaction()
                return
            except PyMongoError as e:
                if e.has_error_label(UNKNOWN_COMMIT_RESULT) and attempt < MAX_COMMIT_RETRIES:
                    logger.warning(
                        f"Commit result unknown for collection '{collection}', "
                        f"retrying commit (attempt {attempt}/{MAX_COMMIT_RETRIES})"
                    )
                    continue
                raise

    async def run_transaction(
        self,
        handle: AsyncIOMotorCollection,
        body: TransactionBody,
        *,
        deadline: float | None = None,
    ) -> Any:
        client = self._connection.mongo_client
        try:
            async with await client.start_session() as session:
                session.start_transaction(
                    read_concern=ReadConcern("snapshot"),
                    write_concern=WriteConcern("majority"),
                    read_preference=ReadPreference.PRIMARY,
                    max_commit_time_ms=self._commit_budget_ms(deadline),
                )
                try:
                    result = await body(_MongoTransaction(handle, session))
                    await self._commit(session, deadline, handle.name)
                except BaseException:
                    # Cancellation included: nothing may commit after this point.
                    if session.in_transaction:
                        await session.abort_transaction()
                    raise
                return result
        except PyMongoError as e:
            raise translate_error(e, collection=handle.name) from e

    async def query_documents(
        self, handle: AsyncIOMotorCollection, predicate: Predicate
    ) -> list[DocumentSnapshot]:
        mongo_filter = predicate.to_mongo_filter()
        try:
            docs = await handle.find(mongo_filter).to_list(length=None)
        except OperationFailure as e:
            if e.code in _QUERY_ERROR_CODES:
                raise QueryError(
                    f"Query rejected by MongoDB: {e}",
                    field=predicate.field,
                    operator=predicate.operator.value,
                    context={"collection": handle.name},
                ) from e
            raise translate_error(e, collection=handle.name) from e
        except PyMongoError as e:
            raise translate_error(e, collection=handle.name) from e
        return [DocumentSnapshot(id=str(doc.get(ID_FIELD)), data=doc, exists=True) for doc in docs]

    async def ping(self) -> bool:
        try:
            await self._connection.mongo_client.admin.command("ping")
            return True
        except (PyMongoError, InitializationError) as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._connection.shutdown()
