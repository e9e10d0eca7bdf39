"""
Connection management for the MongoDB backend.

Each MongoBackend owns one ConnectionManager, and therefore one motor
client and connection pool. There is no process-wide shared client: two
backends built from two configs are fully independent.
"""

import asyncio
import logging
import time
from datetime import timezone

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.errors import ConnectionFailure, OperationFailure, ServerSelectionTimeoutError

from ..constants import (
    APP_NAME,
    DEFAULT_CONNECT_TIMEOUT_S,
    DEFAULT_MAX_IDLE_TIME_MS,
    DEFAULT_MAX_POOL_SIZE,
    DEFAULT_MIN_POOL_SIZE,
    DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
)
from ..core.codec import BSON_TYPE_REGISTRY
from ..exceptions import InitializationError
from ..observability import get_logger as get_contextual_logger
from ..observability import record_operation

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)


class ConnectionManager:
    """
    Manages the MongoDB connection lifecycle.

    Handles connection initialization, validation, and shutdown.
    """

    def __init__(
        self,
        mongo_uri: str,
        db_name: str,
        max_pool_size: int = DEFAULT_MAX_POOL_SIZE,
        min_pool_size: int = DEFAULT_MIN_POOL_SIZE,
        server_selection_timeout_ms: int = DEFAULT_SERVER_SELECTION_TIMEOUT_MS,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
    ) -> None:
        """
        Initialize the connection manager.

        Args:
            mongo_uri: MongoDB connection URI
            db_name: Database name
            max_pool_size: Maximum MongoDB connection pool size
            min_pool_size: Minimum MongoDB connection pool size
            server_selection_timeout_ms: Server selection timeout in milliseconds
            connect_timeout_s: Time allowed for the initial ping
        """
        self.mongo_uri = mongo_uri
        self.db_name = db_name
        self.max_pool_size = max_pool_size
        self.min_pool_size = min_pool_size
        self.server_selection_timeout_ms = server_selection_timeout_ms
        self.connect_timeout_s = connect_timeout_s

        self._mongo_client: AsyncIOMotorClient | None = None
        self._mongo_db: AsyncIOMotorDatabase | None = None
        self._initialized: bool = False

    async def initialize(self) -> None:
        """
        Connect to MongoDB and verify the connection with a ping.

        Raises:
            InitializationError: If the connection cannot be established
                within connect_timeout_s
        """
        start_time = time.time()

        if self._initialized:
            logger.warning("ConnectionManager already initialized. Skipping re-initialization.")
            return

        contextual_logger.info(
            "Initializing MongoDB connection",
            extra={
                "db_name": self.db_name,
                "max_pool_size": self.max_pool_size,
                "min_pool_size": self.min_pool_size,
            },
        )

        client: AsyncIOMotorClient | None = None
        try:
            client = AsyncIOMotorClient(
                self.mongo_uri,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                appname=APP_NAME,
                maxPoolSize=self.max_pool_size,
                minPoolSize=self.min_pool_size,
                maxIdleTimeMS=DEFAULT_MAX_IDLE_TIME_MS,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
                tzinfo=timezone.utc,
                type_registry=BSON_TYPE_REGISTRY,
            )
            await asyncio.wait_for(client.admin.command("ping"), timeout=self.connect_timeout_s)
        except (
            ConnectionFailure,
            ServerSelectionTimeoutError,
            OperationFailure,
            PyMongoConfigurationError,
            asyncio.TimeoutError,
            ValueError,
            TypeError,
        ) as e:
            if client is not None:
                client.close()
            duration_ms = (time.time() - start_time) * 1000
            record_operation("connection.initialize", duration_ms, success=False)
            contextual_logger.critical(
                "MongoDB connection failed",
                extra={
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "duration_ms": round(duration_ms, 2),
                },
                exc_info=True,
            )
            raise InitializationError(
                f"Failed to connect to MongoDB: {e or type(e).__name__}",
                db_name=self.db_name,
                context={
                    "error_type": type(e).__name__,
                    "max_pool_size": self.max_pool_size,
                    "min_pool_size": self.min_pool_size,
                },
            ) from e

        self._mongo_client = client
        self._mongo_db = client[self.db_name]
        self._initialized = True

        duration_ms = (time.time() - start_time) * 1000
        record_operation("connection.initialize", duration_ms, success=True)
        contextual_logger.info(
            "MongoDB connection initialized successfully",
            extra={
                "db_name": self.db_name,
                "pool_size": f"{self.min_pool_size}-{self.max_pool_size}",
                "duration_ms": round(duration_ms, 2),
            },
        )

    async def shutdown(self) -> None:
        """
        Close the MongoDB connection.

        This method is idempotent - it's safe to call multiple times.
        """
        if not self._initialized:
            return

        if self._mongo_client:
            self._mongo_client.close()
            contextual_logger.info("MongoDB connection closed.")

        self._initialized = False
        self._mongo_client = None
        self._mongo_db = None

    @property
    def mongo_client(self) -> AsyncIOMotorClient:
        """
        Get the MongoDB client.

        Raises:
            InitializationError: If the connection is not initialized
        """
        if not self._initialized or self._mongo_client is None:
            raise InitializationError(
                "ConnectionManager not initialized. Call initialize() first.",
                db_name=self.db_name,
            )
        return self._mongo_client

    @property
    def mongo_db(self) -> AsyncIOMotorDatabase:
        """
        Get the MongoDB database.

        Raises:
            InitializationError: If the connection is not initialized
        """
        if not self._initialized or self._mongo_db is None:
            raise InitializationError(
                "ConnectionManager not initialized. Call initialize() first.",
                db_name=self.db_name,
            )
        return self._mongo_db

    @property
    def initialized(self) -> bool:
        """Check if connection is initialized."""
        return self._initialized
