import os
import logging
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

logger = logging.getLogger(__name__)

# Set pymongo logger to WARNING to reduce noise from driver-level logs
pymongo_logger = logging.getLogger('pymongo')
pymongo_logger.setLevel(logging.WARNING)

MONGO_URL = os.getenv('MONGO_URL')
DATABASE_NAME = os.getenv('MONGODB_DATABASE', 'fixly')


class MongoConnection:
    """Lazily created, process-scoped MongoDB client handle.

    Connection strategy:
    1. Return cached client if healthy (ping succeeds)
    2. If cached client fails, attempt reconnection
    3. If initial connection failed (config issue), don't retry
    """

    def __init__(self, url: str | None, database_name: str):
        self.url = url
        self.database_name = database_name
        self._client_cache: MongoClient | None = None
        self._connection_attempted = False
        self._connection_failed = False

    def get_client(self) -> MongoClient | None:
        if self._client_cache:
            try:
                self._client_cache.admin.command('ping')
                return self._client_cache
            except Exception:
                self._client_cache = None
                logger.debug("[MONGODB] Cached client failed ping, attempting reconnection...")

        if self._connection_failed:
            return None

        if not self.url:
            logger.error("[MONGODB] MONGO_URL not configured.")
            self._connection_failed = True
            return None

        try:
            client = MongoClient(
                self.url,
                tz_aware=True,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=5000,
                socketTimeoutMS=30000,
                maxPoolSize=10,
                minPoolSize=0,
                maxIdleTimeMS=30000,
                waitQueueTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )
            client.admin.command('ping')

            is_first_connection = not self._connection_attempted
            self._connection_attempted = True
            self._client_cache = client

            if is_first_connection:
                logger.info(f"[MONGODB] Connected successfully to {self.database_name}")

            return client
        except (ConnectionFailure, PyMongoError) as e:
            if not self._connection_attempted:
                error_msg = str(e)[:200]
                logger.error(f"[MONGODB] Initial connection failed: {error_msg}")
                self._connection_failed = True
            return None

    def get_database(self) -> Database | None:
        client = self.get_client()
        if client is None:
            return None
        return client[self.database_name]


_default_connection = MongoConnection(MONGO_URL, DATABASE_NAME)


def get_mongo_connection() -> MongoConnection:
    """Process-wide connection handle, handed to components through dependencies."""
    return _default_connection

