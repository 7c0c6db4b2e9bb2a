"""
MongoDB settings and a lazily connecting client for the job store.

Settings come from ``MONGODB_*`` environment variables. ``MONGODB_URI`` wins
over the host/port/credential variables when it is set.
"""

import os
import logging
from typing import Optional
from urllib.parse import quote_plus

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE = 'batch_annotator'
DEFAULT_JOBS_COLLECTION = 'processing_jobs'


class MongoDBConfig:
    """Where the job store lives. Explicit arguments override the environment."""

    def __init__(self, uri: Optional[str] = None, database_name: Optional[str] = None,
                 jobs_collection: Optional[str] = None, timeout_ms: Optional[int] = None):
        self.uri = uri or os.getenv('MONGODB_URI')
        self.host = os.getenv('MONGODB_HOST', 'localhost')
        self.port = int(os.getenv('MONGODB_PORT', '27017'))
        self.username = os.getenv('MONGODB_USERNAME')
        self.password = os.getenv('MONGODB_PASSWORD')
        self.auth_source = os.getenv('MONGODB_AUTH_SOURCE', 'admin')
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', DEFAULT_DATABASE)
        self.jobs_collection = jobs_collection or os.getenv('MONGODB_JOBS_COLLECTION', DEFAULT_JOBS_COLLECTION)
        self.server_selection_timeout_ms = timeout_ms or int(os.getenv('MONGODB_TIMEOUT', '5000'))

    def get_connection_string(self) -> str:
        if self.uri:
            return self.uri
        if self.username and self.password:
            return (f"mongodb://{quote_plus(self.username)}:{quote_plus(self.password)}@"
                    f"{self.host}:{self.port}/?authSource={self.auth_source}")
        return f"mongodb://{self.host}:{self.port}/"

    def describe(self) -> str:
        """Server and database for log lines, without credentials."""
        server = 'MONGODB_URI' if self.uri else f"{self.host}:{self.port}"
        return f"{server}/{self.database_name}"


class MongoDBConnection:
    """Connects on first use and hands out collections of the configured database."""

    def __init__(self, config: Optional[MongoDBConfig] = None):
        self.config = config or MongoDBConfig()
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

    def connect(self) -> bool:
        """
        Open the client and ping the server.

        Returns:
            True if the server answered, False otherwise
        """
        try:
            self._client = MongoClient(
                self.config.get_connection_string(),
                serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
                tz_aware=True
            )
            self._client.admin.command('ping')
            self._database = self._client[self.config.database_name]
            logger.info(f"Connected to MongoDB job store at {self.config.describe()}")
            return True
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"Failed to connect to MongoDB at {self.config.describe()}: {e}")
            self.disconnect()
            return False

    def disconnect(self):
        if self._client is not None:
            self._client.close()
            logger.info("Disconnected from MongoDB")
        self._client = None
        self._database = None

    def get_database(self) -> Optional[Database]:
        if self._database is None and not self.connect():
            return None
        return self._database

    def get_collection(self, collection_name: Optional[str] = None) -> Optional[Collection]:
        """Collection by name (the jobs collection by default), or None when unreachable."""
        database = self.get_database()
        if database is None:
            return None
        return database[collection_name or self.config.jobs_collection]


_global_connection: Optional[MongoDBConnection] = None


def get_mongodb_connection() -> MongoDBConnection:
    """Process-wide connection built from the environment."""
    global _global_connection
    if _global_connection is None:
        _global_connection = MongoDBConnection()
    return _global_connection
