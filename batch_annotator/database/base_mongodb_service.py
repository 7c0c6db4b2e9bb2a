"""
Base MongoDB Service

Common collection setup, lookup and document conversion helpers shared by
MongoDB-backed stores.
"""

from typing import Dict, Any, Optional, List, Set
import logging
from enum import Enum
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from pymongo import IndexModel

from .mongodb_config import MongoDBConnection, get_mongodb_connection

logger = logging.getLogger(__name__)


class BaseMongoDBService:
    """Base class for MongoDB services with common patterns."""

    def __init__(self, connection: Optional[MongoDBConnection] = None):
        """
        Initialize the base service.

        Args:
            connection: MongoDB connection instance. If None, uses global connection.
        """
        self.connection = connection or get_mongodb_connection()
        self._initialized_collections: Set[str] = set()

    def _ensure_collection_setup(self, collection_name: str, indexes: List[IndexModel] = None) -> bool:
        """
        Ensure collection is properly set up with indexes.

        Returns:
            True if setup successful, False otherwise
        """
        if collection_name in self._initialized_collections:
            return True

        collection = self.connection.get_collection(collection_name)
        if collection is None:
            logger.error(f"Failed to get collection: {collection_name}")
            return False

        if indexes:
            try:
                collection.create_indexes(indexes)
                logger.info(f"Created indexes for collection: {collection_name}")
            except PyMongoError as e:
                logger.warning(f"Some indexes might already exist for {collection_name}: {e}")

        self._initialized_collections.add(collection_name)
        return True

    def _get_collection(self, collection_name: str) -> Optional[Collection]:
        """
        Get a collection, logging when the connection is unavailable.

        Returns:
            Collection instance or None if not connected
        """
        collection = self.connection.get_collection(collection_name)
        if collection is None:
            logger.error(f"Failed to get collection: {collection_name}")
        return collection

    def _convert_enums_to_strings(self, obj: Any) -> Any:
        """
        Recursively convert enum values to strings in a data structure.
        """
        if isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, dict):
            return {key: self._convert_enums_to_strings(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [self._convert_enums_to_strings(item) for item in obj]
        elif isinstance(obj, tuple):
            return [self._convert_enums_to_strings(item) for item in obj]
        else:
            return obj

    def _build_query_filter(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Equality filter from keyword values, skipping the ones left as None."""
        return {key: value for key, value in filters.items() if value is not None}
