"""
MongoDB Database - Infrastructure Layer

Thin wrapper around a timezone-aware ``MongoClient`` shared by the
repositories, the GridFS artifact store and the health checks.
"""

from typing import Any, Dict, List, Optional

import pymongo.errors
import structlog
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

logger = structlog.get_logger(__name__)

PIPELINES_COLLECTION = "forecast_ml_pipelines"
ASSET_HISTORY_COLLECTION = "asset_history"
ASSETS_COLLECTION = "assets"


class MongoDatabase:
    """MongoDB database client."""

    def __init__(self, mongo_uri: str, db_name: str):
        """
        Initialize the MongoDB database client.

        Args:
            mongo_uri: MongoDB connection URI
            db_name: Name of the database to use
        """
        self.client: MongoClient = MongoClient(mongo_uri, tz_aware=True)
        self.db: Database = self.client[db_name]

    def get_collection(self, collection_name: str) -> Collection:
        return self.db[collection_name]

    async def find_one(
        self, collection_name: str, query: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        return self.db[collection_name].find_one(query)

    async def find_many(
        self,
        collection_name: str,
        query: Dict[str, Any],
        sort_by: Optional[str] = None,
        sort_direction: int = ASCENDING,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """
        Find documents matching ``query``.

        Args:
            collection_name: Name of the collection
            query: Query to match documents
            sort_by: Field to sort by
            sort_direction: ``ASCENDING`` or ``DESCENDING``
            skip: Number of documents to skip
            limit: Maximum number of documents, 0 for no limit
        """
        cursor = self.db[collection_name].find(query)
        if sort_by:
            cursor = cursor.sort(sort_by, sort_direction)
        cursor = cursor.skip(skip).limit(limit)
        return list(cursor)

    def close(self) -> None:
        """Close the database connection."""
        self.client.close()

    async def create_indexes(self) -> None:
        """Create the indexes the scheduler queries rely on."""
        try:
            self.db[PIPELINES_COLLECTION].create_index(
                "asset_type_id", name="asset_type_id_uidx", unique=True
            )
            self.db[ASSET_HISTORY_COLLECTION].create_index(
                [("asset_id", ASCENDING), ("change_date", ASCENDING)],
                name="asset_change_date_idx",
                background=True,
            )
            self.db[ASSET_HISTORY_COLLECTION].create_index(
                [("asset_id", ASCENDING), ("change_date", DESCENDING)],
                name="asset_change_date_desc_idx",
                background=True,
            )
            self.db[ASSETS_COLLECTION].create_index("id", name="asset_id_idx")
        except pymongo.errors.OperationFailure as exc:
            logger.warning("mongo.indexes_failed", error=str(exc))
