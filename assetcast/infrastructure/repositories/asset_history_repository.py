"""
Infrastructure Repository - Asset History MongoDB Implementation

History documents look like::

    {"asset_id": ..., "asset_type_id": ..., "change_date": <datetime>,
     "changes": {"custom_data": {<attribute>: <value>, ...}}}
"""

from datetime import datetime
from typing import Any, Collection, Dict, List, Optional, Sequence

import structlog
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import BulkWriteError, PyMongoError

from assetcast.domain.entities.history import AssetHistoryRow
from assetcast.domain.repositories.asset_history_repository import (
    IAssetHistoryRepository,
)
from assetcast.infrastructure.database.mongo_database import (
    ASSET_HISTORY_COLLECTION,
    MongoDatabase,
)

logger = structlog.get_logger(__name__)

CUSTOM_DATA_PATH = "changes.custom_data"


def _attributes_filter(attribute_names: Collection[str]) -> Dict[str, Any]:
    return {
        "$or": [
            {f"{CUSTOM_DATA_PATH}.{name}": {"$exists": True}}
            for name in sorted(attribute_names)
        ]
    }


def _date_range(
    after: Optional[datetime] = None,
    before: Optional[datetime] = None,
    *,
    inclusive: bool = False,
) -> Dict[str, Any]:
    bounds: Dict[str, Any] = {}
    if after is not None:
        bounds["$gte" if inclusive else "$gt"] = after
    if before is not None:
        bounds["$lte" if inclusive else "$lt"] = before
    return bounds


class AssetHistoryRepository(IAssetHistoryRepository):
    """MongoDB implementation of the asset history repository."""

    def __init__(self, database: MongoDatabase):
        self.database = database
        self.collection = database.get_collection(ASSET_HISTORY_COLLECTION)

    async def find_page(
        self,
        asset_id: str,
        after: Optional[datetime],
        before: datetime,
        skip: int,
        limit: int,
    ) -> List[AssetHistoryRow]:
        query = {"asset_id": asset_id, "change_date": _date_range(after, before)}
        try:
            documents = await self.database.find_many(
                ASSET_HISTORY_COLLECTION,
                query,
                sort_by="change_date",
                sort_direction=ASCENDING,
                skip=skip,
                limit=limit,
            )
        except PyMongoError as e:
            logger.error("Failed to read history page", asset_id=asset_id, error=str(e))
            raise
        return [self._from_document(doc) for doc in documents]

    async def oldest_change_date(self, asset_id: str) -> Optional[datetime]:
        return self._edge_change_date(asset_id, ASCENDING)

    async def latest_change_date(self, asset_id: str) -> Optional[datetime]:
        return self._edge_change_date(asset_id, DESCENDING)

    def _edge_change_date(self, asset_id: str, direction: int) -> Optional[datetime]:
        try:
            document = self.collection.find_one(
                {"asset_id": asset_id},
                projection={"change_date": 1},
                sort=[("change_date", direction)],
            )
        except PyMongoError as e:
            logger.error("Failed to read history bounds", asset_id=asset_id, error=str(e))
            raise
        return document["change_date"] if document else None

    async def has_rows_with(
        self,
        asset_id: str,
        after: Optional[datetime],
        before: datetime,
        attribute_names: Collection[str],
    ) -> bool:
        if not attribute_names:
            return False
        query = {
            "asset_id": asset_id,
            "change_date": _date_range(after, before),
            **_attributes_filter(attribute_names),
        }
        try:
            return self.collection.find_one(query, projection={"_id": 1}) is not None
        except PyMongoError as e:
            logger.error("Failed to look up unsynced history", asset_id=asset_id, error=str(e))
            raise

    async def delete_with_attributes_since(
        self, asset_id: str, since: datetime, attribute_names: Collection[str]
    ) -> int:
        if not attribute_names:
            return 0
        query = {
            "asset_id": asset_id,
            "change_date": {"$gte": since},
            **_attributes_filter(attribute_names),
        }
        try:
            result = self.collection.delete_many(query)
        except PyMongoError as e:
            logger.error("Failed to delete history rows", asset_id=asset_id, error=str(e))
            raise
        return result.deleted_count

    async def insert_many(self, rows: Sequence[AssetHistoryRow]) -> int:
        if not rows:
            return 0
        documents = [self._to_document(row) for row in rows]
        try:
            result = self.collection.insert_many(documents, ordered=False)
        except BulkWriteError as e:
            inserted = int(e.details.get("nInserted", 0))
            logger.warning(
                "history.partial_insert",
                attempted=len(documents),
                inserted=inserted,
                errors=len(e.details.get("writeErrors", [])),
            )
            return inserted
        return len(result.inserted_ids)

    async def latest_rows_with(
        self,
        asset_ids: Collection[str],
        since: datetime,
        until: datetime,
        attribute_names: Collection[str],
    ) -> Dict[str, AssetHistoryRow]:
        if not asset_ids or not attribute_names:
            return {}
        pipeline = [
            {
                "$match": {
                    "asset_id": {"$in": sorted(asset_ids)},
                    "change_date": _date_range(since, until, inclusive=True),
                    **_attributes_filter(attribute_names),
                }
            },
            {"$sort": {"change_date": DESCENDING}},
            {"$group": {"_id": "$asset_id", "row": {"$first": "$$ROOT"}}},
        ]
        try:
            groups = list(self.collection.aggregate(pipeline))
        except PyMongoError as e:
            logger.error("Failed to read latest history rows", error=str(e))
            raise
        return {group["_id"]: self._from_document(group["row"]) for group in groups}

    @staticmethod
    def _to_document(row: AssetHistoryRow) -> Dict[str, Any]:
        return {
            "asset_id": row.asset_id,
            "asset_type_id": row.asset_type_id,
            "change_date": row.change_date,
            "changes": {"custom_data": dict(row.custom_data)},
        }

    @staticmethod
    def _from_document(document: Dict[str, Any]) -> AssetHistoryRow:
        changes = document.get("changes") or {}
        return AssetHistoryRow(
            asset_id=document["asset_id"],
            asset_type_id=document.get("asset_type_id"),
            change_date=document["change_date"],
            custom_data=dict(changes.get("custom_data") or {}),
        )
