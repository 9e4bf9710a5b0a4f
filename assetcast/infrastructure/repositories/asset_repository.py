"""Infrastructure Repository - Asset records MongoDB Implementation."""

from typing import Mapping

import structlog
from pymongo.errors import PyMongoError

from assetcast.domain.entities.history import ScalarValue
from assetcast.domain.repositories.asset_repository import IAssetRepository
from assetcast.infrastructure.database.mongo_database import (
    ASSETS_COLLECTION,
    MongoDatabase,
)

logger = structlog.get_logger(__name__)


class AssetRepository(IAssetRepository):
    """MongoDB implementation of the asset repository."""

    def __init__(self, database: MongoDatabase):
        self.collection = database.get_collection(ASSETS_COLLECTION)

    async def update_custom_data(
        self, asset_id: str, values: Mapping[str, ScalarValue]
    ) -> bool:
        if not values:
            return False
        update = {f"custom_data.{name}": value for name, value in values.items()}
        try:
            result = self.collection.update_one({"id": asset_id}, {"$set": update})
        except PyMongoError as e:
            logger.error("Failed to update asset", asset_id=asset_id, error=str(e))
            raise
        return result.matched_count > 0
