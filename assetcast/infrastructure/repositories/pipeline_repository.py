"""
Infrastructure Repository - Pipeline MongoDB Implementation

Pipelines are stored one document per asset type. Timestamps are written as
ISO-8601 strings and ``version`` backs the optimistic concurrency check.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from pymongo.errors import DuplicateKeyError, PyMongoError

from assetcast.domain.entities.errors import PipelineAlreadyExistsError
from assetcast.domain.entities.pipeline import (
    AssetManagementData,
    FeatureDescriptor,
    Pipeline,
)
from assetcast.domain.repositories.pipeline_repository import IPipelineRepository
from assetcast.infrastructure.database.mongo_database import (
    PIPELINES_COLLECTION,
    MongoDatabase,
)

logger = structlog.get_logger(__name__)

_ASSET_TIME_FIELDS = (
    "last_train_time",
    "next_train_time",
    "last_inference_time",
    "next_inference_time",
    "last_bq_sync_time",
)
_FEATURE_FIELDS = ("attribute_name", "attribute_label", "attribute_type", "keep_history")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class PipelineRepository(IPipelineRepository):
    """MongoDB implementation of pipeline repository."""

    def __init__(self, database: MongoDatabase):
        self.database = database
        self.collection_name = PIPELINES_COLLECTION

    async def list_all(self) -> List[Pipeline]:
        try:
            documents = await self.database.find_many(
                self.collection_name, {}, sort_by="asset_type_id"
            )
        except PyMongoError as e:
            logger.error("Failed to list pipelines", error=str(e))
            raise
        return [self._from_document(doc) for doc in documents]

    async def get(self, asset_type_id: str) -> Optional[Pipeline]:
        try:
            document = await self.database.find_one(
                self.collection_name, {"asset_type_id": asset_type_id}
            )
        except PyMongoError as e:
            logger.error(
                "Failed to get pipeline", asset_type_id=asset_type_id, error=str(e)
            )
            raise
        return self._from_document(document) if document else None

    async def create(self, pipeline: Pipeline) -> Pipeline:
        collection = self.database.get_collection(self.collection_name)
        if collection.find_one({"asset_type_id": pipeline.asset_type_id}):
            raise PipelineAlreadyExistsError(pipeline.asset_type_id)
        try:
            collection.insert_one(self._to_document(pipeline))
        except DuplicateKeyError as e:
            raise PipelineAlreadyExistsError(pipeline.asset_type_id) from e
        except PyMongoError as e:
            logger.error(
                "Failed to create pipeline",
                asset_type_id=pipeline.asset_type_id,
                error=str(e),
            )
            raise
        logger.info("Pipeline created", asset_type_id=pipeline.asset_type_id)
        return pipeline

    async def replace(self, pipeline: Pipeline, expected_version: int) -> bool:
        collection = self.database.get_collection(self.collection_name)
        document = self._to_document(pipeline)
        document["version"] = expected_version + 1
        try:
            result = collection.replace_one(
                {"asset_type_id": pipeline.asset_type_id, "version": expected_version},
                document,
            )
        except PyMongoError as e:
            logger.error(
                "Failed to replace pipeline",
                asset_type_id=pipeline.asset_type_id,
                error=str(e),
            )
            raise
        if result.matched_count == 0:
            return False
        pipeline.version = expected_version + 1
        return True

    async def delete(self, asset_type_id: str) -> bool:
        collection = self.database.get_collection(self.collection_name)
        try:
            result = collection.delete_one({"asset_type_id": asset_type_id})
        except PyMongoError as e:
            logger.error(
                "Failed to delete pipeline", asset_type_id=asset_type_id, error=str(e)
            )
            raise
        return result.deleted_count > 0

    def _to_document(self, pipeline: Pipeline) -> Dict[str, Any]:
        return {
            "asset_type_id": pipeline.asset_type_id,
            "attributes_to_predict": [
                self._feature_to_document(f) for f in pipeline.attributes_to_predict
            ],
            "supporting_attributes": [
                self._feature_to_document(f) for f in pipeline.supporting_attributes
            ],
            "forecast_length": pipeline.forecast_length,
            "forecast_refresh_rate": pipeline.forecast_refresh_rate,
            "retrain_frequency": pipeline.retrain_frequency,
            "timestep": pipeline.timestep,
            "forecast_start_date": _iso(pipeline.forecast_start_date),
            "latest_settings_update": _iso(pipeline.latest_settings_update),
            "asset_management_data": [
                self._asset_to_document(a) for a in pipeline.asset_management_data
            ],
            "version": pipeline.version,
        }

    def _from_document(self, document: Dict[str, Any]) -> Pipeline:
        return Pipeline(
            asset_type_id=document["asset_type_id"],
            attributes_to_predict=[
                self._feature_from_document(f)
                for f in document.get("attributes_to_predict") or []
            ],
            supporting_attributes=[
                self._feature_from_document(f)
                for f in document.get("supporting_attributes") or []
            ],
            forecast_length=int(document.get("forecast_length") or 7),
            forecast_refresh_rate=int(document.get("forecast_refresh_rate") or 7),
            retrain_frequency=int(document.get("retrain_frequency") or 0),
            timestep=int(document.get("timestep") or 0),
            forecast_start_date=_parse(document.get("forecast_start_date")),
            latest_settings_update=_parse(document.get("latest_settings_update")),
            asset_management_data=[
                self._asset_from_document(a)
                for a in document.get("asset_management_data") or []
            ],
            version=int(document.get("version") or 0),
        )

    @staticmethod
    def _feature_to_document(feature: FeatureDescriptor) -> Dict[str, Any]:
        return {
            **feature.extras,
            "attribute_name": feature.attribute_name,
            "attribute_label": feature.attribute_label,
            "attribute_type": feature.attribute_type,
            "keep_history": feature.keep_history,
        }

    @staticmethod
    def _feature_from_document(document: Dict[str, Any]) -> FeatureDescriptor:
        return FeatureDescriptor(
            attribute_name=document["attribute_name"],
            attribute_label=document.get("attribute_label") or "",
            attribute_type=document.get("attribute_type") or "number",
            keep_history=bool(document.get("keep_history", True)),
            extras={k: v for k, v in document.items() if k not in _FEATURE_FIELDS},
        )

    @staticmethod
    def _asset_to_document(asset: AssetManagementData) -> Dict[str, Any]:
        document: Dict[str, Any] = {
            "id": asset.id,
            "asset_model": asset.asset_model,
            "train_job_name": asset.train_job_name,
            "inference_job_name": asset.inference_job_name,
        }
        for name in _ASSET_TIME_FIELDS:
            document[name] = _iso(getattr(asset, name))
        return document

    @staticmethod
    def _asset_from_document(document: Dict[str, Any]) -> AssetManagementData:
        return AssetManagementData(
            id=document["id"],
            asset_model=document.get("asset_model") or None,
            train_job_name=document.get("train_job_name"),
            inference_job_name=document.get("inference_job_name"),
            **{name: _parse(document.get(name)) for name in _ASSET_TIME_FIELDS},
        )
