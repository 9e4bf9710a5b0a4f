"""
Application DTOs - Pipelines

Request and response contracts for pipeline registration, settings updates
and the manual cycle triggers.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assetcast.domain.entities.pipeline import (
    DEFAULT_FORECAST_LENGTH_DAYS,
    DEFAULT_FORECAST_REFRESH_RATE_DAYS,
    DEFAULT_RETRAIN_FREQUENCY_DAYS,
    AssetManagementData,
    FeatureDescriptor,
    Pipeline,
)
from assetcast.domain.services.attribute_classifier import is_synthetic


class FeatureDescriptorDTO(BaseModel):
    """DTO for an attribute used by a pipeline."""

    model_config = ConfigDict(extra="allow")

    attribute_name: str = Field(min_length=1)
    attribute_label: str = ""
    attribute_type: str = "number"
    keep_history: bool = True

    @field_validator("attribute_name")
    @classmethod
    def _reject_synthetic(cls, value: str) -> str:
        if is_synthetic(value):
            raise ValueError("predicted_* attributes are managed by the scheduler")
        return value

    def to_domain(self) -> FeatureDescriptor:
        return FeatureDescriptor(
            attribute_name=self.attribute_name,
            attribute_label=self.attribute_label,
            attribute_type=self.attribute_type,
            keep_history=self.keep_history,
            extras=dict(self.model_extra or {}),
        )

    @classmethod
    def from_domain(cls, feature: FeatureDescriptor) -> "FeatureDescriptorDTO":
        return cls(
            attribute_name=feature.attribute_name,
            attribute_label=feature.attribute_label,
            attribute_type=feature.attribute_type,
            keep_history=feature.keep_history,
            **feature.extras,
        )


class PipelineSettingsDTO(BaseModel):
    """Forecasting settings shared by creation and update requests."""

    attributes_to_predict: List[FeatureDescriptorDTO] = Field(min_length=1)
    supporting_attributes: List[FeatureDescriptorDTO] = Field(default_factory=list)
    forecast_length: int = Field(default=DEFAULT_FORECAST_LENGTH_DAYS, ge=1, le=365)
    forecast_refresh_rate: int = Field(
        default=DEFAULT_FORECAST_REFRESH_RATE_DAYS, ge=1, le=365
    )
    retrain_frequency: int = Field(
        default=DEFAULT_RETRAIN_FREQUENCY_DAYS,
        ge=0,
        le=365,
        description="Days between retrainings, 0 trains once",
    )
    forecast_start_date: Optional[datetime] = None
    asset_ids: List[str] = Field(default_factory=list)


class PipelineCreateDTO(PipelineSettingsDTO):
    """DTO for pipeline registration."""

    asset_type_id: str = Field(min_length=1)


class AssetManagementDataDTO(BaseModel):
    id: str
    asset_model: Optional[str] = None
    last_train_time: Optional[datetime] = None
    next_train_time: Optional[datetime] = None
    last_inference_time: Optional[datetime] = None
    next_inference_time: Optional[datetime] = None
    last_bq_sync_time: Optional[datetime] = None
    train_job_name: Optional[str] = None
    inference_job_name: Optional[str] = None

    @classmethod
    def from_domain(cls, asset: AssetManagementData) -> "AssetManagementDataDTO":
        return cls(**vars(asset))


class PipelineDTO(BaseModel):
    """DTO for a stored pipeline."""

    asset_type_id: str
    attributes_to_predict: List[FeatureDescriptorDTO]
    supporting_attributes: List[FeatureDescriptorDTO]
    forecast_length: int
    forecast_refresh_rate: int
    retrain_frequency: int
    timestep: int
    forecast_start_date: Optional[datetime] = None
    latest_settings_update: Optional[datetime] = None
    asset_management_data: List[AssetManagementDataDTO]
    version: int

    @classmethod
    def from_domain(cls, pipeline: Pipeline) -> "PipelineDTO":
        return cls(
            asset_type_id=pipeline.asset_type_id,
            attributes_to_predict=[
                FeatureDescriptorDTO.from_domain(f) for f in pipeline.attributes_to_predict
            ],
            supporting_attributes=[
                FeatureDescriptorDTO.from_domain(f) for f in pipeline.supporting_attributes
            ],
            forecast_length=pipeline.forecast_length,
            forecast_refresh_rate=pipeline.forecast_refresh_rate,
            retrain_frequency=pipeline.retrain_frequency,
            timestep=pipeline.timestep,
            forecast_start_date=pipeline.forecast_start_date,
            latest_settings_update=pipeline.latest_settings_update,
            asset_management_data=[
                AssetManagementDataDTO.from_domain(a) for a in pipeline.asset_management_data
            ],
            version=pipeline.version,
        )


class SyntheticAttributesChangeDTO(BaseModel):
    """Synthetic attributes the asset-type schema must gain or lose."""

    asset_type_id: str
    to_add: List[str] = Field(default_factory=list)
    to_remove: List[str] = Field(default_factory=list)


class PipelineRegistrationDTO(BaseModel):
    pipeline: PipelineDTO
    synthetic_attributes: SyntheticAttributesChangeDTO


class CycleDispatchDTO(BaseModel):
    """Result of queueing a background cycle."""

    cycle: str
    task_id: str
    details: Dict[str, Any] = Field(default_factory=dict)
