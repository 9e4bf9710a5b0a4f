"""
Domain Entities - Forecasting Pipeline

A pipeline is the forecasting configuration of one asset type together with
the lifecycle timestamps of every asset enrolled in it.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

# Forecast horizon of the model, in timesteps.
FORECAST_HORIZON_STEPS = 672

DEFAULT_FORECAST_LENGTH_DAYS = 7
DEFAULT_FORECAST_REFRESH_RATE_DAYS = 7
DEFAULT_RETRAIN_FREQUENCY_DAYS = 0


class AggregationMethod(str, Enum):
    """How raw samples that fall in the same bucket are combined."""

    MEAN = "mean"
    MODE = "mode"


@dataclass
class FeatureDescriptor:
    """An asset attribute used as model input or forecast target."""

    attribute_name: str
    attribute_label: str = ""
    attribute_type: str = "number"
    keep_history: bool = True
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_boolean(self) -> bool:
        return self.attribute_type.lower() in ("boolean", "bool")

    @property
    def aggregation(self) -> AggregationMethod:
        return AggregationMethod.MODE if self.is_boolean else AggregationMethod.MEAN


@dataclass
class AssetManagementData:
    """Lifecycle state of one asset inside a pipeline."""

    id: str
    asset_model: Optional[str] = None
    last_train_time: Optional[datetime] = None
    next_train_time: Optional[datetime] = None
    last_inference_time: Optional[datetime] = None
    next_inference_time: Optional[datetime] = None
    last_bq_sync_time: Optional[datetime] = None
    train_job_name: Optional[str] = None
    inference_job_name: Optional[str] = None


# Fields an AssetUpdate is allowed to touch.
ASSET_MUTABLE_FIELDS = frozenset(
    {
        "asset_model",
        "last_train_time",
        "next_train_time",
        "last_inference_time",
        "next_inference_time",
        "last_bq_sync_time",
        "train_job_name",
        "inference_job_name",
    }
)


def compute_timestep(forecast_length_days: float) -> int:
    """
    Minutes per timestep so that the model horizon covers the forecast length.

    Halves round up, and the result is never below one minute.
    """
    minutes = forecast_length_days * 24 * 60 / FORECAST_HORIZON_STEPS
    return max(1, math.floor(minutes + 0.5))


@dataclass
class Pipeline:
    """Forecasting configuration for one asset type."""

    asset_type_id: str
    attributes_to_predict: List[FeatureDescriptor] = field(default_factory=list)
    supporting_attributes: List[FeatureDescriptor] = field(default_factory=list)
    forecast_length: int = DEFAULT_FORECAST_LENGTH_DAYS
    forecast_refresh_rate: int = DEFAULT_FORECAST_REFRESH_RATE_DAYS
    retrain_frequency: int = DEFAULT_RETRAIN_FREQUENCY_DAYS
    timestep: int = field(default=0)
    forecast_start_date: Optional[datetime] = None
    latest_settings_update: Optional[datetime] = None
    asset_management_data: List[AssetManagementData] = field(default_factory=list)
    version: int = 0

    def __post_init__(self) -> None:
        if self.timestep <= 0:
            self.timestep = compute_timestep(self.forecast_length)

    def find_asset(self, asset_id: str) -> Optional[AssetManagementData]:
        for asset in self.asset_management_data:
            if asset.id == asset_id:
                return asset
        return None

    @property
    def asset_ids(self) -> List[str]:
        return [asset.id for asset in self.asset_management_data]

    @property
    def features(self) -> List[FeatureDescriptor]:
        return [*self.attributes_to_predict, *self.supporting_attributes]


@dataclass
class AssetUpdate:
    """Field deltas for one asset, applied to a fresh pipeline copy on commit."""

    asset_type_id: str
    asset_id: str
    fields: Dict[str, Any] = field(default_factory=dict)
