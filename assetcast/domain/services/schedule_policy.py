"""
Scheduling rules for training and inference.

Every helper is total: missing timestamps mean "not due" and never raise.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from assetcast.domain.entities.pipeline import (
    FORECAST_HORIZON_STEPS,
    AssetManagementData,
    Pipeline,
)

# Training needs five horizons of history plus one day of 96 steps.
TRAINING_HISTORY_HORIZONS = 5
TRAINING_EXTRA_STEPS = 96

# How long a launched training is given before it may be retried.
TRAINING_RETRY_HORIZON = timedelta(hours=6)


def history_threshold_minutes(timestep: int) -> int:
    return (
        TRAINING_HISTORY_HORIZONS * timestep * FORECAST_HORIZON_STEPS
        + timestep * TRAINING_EXTRA_STEPS
    )


def is_threshold_met(
    oldest_change: Optional[datetime], timestep: int, now: datetime
) -> bool:
    """True when the oldest history row is strictly older than the threshold."""
    if oldest_change is None or timestep <= 0:
        return False
    return oldest_change < now - timedelta(minutes=history_threshold_minutes(timestep))


def should_run_training(asset: AssetManagementData, now: datetime) -> bool:
    return asset.next_train_time is not None and now > asset.next_train_time


def should_run_inference(asset: AssetManagementData, now: datetime) -> bool:
    if not asset.asset_model or asset.next_inference_time is None:
        return False
    return now > asset.next_inference_time


def training_allowed(pipeline: Pipeline, asset: AssetManagementData) -> bool:
    """A retrain frequency of zero still allows the first training."""
    return pipeline.retrain_frequency > 0 or asset.last_train_time is None


def next_train_after(reference: datetime, retrain_frequency: int) -> Optional[datetime]:
    if retrain_frequency < 1:
        return None
    return reference + timedelta(days=retrain_frequency)


def next_inference_after(reference: datetime, refresh_rate: int) -> datetime:
    return reference + timedelta(days=max(refresh_rate, 0))


def initial_schedule(
    now: datetime, forecast_start_date: Optional[datetime]
) -> Tuple[datetime, datetime]:
    """
    Seed ``(next_train_time, next_inference_time)`` for a newly enrolled asset.

    The first inference happens at the forecast start date, or now. Training
    is scheduled a day ahead of it, or right away when that day has already
    begun.
    """
    first_inference = forecast_start_date or now
    if first_inference - now < timedelta(days=1):
        return now, first_inference
    return first_inference - timedelta(days=1), first_inference
