"""Celery task implementations for infrastructure services."""

from .base import CallbackTask, SingleFlightTask, WorkerRuntime
from .forecast_scheduler import run_forecast_scheduler
from .history_migration import run_history_migration
from .prediction_display import display_predictions

__all__ = [
    "CallbackTask",
    "SingleFlightTask",
    "WorkerRuntime",
    "display_predictions",
    "run_forecast_scheduler",
    "run_history_migration",
]
