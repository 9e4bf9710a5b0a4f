"""
Domain Entities Package

Pipelines, asset lifecycle state, history rows, job states and errors.
"""

from .cycle_report import MigrationCycleReport, SchedulerCycleReport
from .errors import (
    AnalyticalStoreError,
    ArtifactNotFoundError,
    DomainError,
    ForecastParseError,
    JobLaunchError,
    JobStatusError,
    LockError,
    MessageBusError,
    ObjectStoreError,
    PipelineAlreadyExistsError,
    PipelineConflictError,
    PipelineNotFoundError,
    PipelineValidationError,
)
from .health import (
    ApplicationInfo,
    CycleSchedule,
    DependencyStatus,
    ServiceStatus,
    SystemHealth,
)
from .history import AssetHistoryRow, SeriesPoint
from .jobs import JobKind, JobState
from .pipeline import (
    AggregationMethod,
    AssetManagementData,
    AssetUpdate,
    FeatureDescriptor,
    Pipeline,
    compute_timestep,
)

__all__ = [
    "AggregationMethod",
    "AnalyticalStoreError",
    "ApplicationInfo",
    "ArtifactNotFoundError",
    "AssetHistoryRow",
    "AssetManagementData",
    "AssetUpdate",
    "CycleSchedule",
    "DependencyStatus",
    "DomainError",
    "FeatureDescriptor",
    "ForecastParseError",
    "JobKind",
    "JobLaunchError",
    "JobState",
    "JobStatusError",
    "LockError",
    "MessageBusError",
    "MigrationCycleReport",
    "ObjectStoreError",
    "Pipeline",
    "PipelineAlreadyExistsError",
    "PipelineConflictError",
    "PipelineNotFoundError",
    "PipelineValidationError",
    "SchedulerCycleReport",
    "SeriesPoint",
    "ServiceStatus",
    "SystemHealth",
    "compute_timestep",
]
