"""
Application Services Package

Coordination services shared by the use cases: the lock-guarded pipeline
metadata store, single-flight cycle guards, artifact discovery and forecast
file parsing.
"""

from .artifact_discovery import ArtifactDiscoveryService
from .forecast_csv import parse_forecast_csv
from .pipeline_metadata_store import METADATA_LOCK_NAME, PipelineMetadataStore
from .single_flight import SingleFlightGuard

__all__ = [
    "ArtifactDiscoveryService",
    "METADATA_LOCK_NAME",
    "PipelineMetadataStore",
    "SingleFlightGuard",
    "parse_forecast_csv",
]
