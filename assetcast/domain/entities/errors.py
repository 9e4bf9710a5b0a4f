"""
Domain Errors

Typed failures raised by the forecasting core and by the gateways that
translate library exceptions at the infrastructure boundary.
"""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base class for domain errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class PipelineNotFoundError(DomainError):
    """Raised when no pipeline exists for an asset type."""

    def __init__(self, asset_type_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Pipeline for asset type {asset_type_id} not found", details)
        self.asset_type_id = asset_type_id


class PipelineAlreadyExistsError(DomainError):
    """Raised when registering an asset type that already has a pipeline."""

    def __init__(self, asset_type_id: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Pipeline for asset type {asset_type_id} already exists", details
        )
        self.asset_type_id = asset_type_id


class PipelineValidationError(DomainError):
    """Raised when pipeline settings are inconsistent."""


class PipelineConflictError(DomainError):
    """Raised when a versioned pipeline write keeps losing to other writers."""


class LockError(DomainError):
    """Raised when the shared metadata lock cannot be taken or released."""


class JobLaunchError(DomainError):
    """Raised when a remote training or inference job cannot be submitted."""


class JobStatusError(DomainError):
    """Raised when the state of a remote job cannot be determined."""


class ArtifactNotFoundError(DomainError):
    """Raised when an object-store path does not exist."""

    def __init__(self, path: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Artifact {path} not found", details)
        self.path = path


class ObjectStoreError(DomainError):
    """Raised when the artifact store fails."""


class AnalyticalStoreError(DomainError):
    """Raised when rows cannot be loaded into the analytical store."""


class MessageBusError(DomainError):
    """Raised when a history event cannot be published."""


class ForecastParseError(DomainError):
    """Raised when a forecast artifact has no usable header or rows."""
