"""DTOs for the /health and /info responses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from assetcast.domain.entities.health import ServiceStatus


class DependencyStatusDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    status: ServiceStatus
    role: str = Field(default="", description="What the forecast cycles use it for")
    critical: bool = Field(
        default=True, description="Whether losing it takes the service down"
    )
    message: Optional[str] = None
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    checked_at: datetime


class SystemHealthDTO(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "status": "degraded",
                "failing": ["job_service"],
                "dependencies": [
                    {
                        "name": "metadata_store",
                        "status": "up",
                        "role": "pipelines, asset history and artifacts",
                        "critical": True,
                        "message": "MongoDB ping successful",
                        "latency_ms": 1.4,
                        "details": {"database": "assetcast"},
                        "checked_at": "2025-06-02T12:00:00Z",
                    },
                    {
                        "name": "job_service",
                        "status": "down",
                        "role": "training and inference jobs",
                        "critical": False,
                        "message": "HTTP 503",
                        "latency_ms": 88.0,
                        "details": {"status_code": 503},
                        "checked_at": "2025-06-02T12:00:00Z",
                    },
                ],
            }
        },
    )

    status: ServiceStatus = Field(description="Overall service status")
    failing: List[str] = Field(
        default_factory=list, description="Dependencies that are down or degraded"
    )
    dependencies: List[DependencyStatusDTO] = Field(default_factory=list)


class CycleScheduleDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sync_mode: str
    scheduler_interval_minutes: int
    migration_interval_minutes: int
    migration_runtime_minutes: int


class ApplicationInfoDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    version: str
    environment: str
    git_commit: str
    started_at: datetime
    uptime_seconds: float
    status: ServiceStatus
    cycles: CycleScheduleDTO
    endpoints: Dict[str, str] = Field(
        default_factory=dict, description="Broker and lock URLs without credentials"
    )
    dependencies: List[DependencyStatusDTO] = Field(default_factory=list)
