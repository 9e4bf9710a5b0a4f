"""
Health domain entities.

Availability of the stores and brokers the forecast cycles depend on, and
the service metadata exposed by /info.

Critical dependencies (the metadata store and the cycle lock) take the
whole service down. The others only stop part of the forecasting work, so
losing one leaves the service DEGRADED.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class ServiceStatus(str, Enum):
    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class DependencyStatus:
    name: str
    status: ServiceStatus
    role: str = ""
    critical: bool = True
    message: Optional[str] = None
    latency_ms: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def failing(self) -> bool:
        return self.status in (ServiceStatus.DOWN, ServiceStatus.DEGRADED)


@dataclass(slots=True)
class SystemHealth:
    status: ServiceStatus
    dependencies: List[DependencyStatus] = field(default_factory=list)

    @classmethod
    def aggregate(cls, dependencies: Iterable[DependencyStatus]) -> "SystemHealth":
        """
        Derive the service status from its dependencies.

        UNKNOWN dependencies are not configured in this deployment and do not
        count. With nothing known at all the service is UNKNOWN.
        """
        dependencies = list(dependencies)
        known = [dep for dep in dependencies if dep.status is not ServiceStatus.UNKNOWN]
        if not known:
            status = ServiceStatus.UNKNOWN
        elif any(dep.critical and dep.status is ServiceStatus.DOWN for dep in known):
            status = ServiceStatus.DOWN
        elif any(dep.failing for dep in known):
            status = ServiceStatus.DEGRADED
        else:
            status = ServiceStatus.UP
        return cls(status=status, dependencies=dependencies)

    @property
    def failing(self) -> List[str]:
        return [dep.name for dep in self.dependencies if dep.failing]


@dataclass(slots=True)
class CycleSchedule:
    sync_mode: str
    scheduler_interval_minutes: int
    migration_interval_minutes: int
    migration_runtime_minutes: int


@dataclass(slots=True)
class ApplicationInfo:
    name: str
    version: str
    environment: str
    git_commit: str
    started_at: datetime
    uptime_seconds: float
    status: ServiceStatus
    cycles: CycleSchedule
    endpoints: Dict[str, str] = field(default_factory=dict)
    dependencies: List[DependencyStatus] = field(default_factory=list)
