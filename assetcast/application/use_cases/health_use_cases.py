"""Use cases behind the /health and /info endpoints."""

from datetime import datetime, timezone
from typing import Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from assetcast.application.dtos.health_dto import ApplicationInfoDTO, SystemHealthDTO
from assetcast.application.models import SystemInfo
from assetcast.domain.entities.health import ApplicationInfo, CycleSchedule
from assetcast.domain.ports.health_check import IHealthCheckService


def redact_url(url: str) -> str:
    """Drop credentials from a broker or lock URL."""
    parsed = urlsplit(url)
    if not (parsed.username or parsed.password):
        return url
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    return urlunsplit(parsed._replace(netloc=netloc))


class GetHealthStatusUseCase:
    def __init__(self, health_check_service: IHealthCheckService) -> None:
        self._health_check_service = health_check_service

    async def execute(self) -> SystemHealthDTO:
        return SystemHealthDTO.model_validate(
            await self._health_check_service.evaluate()
        )


class GetApplicationInfoUseCase:
    """Service metadata, cycle configuration and current dependency health."""

    def __init__(
        self,
        health_check_service: IHealthCheckService,
        system_info: SystemInfo,
    ) -> None:
        self._health_check_service = health_check_service
        self._info = system_info

    def _endpoints(self) -> Dict[str, str]:
        urls = {
            "celery_broker": self._info.celery_broker_url,
            "message_bus": self._info.message_bus_url,
            "redis": self._info.redis_url,
        }
        return {name: redact_url(url) for name, url in urls.items() if url}

    async def execute(self, started_at: Optional[datetime]) -> ApplicationInfoDTO:
        system_health = await self._health_check_service.evaluate()
        now = datetime.now(timezone.utc)
        started = started_at or now

        info = ApplicationInfo(
            name=self._info.title,
            version=self._info.version,
            environment=self._info.environment,
            git_commit=self._info.git_commit,
            started_at=started,
            uptime_seconds=max(0.0, (now - started).total_seconds()),
            status=system_health.status,
            cycles=CycleSchedule(
                sync_mode=self._info.sync_mode,
                scheduler_interval_minutes=self._info.scheduler_interval_minutes,
                migration_interval_minutes=self._info.migration_interval_minutes,
                migration_runtime_minutes=self._info.migration_runtime_minutes,
            ),
            endpoints=self._endpoints(),
            dependencies=system_health.dependencies,
        )
        return ApplicationInfoDTO.model_validate(info)
