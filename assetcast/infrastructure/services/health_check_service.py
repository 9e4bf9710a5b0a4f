"""Reachability checks for everything the forecast cycles talk to."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import pika
import redis.asyncio as aioredis

from assetcast.domain.entities.health import (
    DependencyStatus,
    ServiceStatus,
    SystemHealth,
)
from assetcast.domain.ports.health_check import IHealthCheckService
from assetcast.infrastructure.database.mongo_database import MongoDatabase

_Ping = Callable[[], Awaitable[Optional[Dict[str, Any]]]]


@dataclass(frozen=True)
class _Dependency:
    name: str
    role: str
    critical: bool

    def status(
        self, status: ServiceStatus, message: str, **kwargs: Any
    ) -> DependencyStatus:
        return DependencyStatus(
            name=self.name,
            status=status,
            role=self.role,
            critical=self.critical,
            message=message,
            **kwargs,
        )


METADATA_STORE = _Dependency(
    "metadata_store", "pipelines, asset history and artifacts", critical=True
)
CYCLE_LOCK = _Dependency(
    "cycle_lock", "metadata writes and single-flight cycles", critical=True
)
CYCLE_BROKER = _Dependency(
    "cycle_broker", "dispatch of scheduler and migration cycles", critical=False
)
HISTORY_BUS = _Dependency(
    "history_bus", "streaming history to the analytical store", critical=False
)
JOB_SERVICE = _Dependency("job_service", "training and inference jobs", critical=False)


class HealthCheckService(IHealthCheckService):
    """
    Checks every dependency concurrently and aggregates the result.

    A dependency without a configured URL is reported UNKNOWN. The job
    service only has to answer: it rejects unauthenticated requests, so any
    status below 500 counts as reachable.
    """

    def __init__(
        self,
        mongo_database: MongoDatabase,
        broker_url: str,
        message_bus_url: str,
        redis_url: str,
        job_service_url: str,
        *,
        http_timeout: float = 5.0,
        socket_timeout: float = 5.0,
    ) -> None:
        self._mongo_database = mongo_database
        self._broker_url = broker_url
        self._message_bus_url = message_bus_url
        self._redis_url = redis_url
        self._job_service_url = job_service_url
        self._http_timeout = http_timeout
        self._socket_timeout = socket_timeout

    async def evaluate(self) -> SystemHealth:
        dependencies: List[DependencyStatus] = await asyncio.gather(
            self._check_metadata_store(),
            self._check_amqp(CYCLE_BROKER, self._broker_url),
            self._check_amqp(HISTORY_BUS, self._message_bus_url),
            self._check_cycle_lock(),
            self._check_job_service(),
        )
        return SystemHealth.aggregate(dependencies)

    @staticmethod
    async def _timed(
        dependency: _Dependency, ping: _Ping, success: str
    ) -> DependencyStatus:
        start = perf_counter()
        try:
            details = await ping()
        except Exception as exc:
            return dependency.status(
                ServiceStatus.DOWN,
                f"{type(exc).__name__}: {exc}",
                latency_ms=(perf_counter() - start) * 1000,
            )
        return dependency.status(
            ServiceStatus.UP,
            success,
            latency_ms=(perf_counter() - start) * 1000,
            details=details or {},
        )

    async def _check_metadata_store(self) -> DependencyStatus:
        database = self._mongo_database
        if database is None:
            return METADATA_STORE.status(ServiceStatus.UNKNOWN, "Mongo not configured")

        async def _ping() -> Dict[str, Any]:
            await asyncio.to_thread(database.client.admin.command, "ping")
            return {"database": database.db.name}

        return await self._timed(METADATA_STORE, _ping, "MongoDB ping successful")

    async def _check_amqp(self, dependency: _Dependency, url: str) -> DependencyStatus:
        if not url:
            return dependency.status(ServiceStatus.UNKNOWN, "URL not configured")
        if not url.startswith("amqp"):
            return dependency.status(ServiceStatus.UNKNOWN, "Not an AMQP broker")

        def _connect() -> None:
            pika.BlockingConnection(pika.URLParameters(url)).close()

        async def _ping() -> None:
            await asyncio.to_thread(_connect)

        return await self._timed(dependency, _ping, "AMQP connection opened")

    async def _check_cycle_lock(self) -> DependencyStatus:
        if not self._redis_url:
            return CYCLE_LOCK.status(ServiceStatus.UNKNOWN, "URL not configured")

        async def _ping() -> None:
            client = aioredis.from_url(
                self._redis_url,
                socket_connect_timeout=self._socket_timeout,
                socket_timeout=self._socket_timeout,
            )
            try:
                await client.ping()
            finally:
                await client.aclose()

        return await self._timed(CYCLE_LOCK, _ping, "Redis ping successful")

    async def _check_job_service(self) -> DependencyStatus:
        if not self._job_service_url:
            return JOB_SERVICE.status(ServiceStatus.UNKNOWN, "URL not configured")

        start = perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self._http_timeout) as client:
                response = await client.get(self._job_service_url)
        except httpx.RequestError as exc:
            return JOB_SERVICE.status(
                ServiceStatus.DOWN,
                f"{type(exc).__name__}: {exc}",
                latency_ms=(perf_counter() - start) * 1000,
            )

        code = response.status_code
        return JOB_SERVICE.status(
            ServiceStatus.DOWN if code >= 500 else ServiceStatus.UP,
            f"HTTP {code}",
            latency_ms=(perf_counter() - start) * 1000,
            details={"status_code": code},
        )
