"""Lightweight settings structures consumed by the application layer."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SystemInfo:
    """Subset of configuration required by system-related use cases."""

    title: str
    version: str
    environment: str
    git_commit: str
    sync_mode: str
    scheduler_interval_minutes: int
    migration_interval_minutes: int
    migration_runtime_minutes: int
    celery_broker_url: str
    message_bus_url: str
    redis_url: str
