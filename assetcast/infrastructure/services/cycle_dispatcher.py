"""Queues forecasting cycles on the Celery workers on demand."""

from __future__ import annotations

import asyncio

import structlog
from celery import Celery

from assetcast.domain.ports.cycle_dispatcher import ICycleDispatcher
from assetcast.infrastructure.services.celery_config import (
    MIGRATION_TASK,
    SCHEDULER_TASK,
)

logger = structlog.get_logger(__name__)


class CeleryCycleDispatcher(ICycleDispatcher):
    def __init__(self, celery_app: Celery) -> None:
        self._celery_app = celery_app

    async def dispatch_scheduler_cycle(self) -> str:
        return await self._send(SCHEDULER_TASK)

    async def dispatch_migration_cycle(self) -> str:
        return await self._send(MIGRATION_TASK)

    async def _send(self, task_name: str) -> str:
        result = await asyncio.to_thread(self._celery_app.send_task, task_name)
        logger.info("celery.task_sent", task=task_name, task_id=result.id)
        return result.id
