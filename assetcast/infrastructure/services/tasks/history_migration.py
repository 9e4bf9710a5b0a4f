"""Celery task streaming raw asset history to the message bus."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from assetcast.infrastructure.services.celery_config import MIGRATION_TASK, celery_app
from assetcast.infrastructure.services.tasks.base import (
    SingleFlightTask,
    WorkerRuntime,
    logger,
)
from assetcast.infrastructure.settings import get_settings
from assetcast.shared.consts import EnumSyncMode


@celery_app.task(bind=True, base=SingleFlightTask, name=MIGRATION_TASK)
def run_history_migration(self) -> dict[str, Any]:
    """Publish new history rows of every enrolled asset within the runtime budget."""

    settings = get_settings()
    if settings.forecasting.sync_mode is EnumSyncMode.BULK_LOAD:
        logger.debug("migration.disabled", sync_mode=settings.forecasting.sync_mode.value)
        return {
            "skipped": True,
            "reason": "bulk_load",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def _run() -> dict[str, Any]:
        runtime = WorkerRuntime(settings)
        try:
            report = await runtime.history_migration(guard=self.guard).execute()
            return report.to_dict()
        finally:
            await runtime.close()

    try:
        return asyncio.run(_run())
    except Exception as exc:
        logger.error("migration.failed", error=str(exc), exc_info=exc)
        raise
