"""Celery task running the forecast scheduler cycle."""

from __future__ import annotations

import asyncio
from typing import Any

from assetcast.infrastructure.services.celery_config import SCHEDULER_TASK, celery_app
from assetcast.infrastructure.services.tasks.base import (
    SingleFlightTask,
    WorkerRuntime,
    logger,
)
from assetcast.infrastructure.settings import get_settings


@celery_app.task(bind=True, base=SingleFlightTask, name=SCHEDULER_TASK)
def run_forecast_scheduler(self) -> dict[str, Any]:
    """Scan every pipeline, launch due jobs and ingest finished forecasts."""

    async def _run() -> dict[str, Any]:
        runtime = WorkerRuntime(get_settings())
        try:
            report = await runtime.forecast_scheduler(guard=self.guard).execute()
            return report.to_dict()
        finally:
            await runtime.close()

    try:
        return asyncio.run(_run())
    except Exception as exc:
        logger.error("forecast.scheduler.failed", error=str(exc), exc_info=exc)
        raise
