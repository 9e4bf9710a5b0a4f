"""Celery task surfacing the current forecast values on asset records."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

from assetcast.infrastructure.services.celery_config import DISPLAY_TASK, celery_app
from assetcast.infrastructure.services.tasks.base import CallbackTask, WorkerRuntime
from assetcast.infrastructure.settings import get_settings


@celery_app.task(bind=True, base=CallbackTask, name=DISPLAY_TASK)
def display_predictions(self) -> dict[str, Any]:
    async def _run() -> int:
        runtime = WorkerRuntime(get_settings())
        try:
            return await runtime.prediction_display().execute()
        finally:
            await runtime.close()

    updated = asyncio.run(_run())
    return {"assets_updated": updated, "timestamp": datetime.now(timezone.utc).isoformat()}
