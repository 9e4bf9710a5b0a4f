"""
History Migration Use Case

Streams raw asset history onto the message bus, from each asset's watermark
up to the moment the cycle started. The cycle has a wall-clock budget tied to
its trigger interval: once it is spent no further page is read, and the next
trigger resumes from the watermarks committed by this one.

Watermarks are tracked locally and committed once, at the end of the cycle,
through the pipeline metadata store.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.application.services.single_flight import SingleFlightGuard
from assetcast.domain.entities.cycle_report import MigrationCycleReport
from assetcast.domain.entities.errors import MessageBusError
from assetcast.domain.entities.pipeline import AssetManagementData, AssetUpdate, Pipeline
from assetcast.domain.gateways.message_bus import IMessageBus
from assetcast.domain.repositories.asset_history_repository import (
    IAssetHistoryRepository,
)
from assetcast.domain.services.attribute_classifier import (
    filter_relevant,
    has_synthetic_values,
    relevant_feature_names,
)
from assetcast.shared import get_logger

logger = get_logger(__name__)

HISTORY_TOPIC = "asset-history/raw"
MAX_CONSECUTIVE_PUBLISH_FAILURES = 5
# Time left after the budget for the page in flight and the commit.
LEASE_MARGIN = timedelta(minutes=5)

# asset_type_id, asset_id -> latest published change date
LocalSyncTracker = Dict[Tuple[str, str], datetime]


@dataclass
class _AssetOutcome:
    watermark: Optional[datetime] = None
    published: int = 0
    aborted: bool = False
    budget_exhausted: bool = False


def migration_order(item: Tuple[Pipeline, AssetManagementData]) -> tuple:
    """Most recently synced first, never-synced assets last."""
    watermark = item[1].last_bq_sync_time
    if watermark is None:
        return (1, 0.0)
    return (0, -watermark.timestamp())


class HistoryMigrationUseCase:
    def __init__(
        self,
        metadata_store: PipelineMetadataStore,
        history_repository: IAssetHistoryRepository,
        message_bus: IMessageBus,
        *,
        topic: str = HISTORY_TOPIC,
        page_size: int = 1000,
        runtime_budget: timedelta = timedelta(minutes=15),
        page_pause_seconds: float = 0.05,
        guard: Optional[SingleFlightGuard] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = metadata_store
        self._history = history_repository
        self._bus = message_bus
        self._topic = topic
        self._page_size = page_size
        self._budget_seconds = runtime_budget.total_seconds()
        self._lease = runtime_budget + LEASE_MARGIN
        self._page_pause_seconds = page_pause_seconds
        self._guard = guard
        self._clock = clock
        self._monotonic = monotonic

    async def execute(self) -> MigrationCycleReport:
        if self._guard is None:
            return await self._run_cycle()

        async with self._guard.enter(
            self._store.lock_provider, lease=self._lease
        ) as acquired:
            if not acquired:
                logger.info("migration.cycle_skipped", guard=self._guard.key)
                return MigrationCycleReport(started_at=self._clock(), skipped=True)
            return await self._run_cycle()

    async def _run_cycle(self) -> MigrationCycleReport:
        now = self._clock()
        deadline = self._monotonic() + self._budget_seconds
        report = MigrationCycleReport(started_at=now)
        tracker: LocalSyncTracker = {}

        pipelines = await self._store.list_pipelines()
        work = [
            (pipeline, asset)
            for pipeline in pipelines
            for asset in pipeline.asset_management_data
        ]
        work.sort(key=migration_order)
        logger.info("migration.cycle_started", assets=len(work))

        try:
            for pipeline, asset in work:
                if self._monotonic() >= deadline:
                    report.budget_exhausted = True
                    break
                try:
                    outcome = await self._migrate_asset(pipeline, asset, now, deadline)
                except Exception as exc:
                    report.assets_failed += 1
                    logger.error(
                        "migration.asset_failed",
                        asset_type_id=pipeline.asset_type_id,
                        asset_id=asset.id,
                        error=str(exc),
                        exc_info=exc,
                    )
                    continue

                report.assets_processed += 1
                report.rows_published += outcome.published
                if outcome.aborted:
                    report.assets_aborted += 1
                if outcome.watermark is not None:
                    tracker[(pipeline.asset_type_id, asset.id)] = outcome.watermark
                if outcome.budget_exhausted:
                    report.budget_exhausted = True
                    break
        finally:
            report.updated_pipelines = await self._commit(tracker)

        report.finished_at = self._clock()
        logger.info("migration.cycle_finished", **report.to_dict())
        return report

    async def _migrate_asset(
        self,
        pipeline: Pipeline,
        asset: AssetManagementData,
        now: datetime,
        deadline: float,
    ) -> _AssetOutcome:
        outcome = _AssetOutcome()
        watermark = asset.last_bq_sync_time
        if watermark is not None and watermark >= now:
            return outcome

        relevant = relevant_feature_names(pipeline)
        consecutive_failures = 0
        # non-empty pages read so far
        pages = 0
        skip = 0

        while True:
            if self._monotonic() >= deadline:
                outcome.budget_exhausted = True
                break

            rows = await self._history.find_page(
                asset.id, watermark, now, skip=skip, limit=self._page_size
            )
            if rows:
                pages += 1

            for row in rows:
                if has_synthetic_values(row.custom_data):
                    continue
                data = filter_relevant(row.custom_data, relevant)
                if not data:
                    continue
                try:
                    await self._publish(pipeline, asset.id, row.change_date, data)
                except MessageBusError as exc:
                    consecutive_failures += 1
                    logger.warning(
                        "migration.publish_failed",
                        asset_id=asset.id,
                        change_date=row.change_date.isoformat(),
                        consecutive=consecutive_failures,
                        error=exc.message,
                    )
                    if consecutive_failures >= MAX_CONSECUTIVE_PUBLISH_FAILURES:
                        logger.error("migration.asset_aborted", asset_id=asset.id)
                        outcome.aborted = True
                        return outcome
                    continue
                consecutive_failures = 0
                outcome.published += 1
                outcome.watermark = row.change_date

            if len(rows) < self._page_size:
                if pages > 1:
                    await self._seed_catch_up_watermark(asset.id, now, outcome)
                break

            skip += self._page_size
            await asyncio.sleep(self._page_pause_seconds)

        return outcome

    async def _seed_catch_up_watermark(
        self, asset_id: str, now: datetime, outcome: _AssetOutcome
    ) -> None:
        latest = await self._history.latest_change_date(asset_id)
        if latest is None:
            return
        seeded = min(latest, now)
        if outcome.watermark is None or seeded > outcome.watermark:
            logger.info(
                "migration.catch_up_watermark",
                asset_id=asset_id,
                watermark=seeded.isoformat(),
            )
            outcome.watermark = seeded

    async def _publish(
        self,
        pipeline: Pipeline,
        asset_id: str,
        change_date: datetime,
        data: dict,
    ) -> None:
        timestamp = change_date.isoformat()
        await self._bus.publish(
            self._topic,
            {
                "date_time": timestamp,
                "asset_type_id": pipeline.asset_type_id,
                "asset_id": asset_id,
                "data": data,
            },
            {
                "asset_type_id": pipeline.asset_type_id,
                "asset_id": asset_id,
                "change_date": timestamp,
            },
        )

    async def _commit(self, tracker: LocalSyncTracker) -> List[str]:
        if not tracker:
            return []
        updates = [
            AssetUpdate(asset_type_id, asset_id, {"last_bq_sync_time": watermark})
            for (asset_type_id, asset_id), watermark in tracker.items()
        ]
        return await self._store.commit(updates)
