"""
Forecast Scheduler Use Case

One scheduler cycle walks every asset of every pipeline and, in order:

1. adopts a newer model checkpoint if one was produced;
2. launches training when it is due, allowed by the retrain policy, backed
   by enough history and the asset's history is synced;
3. launches inference when it is due and history is synced;
4. ingests any forecast produced by an earlier inference.

An asset whose training was just launched skips steps 3 and 4. Failures
are contained to the asset. A failed history sync only blocks the launches;
the asset still ingests forecasts that are already waiting. Changes are collected as deltas and committed
once, at the end, through the pipeline metadata store.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from assetcast.application.services.artifact_discovery import ArtifactDiscoveryService
from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.application.services.single_flight import SingleFlightGuard
from assetcast.application.use_cases.forecast_ingestion_use_case import (
    ForecastIngestionUseCase,
)
from assetcast.application.use_cases.history_sync_use_case import HistorySyncUseCase
from assetcast.domain.entities.cycle_report import SchedulerCycleReport
from assetcast.domain.entities.errors import DomainError, JobLaunchError
from assetcast.domain.entities.pipeline import AssetManagementData, AssetUpdate, Pipeline
from assetcast.domain.gateways.job_launcher import IJobLauncher
from assetcast.domain.repositories.asset_history_repository import (
    IAssetHistoryRepository,
)
from assetcast.domain.services import schedule_policy
from assetcast.shared import EnumSyncMode, get_logger

logger = get_logger(__name__)


class _AssetCycle:
    """Working copy of one asset plus the deltas recorded against it."""

    def __init__(self, pipeline: Pipeline, asset: AssetManagementData) -> None:
        self.pipeline = pipeline
        self.original = asset
        self.asset = replace(asset)
        self.fields: Dict[str, Any] = {}
        self.synced: Optional[bool] = None

    def record(self, name: str, value: Any) -> None:
        setattr(self.asset, name, value)
        self.fields[name] = value

    def update(self) -> Optional[AssetUpdate]:
        if not self.fields:
            return None
        return AssetUpdate(self.pipeline.asset_type_id, self.asset.id, dict(self.fields))


class ForecastSchedulerUseCase:
    def __init__(
        self,
        metadata_store: PipelineMetadataStore,
        history_repository: IAssetHistoryRepository,
        artifact_discovery: ArtifactDiscoveryService,
        job_launcher: IJobLauncher,
        forecast_ingestion: ForecastIngestionUseCase,
        history_sync: HistorySyncUseCase,
        *,
        sync_mode: EnumSyncMode = EnumSyncMode.MESSAGE_BUS,
        sync_tolerance: timedelta = timedelta(minutes=20),
        guard: Optional[SingleFlightGuard] = None,
        cycle_lease: timedelta = timedelta(minutes=30),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = metadata_store
        self._history = history_repository
        self._discovery = artifact_discovery
        self._launcher = job_launcher
        self._ingestion = forecast_ingestion
        self._history_sync = history_sync
        self._sync_mode = sync_mode
        self._sync_tolerance = sync_tolerance
        self._guard = guard
        self._cycle_lease = cycle_lease
        self._clock = clock

    async def execute(self) -> SchedulerCycleReport:
        if self._guard is None:
            return await self._run_cycle()

        async with self._guard.enter(
            self._store.lock_provider, lease=self._cycle_lease
        ) as acquired:
            if not acquired:
                logger.info("scheduler.cycle_skipped", guard=self._guard.key)
                return SchedulerCycleReport(started_at=self._clock(), skipped=True)
            return await self._run_cycle()

    async def _run_cycle(self) -> SchedulerCycleReport:
        now = self._clock()
        report = SchedulerCycleReport(started_at=now)
        pipelines = await self._store.list_pipelines()

        await self.cleanup_asset_models(pipelines)

        updates: List[AssetUpdate] = []
        for pipeline in pipelines:
            for asset in pipeline.asset_management_data:
                report.assets_scanned += 1
                cycle = _AssetCycle(pipeline, asset)
                try:
                    await self._process_asset(cycle, now, report)
                except Exception as exc:
                    report.assets_failed += 1
                    logger.error(
                        "scheduler.asset_failed",
                        asset_type_id=pipeline.asset_type_id,
                        asset_id=asset.id,
                        error=str(exc),
                        exc_info=exc,
                    )
                update = cycle.update()
                if update is not None:
                    updates.append(update)

        report.updated_pipelines = await self._store.commit(updates)
        logger.info("scheduler.cycle_finished", **report.to_dict())
        return report

    async def cleanup_asset_models(self, pipelines: List[Pipeline]) -> int:
        """Remove artifacts of assets that were never trained."""
        removed = 0
        for pipeline in pipelines:
            for asset in pipeline.asset_management_data:
                if asset.last_train_time is not None or asset.asset_model is not None:
                    continue
                try:
                    removed += await self._discovery.cleanup_asset_artifacts(asset.id)
                except Exception as exc:
                    logger.warning(
                        "scheduler.cleanup_failed", asset_id=asset.id, error=str(exc)
                    )
        return removed

    async def _process_asset(
        self, cycle: _AssetCycle, now: datetime, report: SchedulerCycleReport
    ) -> None:
        pipeline, asset = cycle.pipeline, cycle.asset

        new_model = await self._discovery.find_newer_model(asset)
        if new_model is not None:
            cycle.record("asset_model", new_model)
            cycle.record(
                "next_train_time",
                schedule_policy.next_train_after(
                    asset.last_train_time or now, pipeline.retrain_frequency
                ),
            )
            report.models_refreshed += 1

        if await self._training_due(cycle, now, report):
            cycle.record("last_train_time", now)
            cycle.record("next_train_time", now + schedule_policy.TRAINING_RETRY_HORIZON)
            try:
                job_name = await self._launcher.launch_training(pipeline, asset)
            except JobLaunchError as exc:
                report.launch_failures += 1
                logger.error(
                    "scheduler.training_launch_failed",
                    asset_id=asset.id,
                    error=exc.message,
                    details=exc.details,
                )
            else:
                cycle.record(
                    "next_train_time",
                    schedule_policy.next_train_after(now, pipeline.retrain_frequency),
                )
                cycle.record("train_job_name", job_name)
                report.trainings_launched += 1
                logger.info("scheduler.training_launched", asset_id=asset.id, job=job_name)
                return

        if schedule_policy.should_run_inference(asset, now) and await self._synced(
            cycle, now, report
        ):
            try:
                job_name = await self._launcher.launch_inference(pipeline, asset)
            except JobLaunchError as exc:
                report.launch_failures += 1
                logger.error(
                    "scheduler.inference_launch_failed",
                    asset_id=asset.id,
                    error=exc.message,
                    details=exc.details,
                )
            else:
                cycle.record("last_inference_time", now)
                cycle.record(
                    "next_inference_time",
                    schedule_policy.next_inference_after(now, pipeline.forecast_refresh_rate),
                )
                cycle.record("inference_job_name", job_name)
                report.inferences_launched += 1
                logger.info("scheduler.inference_launched", asset_id=asset.id, job=job_name)

        # A forecast on disk comes from the inference recorded before this cycle.
        report.forecast_rows_ingested += await self._ingestion.ingest(
            pipeline, asset.id, cycle.original.last_inference_time
        )

    async def _training_due(
        self, cycle: _AssetCycle, now: datetime, report: SchedulerCycleReport
    ) -> bool:
        pipeline, asset = cycle.pipeline, cycle.asset
        if not schedule_policy.should_run_training(asset, now):
            return False
        if not schedule_policy.training_allowed(pipeline, asset):
            return False
        oldest = await self._history.oldest_change_date(asset.id)
        if not schedule_policy.is_threshold_met(oldest, pipeline.timestep, now):
            logger.debug("scheduler.history_below_threshold", asset_id=asset.id)
            return False
        return await self._synced(cycle, now, report)

    async def _synced(
        self, cycle: _AssetCycle, now: datetime, report: SchedulerCycleReport
    ) -> bool:
        if cycle.synced is not None:
            return cycle.synced

        try:
            if self._sync_mode is EnumSyncMode.BULK_LOAD:
                watermark = await self._history_sync.sync_asset(
                    cycle.pipeline, cycle.asset, now
                )
                if watermark is not None:
                    cycle.record("last_bq_sync_time", watermark)
                cycle.synced = True
            else:
                cycle.synced = await self._history_sync.is_synced(
                    cycle.pipeline, cycle.asset, now, self._sync_tolerance
                )
        except DomainError as exc:
            # Unsynced assets launch nothing but still ingest finished forecasts.
            report.sync_failures += 1
            logger.error(
                "scheduler.history_sync_failed",
                asset_id=cycle.asset.id,
                error=exc.message,
                details=exc.details,
            )
            cycle.synced = False
        return cycle.synced
