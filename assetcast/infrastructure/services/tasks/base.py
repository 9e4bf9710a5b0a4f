"""Shared Celery infrastructure components."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

import structlog
from celery import Task

from assetcast.application.services.artifact_discovery import ArtifactDiscoveryService
from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.application.services.single_flight import SingleFlightGuard
from assetcast.application.use_cases.forecast_ingestion_use_case import (
    ForecastIngestionUseCase,
)
from assetcast.application.use_cases.forecast_scheduler_use_case import (
    ForecastSchedulerUseCase,
)
from assetcast.application.use_cases.history_migration_use_case import (
    HistoryMigrationUseCase,
)
from assetcast.application.use_cases.history_sync_use_case import HistorySyncUseCase
from assetcast.application.use_cases.prediction_display_use_case import (
    DisplayPredictionsUseCase,
)
from assetcast.infrastructure.database.mongo_database import MongoDatabase
from assetcast.infrastructure.gateways.bigquery_loader import BigQueryLoader
from assetcast.infrastructure.gateways.gridfs_object_store import GridFSObjectStore
from assetcast.infrastructure.gateways.rabbitmq_message_bus import RabbitMQMessageBus
from assetcast.infrastructure.gateways.vertex_job_launcher import VertexJobLauncher
from assetcast.infrastructure.repositories.asset_history_repository import (
    AssetHistoryRepository,
)
from assetcast.infrastructure.repositories.asset_repository import AssetRepository
from assetcast.infrastructure.repositories.pipeline_repository import (
    PipelineRepository,
)
from assetcast.infrastructure.services.redis_lock import RedisLockProvider
from assetcast.infrastructure.settings import InfrastructureSettings

logger = structlog.get_logger(__name__)


class CallbackTask(Task):
    """Base task class that centralizes logging behaviour."""

    def on_success(self, retval, task_id, args, kwargs):
        logger.info("task.succeeded", task_id=task_id, result=retval)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            "task.failed",
            task_id=task_id,
            error=str(exc),
            traceback=einfo.traceback,
            exc_info=exc,
        )


class SingleFlightTask(CallbackTask):
    """
    Task owning the guard of its cycle.

    Celery keeps one instance of a task per worker process, so the guard
    outlives individual runs and an overlapping beat is skipped.
    """

    abstract = True
    _guard: Optional[SingleFlightGuard] = None

    @property
    def guard(self) -> SingleFlightGuard:
        if self._guard is None:
            self._guard = SingleFlightGuard(self.name)
        return self._guard


class WorkerRuntime:
    """Collaborators of one task run, built from infrastructure settings."""

    def __init__(self, settings: InfrastructureSettings) -> None:
        self.settings = settings
        forecasting = settings.forecasting

        self.database = MongoDatabase(
            mongo_uri=settings.database.mongo_uri,
            db_name=settings.database.database_name,
        )
        self.lock_provider = RedisLockProvider(
            settings.redis.url,
            key_prefix=settings.redis.key_prefix,
            timeout=settings.redis.lock_timeout_seconds,
            blocking_timeout=settings.redis.lock_blocking_timeout_seconds,
        )
        self.metadata_store = PipelineMetadataStore(
            PipelineRepository(self.database), self.lock_provider
        )
        self.history_repository = AssetHistoryRepository(self.database)
        self.asset_repository = AssetRepository(self.database)
        self.job_launcher = VertexJobLauncher(
            endpoint=forecasting.resolved_vertex_endpoint,
            project_id=forecasting.project_id,
            location=forecasting.location,
            dataset_id=forecasting.dataset_id,
            table_id=forecasting.table_id,
            system_key=forecasting.system_key,
            script_path=forecasting.script_path,
            output_directory=forecasting.output_directory,
            service_account=forecasting.service_account,
            training_template_uri=forecasting.training_template_uri,
            inference_template_uri=forecasting.inference_template_uri,
            access_token=forecasting.access_token,
            timeout=forecasting.http_timeout_seconds,
        )
        self.message_bus: Optional[RabbitMQMessageBus] = None

    def forecast_scheduler(
        self, guard: Optional[SingleFlightGuard] = None
    ) -> ForecastSchedulerUseCase:
        forecasting = self.settings.forecasting
        discovery = ArtifactDiscoveryService(
            GridFSObjectStore(self.database, self.settings.database.artifact_bucket),
            self.job_launcher,
            forecasting.artifact_uri_prefix,
        )
        loader = BigQueryLoader(
            endpoint=forecasting.bigquery_endpoint,
            project_id=forecasting.project_id,
            dataset_id=forecasting.dataset_id,
            table_id=forecasting.table_id,
            access_token=forecasting.access_token,
            timeout=forecasting.http_timeout_seconds,
        )
        return ForecastSchedulerUseCase(
            metadata_store=self.metadata_store,
            history_repository=self.history_repository,
            artifact_discovery=discovery,
            job_launcher=self.job_launcher,
            forecast_ingestion=ForecastIngestionUseCase(
                discovery,
                self.history_repository,
                insert_batch_size=forecasting.insert_batch_size,
            ),
            history_sync=HistorySyncUseCase(
                self.history_repository,
                loader,
                page_size=forecasting.history_page_size,
            ),
            sync_mode=forecasting.sync_mode,
            sync_tolerance=timedelta(
                minutes=forecasting.sync_freshness_tolerance_minutes
            ),
            guard=guard,
            cycle_lease=timedelta(minutes=forecasting.scheduler_lease_minutes),
        )

    def history_migration(
        self, guard: Optional[SingleFlightGuard] = None
    ) -> HistoryMigrationUseCase:
        forecasting = self.settings.forecasting
        self.message_bus = RabbitMQMessageBus(
            self.settings.bus.url, exchange=self.settings.bus.exchange
        )
        return HistoryMigrationUseCase(
            metadata_store=self.metadata_store,
            history_repository=self.history_repository,
            message_bus=self.message_bus,
            topic=self.settings.bus.topic,
            page_size=forecasting.history_page_size,
            runtime_budget=timedelta(minutes=forecasting.migration_runtime_minutes),
            page_pause_seconds=forecasting.migration_page_pause_seconds,
            guard=guard,
        )

    def prediction_display(self) -> DisplayPredictionsUseCase:
        return DisplayPredictionsUseCase(
            metadata_store=self.metadata_store,
            history_repository=self.history_repository,
            asset_repository=self.asset_repository,
        )

    async def close(self) -> None:
        if self.message_bus is not None:
            await self.message_bus.close()
        self.database.close()
