"""
Dependency container injection module - Main Layer

This module implements the dependency injection container
to simplify the management and lifecycle of dependencies
in the application.
"""

from contextlib import asynccontextmanager

from dependency_injector import containers, providers

from assetcast.application.models import SystemInfo
from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.application.use_cases.cycle_dispatch_use_cases import (
    TriggerMigrationCycleUseCase,
    TriggerSchedulerCycleUseCase,
)
from assetcast.application.use_cases.health_use_cases import (
    GetApplicationInfoUseCase,
    GetHealthStatusUseCase,
)
from assetcast.application.use_cases.pipeline_management_use_case import (
    GetPipelineUseCase,
    ListPipelinesUseCase,
    RegisterPipelineUseCase,
    RemovePipelineUseCase,
    UpdatePipelineSettingsUseCase,
)
from assetcast.infrastructure.database import MongoDatabase
from assetcast.infrastructure.gateways.vertex_job_launcher import VertexJobLauncher
from assetcast.infrastructure.repositories.pipeline_repository import (
    PipelineRepository,
)
from assetcast.infrastructure.services.celery_config import create_celery_app
from assetcast.infrastructure.services.cycle_dispatcher import CeleryCycleDispatcher
from assetcast.infrastructure.services.health_check_service import HealthCheckService
from assetcast.infrastructure.services.redis_lock import RedisLockProvider
from assetcast.shared import get_logger

from .config import AppSettings

logger = get_logger(__name__)


def _enum_value(value) -> str:
    return value.value if hasattr(value, "value") else str(value)


def _vertex_endpoint(endpoint, location) -> str:
    return endpoint or f"https://{location}-aiplatform.googleapis.com/v1"


class AppContainer(containers.DeclarativeContainer):
    """Composition Root using dependency-injector."""

    wiring_config = containers.WiringConfiguration(packages=["..presentation"])

    # Settings
    config = providers.Configuration()

    # Infrastructure
    mongo_database = providers.Singleton(
        MongoDatabase,
        mongo_uri=config.database.mongo_uri,
        db_name=config.database.database_name,
    )

    lock_provider = providers.Singleton(
        RedisLockProvider,
        redis_url=config.redis.url,
        key_prefix=config.redis.key_prefix,
        timeout=config.redis.lock_timeout_seconds,
        blocking_timeout=config.redis.lock_blocking_timeout_seconds,
    )

    pipeline_repository = providers.Singleton(
        PipelineRepository,
        database=mongo_database,
    )

    metadata_store = providers.Singleton(
        PipelineMetadataStore,
        repository=pipeline_repository,
        lock_provider=lock_provider,
    )

    job_launcher = providers.Singleton(
        VertexJobLauncher,
        endpoint=providers.Callable(
            _vertex_endpoint,
            config.forecasting.vertex_endpoint,
            config.forecasting.location,
        ),
        project_id=config.forecasting.project_id,
        location=config.forecasting.location,
        dataset_id=config.forecasting.dataset_id,
        table_id=config.forecasting.table_id,
        system_key=config.forecasting.system_key,
        script_path=config.forecasting.script_path,
        output_directory=config.forecasting.output_directory,
        service_account=config.forecasting.service_account,
        training_template_uri=config.forecasting.training_template_uri,
        inference_template_uri=config.forecasting.inference_template_uri,
        access_token=config.forecasting.access_token,
        timeout=config.forecasting.http_timeout_seconds,
    )

    celery_app = providers.Singleton(
        create_celery_app,
        broker_url=config.celery.broker_url,
        backend_url=config.celery.result_backend_url,
    )

    cycle_dispatcher = providers.Singleton(
        CeleryCycleDispatcher,
        celery_app=celery_app,
    )

    health_check_service = providers.Singleton(
        HealthCheckService,
        mongo_database=mongo_database,
        broker_url=config.celery.broker_url,
        message_bus_url=config.bus.url,
        redis_url=config.redis.url,
        job_service_url=providers.Callable(
            _vertex_endpoint,
            config.forecasting.vertex_endpoint,
            config.forecasting.location,
        ),
    )

    system_info = providers.Singleton(
        SystemInfo,
        title=config.service.title,
        version=config.service.version,
        environment=providers.Callable(_enum_value, config.environment),
        git_commit=config.service.git_commit,
        sync_mode=providers.Callable(_enum_value, config.forecasting.sync_mode),
        scheduler_interval_minutes=config.forecasting.scheduler_interval_minutes,
        migration_interval_minutes=config.forecasting.migration_interval_minutes,
        migration_runtime_minutes=config.forecasting.migration_runtime_minutes,
        celery_broker_url=config.celery.broker_url,
        message_bus_url=config.bus.url,
        redis_url=config.redis.url,
    )

    # Application (use cases)
    get_health_status_use_case = providers.Factory(
        GetHealthStatusUseCase,
        health_check_service=health_check_service,
    )

    get_application_info_use_case = providers.Factory(
        GetApplicationInfoUseCase,
        health_check_service=health_check_service,
        system_info=system_info,
    )

    list_pipelines_use_case = providers.Factory(
        ListPipelinesUseCase,
        metadata_store=metadata_store,
    )

    get_pipeline_use_case = providers.Factory(
        GetPipelineUseCase,
        metadata_store=metadata_store,
    )

    register_pipeline_use_case = providers.Factory(
        RegisterPipelineUseCase,
        metadata_store=metadata_store,
    )

    update_pipeline_settings_use_case = providers.Factory(
        UpdatePipelineSettingsUseCase,
        metadata_store=metadata_store,
    )

    remove_pipeline_use_case = providers.Factory(
        RemovePipelineUseCase,
        metadata_store=metadata_store,
        job_launcher=job_launcher,
    )

    trigger_scheduler_cycle_use_case = providers.Factory(
        TriggerSchedulerCycleUseCase,
        cycle_dispatcher=cycle_dispatcher,
    )

    trigger_migration_cycle_use_case = providers.Factory(
        TriggerMigrationCycleUseCase,
        cycle_dispatcher=cycle_dispatcher,
    )


# -------------------------
# Global Container Instance
# -------------------------
_app_container: AppContainer | None = None


def init_container(settings: AppSettings) -> AppContainer:
    """Initialize global container with application settings."""

    global _app_container

    container = AppContainer()
    container.config.from_pydantic(settings)
    _app_container = container
    return container


def get_container() -> AppContainer:
    """Get the initialized global container."""

    if _app_container is None:
        raise RuntimeError("Container has not been initialized yet")

    return _app_container


@asynccontextmanager
async def app_lifespan():
    """
    Centralized lifecycle management for external resources.

    Used by the FastAPI lifespan to create the Mongo indexes on startup and
    release the client on shutdown.
    """
    container = get_container()
    mongo_database = container.mongo_database()

    try:
        logger.info("container.mongo.ensure_connection")
        await mongo_database.create_indexes()
        logger.info("container.resources.initialized")
        yield container
    finally:
        logger.info("container.mongo.close")
        mongo_database.close()
        logger.info("container.resources.shutdown")
