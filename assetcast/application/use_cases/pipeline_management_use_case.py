"""
Pipeline Management Use Cases

Registration, settings updates and removal of forecasting pipelines. The
asset-type schema itself is owned elsewhere; these use cases report which
``predicted_*`` attributes the schema must gain or lose.
"""

from datetime import datetime, timezone
from typing import Callable, List, Optional

from assetcast.application.dtos.pipeline_dto import (
    PipelineCreateDTO,
    PipelineDTO,
    PipelineRegistrationDTO,
    PipelineSettingsDTO,
    SyntheticAttributesChangeDTO,
)
from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.domain.entities.errors import (
    JobLaunchError,
    JobStatusError,
    PipelineNotFoundError,
    PipelineValidationError,
)
from assetcast.domain.entities.pipeline import (
    AssetManagementData,
    Pipeline,
    compute_timestep,
)
from assetcast.domain.gateways.job_launcher import IJobLauncher
from assetcast.domain.services.attribute_classifier import (
    diff_synthetic_names,
    pipeline_synthetic_names,
)
from assetcast.domain.services.schedule_policy import initial_schedule
from assetcast.shared import get_logger

logger = get_logger(__name__)

_Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enroll(asset_id: str, now: datetime, pipeline: Pipeline) -> AssetManagementData:
    next_train, next_inference = initial_schedule(now, pipeline.forecast_start_date)
    return AssetManagementData(
        id=asset_id,
        next_train_time=next_train,
        next_inference_time=next_inference,
    )


def _validate(settings: PipelineSettingsDTO) -> None:
    predicted = {f.attribute_name for f in settings.attributes_to_predict}
    supporting = {f.attribute_name for f in settings.supporting_attributes}
    overlap = predicted & supporting
    if overlap:
        raise PipelineValidationError(
            "Attributes cannot be both predicted and supporting",
            {"attributes": sorted(overlap)},
        )
    if len(set(settings.asset_ids)) != len(settings.asset_ids):
        raise PipelineValidationError("Asset ids must be unique")


def _as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ListPipelinesUseCase:
    def __init__(self, metadata_store: PipelineMetadataStore) -> None:
        self._store = metadata_store

    async def execute(self) -> List[PipelineDTO]:
        pipelines = await self._store.list_pipelines()
        return [PipelineDTO.from_domain(p) for p in pipelines]


class GetPipelineUseCase:
    def __init__(self, metadata_store: PipelineMetadataStore) -> None:
        self._store = metadata_store

    async def execute(self, asset_type_id: str) -> PipelineDTO:
        pipeline = await self._store.get_pipeline(asset_type_id)
        if pipeline is None:
            raise PipelineNotFoundError(asset_type_id)
        return PipelineDTO.from_domain(pipeline)


class RegisterPipelineUseCase:
    """Create a pipeline and enroll its assets."""

    def __init__(
        self, metadata_store: PipelineMetadataStore, clock: _Clock = _utcnow
    ) -> None:
        self._store = metadata_store
        self._clock = clock

    async def execute(self, request: PipelineCreateDTO) -> PipelineRegistrationDTO:
        _validate(request)
        now = self._clock()
        pipeline = Pipeline(
            asset_type_id=request.asset_type_id,
            attributes_to_predict=[f.to_domain() for f in request.attributes_to_predict],
            supporting_attributes=[f.to_domain() for f in request.supporting_attributes],
            forecast_length=request.forecast_length,
            forecast_refresh_rate=request.forecast_refresh_rate,
            retrain_frequency=request.retrain_frequency,
            forecast_start_date=_as_utc(request.forecast_start_date),
            latest_settings_update=now,
        )
        pipeline.asset_management_data = [
            _enroll(asset_id, now, pipeline) for asset_id in request.asset_ids
        ]

        stored = await self._store.create_pipeline(pipeline)
        logger.info(
            "pipeline.registered",
            asset_type_id=stored.asset_type_id,
            assets=len(stored.asset_management_data),
            timestep=stored.timestep,
        )
        return PipelineRegistrationDTO(
            pipeline=PipelineDTO.from_domain(stored),
            synthetic_attributes=SyntheticAttributesChangeDTO(
                asset_type_id=stored.asset_type_id,
                to_add=pipeline_synthetic_names(stored),
            ),
        )


class UpdatePipelineSettingsUseCase:
    """
    Apply new settings to a pipeline.

    Newly listed assets are enrolled, unlisted ones dropped, and the
    lifecycle state of the remaining assets is kept.
    """

    def __init__(
        self, metadata_store: PipelineMetadataStore, clock: _Clock = _utcnow
    ) -> None:
        self._store = metadata_store
        self._clock = clock

    async def execute(
        self, asset_type_id: str, request: PipelineSettingsDTO
    ) -> PipelineRegistrationDTO:
        _validate(request)
        now = self._clock()
        change = SyntheticAttributesChangeDTO(asset_type_id=asset_type_id)

        def mutate(pipeline: Pipeline) -> bool:
            new_predict = [f.to_domain() for f in request.attributes_to_predict]
            change.to_add, change.to_remove = diff_synthetic_names(
                pipeline.attributes_to_predict, new_predict
            )
            pipeline.attributes_to_predict = new_predict
            pipeline.supporting_attributes = [
                f.to_domain() for f in request.supporting_attributes
            ]
            pipeline.forecast_length = request.forecast_length
            pipeline.forecast_refresh_rate = request.forecast_refresh_rate
            pipeline.retrain_frequency = request.retrain_frequency
            pipeline.timestep = compute_timestep(request.forecast_length)
            pipeline.forecast_start_date = _as_utc(request.forecast_start_date)
            pipeline.latest_settings_update = now

            existing = {asset.id: asset for asset in pipeline.asset_management_data}
            pipeline.asset_management_data = [
                existing.get(asset_id) or _enroll(asset_id, now, pipeline)
                for asset_id in request.asset_ids
            ]
            return True

        updated = await self._store.update_pipeline(asset_type_id, mutate)
        logger.info(
            "pipeline.updated",
            asset_type_id=asset_type_id,
            added=change.to_add,
            removed=change.to_remove,
        )
        return PipelineRegistrationDTO(
            pipeline=PipelineDTO.from_domain(updated), synthetic_attributes=change
        )


class RemovePipelineUseCase:
    """Delete a pipeline, cancelling the jobs it still has in flight."""

    def __init__(
        self, metadata_store: PipelineMetadataStore, job_launcher: IJobLauncher
    ) -> None:
        self._store = metadata_store
        self._launcher = job_launcher

    async def execute(self, asset_type_id: str) -> SyntheticAttributesChangeDTO:
        pipeline = await self._store.get_pipeline(asset_type_id)
        if pipeline is None:
            raise PipelineNotFoundError(asset_type_id)

        for asset in pipeline.asset_management_data:
            for job_name in (asset.train_job_name, asset.inference_job_name):
                if not job_name:
                    continue
                try:
                    await self._launcher.cancel_job(job_name)
                except (JobLaunchError, JobStatusError) as exc:
                    logger.warning(
                        "pipeline.cancel_failed",
                        asset_id=asset.id,
                        job_name=job_name,
                        error=exc.message,
                    )

        if not await self._store.delete_pipeline(asset_type_id):
            raise PipelineNotFoundError(asset_type_id)
        logger.info("pipeline.removed", asset_type_id=asset_type_id)
        return SyntheticAttributesChangeDTO(
            asset_type_id=asset_type_id,
            to_remove=pipeline_synthetic_names(pipeline),
        )
