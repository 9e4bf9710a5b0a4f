"""
Presentation Layer - Pipelines Controller

CRUD over forecasting pipelines and on-demand triggers of the background
cycles.
"""

from typing import List

import structlog
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, status

from assetcast.application.dtos.pipeline_dto import (
    CycleDispatchDTO,
    PipelineCreateDTO,
    PipelineDTO,
    PipelineRegistrationDTO,
    PipelineSettingsDTO,
    SyntheticAttributesChangeDTO,
)
from assetcast.application.use_cases.cycle_dispatch_use_cases import (
    TriggerMigrationCycleUseCase,
    TriggerSchedulerCycleUseCase,
)
from assetcast.application.use_cases.pipeline_management_use_case import (
    GetPipelineUseCase,
    ListPipelinesUseCase,
    RegisterPipelineUseCase,
    RemovePipelineUseCase,
    UpdatePipelineSettingsUseCase,
)
from assetcast.domain.entities.errors import (
    DomainError,
    LockError,
    PipelineAlreadyExistsError,
    PipelineConflictError,
    PipelineNotFoundError,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/pipelines", tags=["pipelines"])


def _http_error(exc: DomainError) -> HTTPException:
    if isinstance(exc, PipelineNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, (PipelineAlreadyExistsError, PipelineConflictError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.message)
    if isinstance(exc, LockError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.message
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


@router.get(
    "",
    response_model=List[PipelineDTO],
    summary="List forecasting pipelines",
)
@inject
async def list_pipelines(
    use_case: ListPipelinesUseCase = Depends(Provide["list_pipelines_use_case"]),
) -> List[PipelineDTO]:
    try:
        return await use_case.execute()
    except Exception as e:
        logger.error("Unexpected error listing pipelines", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get(
    "/{asset_type_id}",
    response_model=PipelineDTO,
    summary="Get the pipeline of an asset type",
)
@inject
async def get_pipeline(
    asset_type_id: str,
    use_case: GetPipelineUseCase = Depends(Provide["get_pipeline_use_case"]),
) -> PipelineDTO:
    try:
        return await use_case.execute(asset_type_id)
    except DomainError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.error(
            "Unexpected error getting pipeline", asset_type_id=asset_type_id, error=str(e)
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "",
    response_model=PipelineRegistrationDTO,
    status_code=status.HTTP_201_CREATED,
    summary="Register a forecasting pipeline",
    description="""
    Create the pipeline of an asset type and enroll its assets.

    The response lists the synthetic `predicted_*` attributes the asset type
    schema must provide before forecasts can be written.
    """,
)
@inject
async def register_pipeline(
    request: PipelineCreateDTO,
    use_case: RegisterPipelineUseCase = Depends(Provide["register_pipeline_use_case"]),
) -> PipelineRegistrationDTO:
    try:
        return await use_case.execute(request)
    except DomainError as e:
        logger.warning(
            "pipeline.register_rejected",
            asset_type_id=request.asset_type_id,
            error=e.message,
        )
        raise _http_error(e) from e
    except Exception as e:
        logger.error(
            "Unexpected error registering pipeline",
            asset_type_id=request.asset_type_id,
            error=str(e),
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put(
    "/{asset_type_id}",
    response_model=PipelineRegistrationDTO,
    summary="Update pipeline settings",
)
@inject
async def update_pipeline(
    asset_type_id: str,
    request: PipelineSettingsDTO,
    use_case: UpdatePipelineSettingsUseCase = Depends(
        Provide["update_pipeline_settings_use_case"]
    ),
) -> PipelineRegistrationDTO:
    try:
        return await use_case.execute(asset_type_id, request)
    except DomainError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.error(
            "Unexpected error updating pipeline",
            asset_type_id=asset_type_id,
            error=str(e),
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete(
    "/{asset_type_id}",
    response_model=SyntheticAttributesChangeDTO,
    summary="Remove a forecasting pipeline",
)
@inject
async def remove_pipeline(
    asset_type_id: str,
    use_case: RemovePipelineUseCase = Depends(Provide["remove_pipeline_use_case"]),
) -> SyntheticAttributesChangeDTO:
    try:
        return await use_case.execute(asset_type_id)
    except DomainError as e:
        raise _http_error(e) from e
    except Exception as e:
        logger.error(
            "Unexpected error removing pipeline",
            asset_type_id=asset_type_id,
            error=str(e),
        )
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/cycles/scheduler",
    response_model=CycleDispatchDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a forecast scheduler cycle",
)
@inject
async def trigger_scheduler_cycle(
    use_case: TriggerSchedulerCycleUseCase = Depends(
        Provide["trigger_scheduler_cycle_use_case"]
    ),
) -> CycleDispatchDTO:
    try:
        return await use_case.execute()
    except Exception as e:
        logger.error("Unexpected error queueing scheduler cycle", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post(
    "/cycles/migration",
    response_model=CycleDispatchDTO,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a history migration cycle",
)
@inject
async def trigger_migration_cycle(
    use_case: TriggerMigrationCycleUseCase = Depends(
        Provide["trigger_migration_cycle_use_case"]
    ),
) -> CycleDispatchDTO:
    try:
        return await use_case.execute()
    except Exception as e:
        logger.error("Unexpected error queueing migration cycle", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
