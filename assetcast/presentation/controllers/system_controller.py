"""Liveness and service metadata endpoints."""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Request, Response, status

from assetcast.application.dtos.health_dto import ApplicationInfoDTO, SystemHealthDTO
from assetcast.application.use_cases.health_use_cases import (
    GetApplicationInfoUseCase,
    GetHealthStatusUseCase,
)
from assetcast.domain.entities.health import ServiceStatus
from assetcast.shared import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["System"])


@router.get(
    "/health",
    response_model=SystemHealthDTO,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": SystemHealthDTO}},
)
@inject
async def health(
    response: Response,
    get_health_status_use_case: GetHealthStatusUseCase = Depends(
        Provide["get_health_status_use_case"]
    ),
) -> SystemHealthDTO:
    """
    Report dependency health.

    Answers 503 when a critical dependency is down so that orchestrators
    stop routing to the instance; a degraded service still answers 200.
    """
    report = await get_health_status_use_case.execute()
    if report.status is ServiceStatus.DOWN:
        logger.warning("health.down", failing=report.failing)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return report


@router.get("/info", response_model=ApplicationInfoDTO)
@inject
async def info(
    request: Request,
    get_application_info_use_case: GetApplicationInfoUseCase = Depends(
        Provide["get_application_info_use_case"]
    ),
) -> ApplicationInfoDTO:
    """Service version, uptime, cycle configuration and dependency health."""
    started_at = getattr(request.app.state, "started_at", None)
    return await get_application_info_use_case.execute(started_at)
