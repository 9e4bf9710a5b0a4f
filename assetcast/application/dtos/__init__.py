"""
Application DTOs Package

Pydantic contracts between the REST layer and the use cases.
"""

from .health_dto import (
    ApplicationInfoDTO,
    CycleScheduleDTO,
    DependencyStatusDTO,
    SystemHealthDTO,
)
from .pipeline_dto import (
    AssetManagementDataDTO,
    CycleDispatchDTO,
    FeatureDescriptorDTO,
    PipelineCreateDTO,
    PipelineDTO,
    PipelineRegistrationDTO,
    PipelineSettingsDTO,
    SyntheticAttributesChangeDTO,
)

__all__ = [
    "ApplicationInfoDTO",
    "AssetManagementDataDTO",
    "CycleDispatchDTO",
    "CycleScheduleDTO",
    "DependencyStatusDTO",
    "FeatureDescriptorDTO",
    "PipelineCreateDTO",
    "PipelineDTO",
    "PipelineRegistrationDTO",
    "PipelineSettingsDTO",
    "SyntheticAttributesChangeDTO",
    "SystemHealthDTO",
]
