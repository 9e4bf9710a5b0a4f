from __future__ import annotations

import pytest
from pydantic import ValidationError

from assetcast.application.dtos.pipeline_dto import (
    FeatureDescriptorDTO,
    PipelineCreateDTO,
    PipelineDTO,
)
from assetcast.domain.entities.pipeline import AssetManagementData, FeatureDescriptor
from tests.conftest import NOW, make_pipeline


def test_feature_descriptor_keeps_extra_fields() -> None:
    dto = FeatureDescriptorDTO(attribute_name="temp", unit="C", precision=2)

    feature = dto.to_domain()

    assert feature.extras == {"unit": "C", "precision": 2}
    assert FeatureDescriptorDTO.from_domain(feature).model_extra == {
        "unit": "C",
        "precision": 2,
    }


def test_synthetic_attributes_cannot_be_configured() -> None:
    with pytest.raises(ValidationError):
        FeatureDescriptorDTO(attribute_name="predicted_temp")


def test_create_request_needs_a_target_attribute() -> None:
    with pytest.raises(ValidationError):
        PipelineCreateDTO(asset_type_id="pump", attributes_to_predict=[])

    with pytest.raises(ValidationError):
        PipelineCreateDTO(
            asset_type_id="pump",
            attributes_to_predict=[{"attribute_name": "temp"}],
            retrain_frequency=-1,
        )


def test_pipeline_dto_from_domain() -> None:
    pipeline = make_pipeline(
        predict=[FeatureDescriptor(attribute_name="temp", extras={"unit": "C"})],
        assets=[AssetManagementData(id="a1", next_train_time=NOW)],
    )

    dto = PipelineDTO.from_domain(pipeline)

    assert dto.asset_type_id == "pump"
    assert dto.timestep == pipeline.timestep
    assert dto.asset_management_data[0].next_train_time == NOW
    assert dto.attributes_to_predict[0].model_extra == {"unit": "C"}
