from __future__ import annotations

from assetcast.domain.entities.pipeline import FeatureDescriptor
from assetcast.domain.services import attribute_classifier as classifier
from tests.conftest import make_pipeline


def _features(*names: str) -> list[FeatureDescriptor]:
    return [FeatureDescriptor(attribute_name=name) for name in names]


def test_synthetic_names() -> None:
    assert classifier.synthetic_names("temp") == (
        "predicted_temp",
        "predicted_temp_upper_bound",
        "predicted_temp_lower_bound",
    )


def test_relevant_features_exclude_synthetic_attributes() -> None:
    pipeline = make_pipeline(
        predict=_features("temp"),
        supporting=_features("pressure", "predicted_flow"),
    )

    assert classifier.relevant_feature_names(pipeline) == {"temp", "pressure"}


def test_has_synthetic_values() -> None:
    assert classifier.has_synthetic_values({"temp": 1, "predicted_temp": 2})
    assert not classifier.has_synthetic_values({"temp": 1})


def test_diff_moves_the_three_names_together() -> None:
    to_add, to_remove = classifier.diff_synthetic_names(
        _features("temp", "pressure"), _features("pressure", "flow")
    )

    assert to_add == [
        "predicted_flow",
        "predicted_flow_upper_bound",
        "predicted_flow_lower_bound",
    ]
    assert to_remove == [
        "predicted_temp",
        "predicted_temp_upper_bound",
        "predicted_temp_lower_bound",
    ]


def test_column_routing_prefers_the_longest_feature_name() -> None:
    features = _features("temp", "temp_max")

    name, feature = classifier.synthetic_name_for_column("temp_max_upper", features)

    assert name == "predicted_temp_max_upper_bound"
    assert feature.attribute_name == "temp_max"


def test_column_routing_bounds_and_unknown_columns() -> None:
    features = _features("pressure")

    assert classifier.synthetic_name_for_column("Pressure_Lower", features)[0] == (
        "predicted_pressure_lower_bound"
    )
    assert classifier.synthetic_name_for_column("pressure", features)[0] == (
        "predicted_pressure"
    )
    assert classifier.synthetic_name_for_column("humidity", features) is None
