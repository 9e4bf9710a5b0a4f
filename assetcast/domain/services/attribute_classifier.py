"""
Attribute classification for forecasting pipelines.

Decides which history attributes feed training and owns the naming of the
synthetic ``predicted_*`` attributes written back by forecast ingestion.
"""

from typing import Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from assetcast.domain.entities.history import ScalarValue
from assetcast.domain.entities.pipeline import FeatureDescriptor, Pipeline

SYNTHETIC_PREFIX = "predicted_"
UPPER_BOUND_SUFFIX = "_upper_bound"
LOWER_BOUND_SUFFIX = "_lower_bound"


def is_synthetic(attribute_name: str) -> bool:
    return attribute_name.startswith(SYNTHETIC_PREFIX)


def has_synthetic_values(custom_data: Mapping[str, ScalarValue]) -> bool:
    return any(is_synthetic(name) for name in custom_data)


def synthetic_names(feature_name: str) -> Tuple[str, str, str]:
    """The three attributes that carry the forecast of ``feature_name``."""
    base = f"{SYNTHETIC_PREFIX}{feature_name}"
    return base, f"{base}{UPPER_BOUND_SUFFIX}", f"{base}{LOWER_BOUND_SUFFIX}"


def synthetic_attribute_names(features: Iterable[FeatureDescriptor]) -> List[str]:
    names: List[str] = []
    for feature in features:
        names.extend(synthetic_names(feature.attribute_name))
    return names


def pipeline_synthetic_names(pipeline: Pipeline) -> List[str]:
    return synthetic_attribute_names(pipeline.attributes_to_predict)


def relevant_feature_names(pipeline: Pipeline) -> Set[str]:
    """Attribute names that may be used as training input."""
    return {
        feature.attribute_name
        for feature in pipeline.features
        if not is_synthetic(feature.attribute_name)
    }


def filter_relevant(
    custom_data: Mapping[str, ScalarValue], relevant: Set[str]
) -> dict:
    return {name: value for name, value in custom_data.items() if name in relevant}


def diff_synthetic_names(
    previous: Sequence[FeatureDescriptor], current: Sequence[FeatureDescriptor]
) -> Tuple[List[str], List[str]]:
    """
    Synthetic attributes to create and to drop when the predict list changes.

    Returns:
        ``(to_add, to_remove)``; the three names of a feature always move
        together.
    """
    before = {feature.attribute_name for feature in previous}
    after = {feature.attribute_name for feature in current}
    to_add = [
        name
        for feature in current
        if feature.attribute_name not in before
        for name in synthetic_names(feature.attribute_name)
    ]
    to_remove = [
        name
        for feature in previous
        if feature.attribute_name not in after
        for name in synthetic_names(feature.attribute_name)
    ]
    return to_add, to_remove


def synthetic_name_for_column(
    column: str, features: Sequence[FeatureDescriptor]
) -> Optional[Tuple[str, FeatureDescriptor]]:
    """
    Route a forecast output column to its synthetic attribute.

    The longest feature name contained in the column wins, so ``temp`` does
    not capture ``temp_max``. ``upper`` and ``lower`` in the column select the
    bound variants.
    """
    lowered = column.lower()
    match: Optional[FeatureDescriptor] = None
    for feature in features:
        name = feature.attribute_name.lower()
        if name and name in lowered:
            if match is None or len(name) > len(match.attribute_name):
                match = feature
    if match is None:
        return None

    base, upper, lower = synthetic_names(match.attribute_name)
    remainder = lowered.replace(match.attribute_name.lower(), "")
    if "upper" in remainder:
        return upper, match
    if "lower" in remainder:
        return lower, match
    return base, match
