"""
Domain Services Package

Pure functions over pipelines and series: attribute classification,
resampling, interpolation, scheduling rules and artifact path conventions.
"""

from . import (
    artifact_locator,
    attribute_classifier,
    interpolation,
    resampling,
    schedule_policy,
)

__all__ = [
    "artifact_locator",
    "attribute_classifier",
    "interpolation",
    "resampling",
    "schedule_policy",
]
