"""
Domain Entities - Remote Jobs

States of the training and inference jobs submitted to the ML service.
"""

from enum import Enum


class JobKind(str, Enum):
    TRAINING = "train"
    INFERENCE = "inference"


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def is_active(self) -> bool:
        return self in (JobState.PENDING, JobState.RUNNING)
