"""
Domain Gateway - Remote Job Launcher

Submits training and inference jobs to the external ML service and reports
their state.
"""

from abc import ABC, abstractmethod

from assetcast.domain.entities.jobs import JobState
from assetcast.domain.entities.pipeline import AssetManagementData, Pipeline


class IJobLauncher(ABC):
    """Interface for the remote training/inference service."""

    @abstractmethod
    async def launch_training(
        self, pipeline: Pipeline, asset: AssetManagementData
    ) -> str:
        """
        Submit a training job for one asset.

        Returns:
            Identifier of the submitted job

        Raises:
            JobLaunchError: When the submission is rejected or fails
        """

    @abstractmethod
    async def launch_inference(
        self, pipeline: Pipeline, asset: AssetManagementData
    ) -> str:
        """
        Submit an inference job using ``asset.asset_model``.

        Raises:
            JobLaunchError: When the submission is rejected or fails
        """

    @abstractmethod
    async def get_job_state(self, job_name: str) -> JobState:
        """
        Current state of a submitted job.

        Raises:
            JobStatusError: When the state cannot be retrieved
        """

    @abstractmethod
    async def cancel_job(self, job_name: str) -> None:
        """Cancel a job. A job that no longer exists counts as cancelled."""
