"""
Infrastructure Gateway - Vertex AI pipeline jobs

Submits training and inference pipeline jobs through the Vertex AI REST API
and reads back their state.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import httpx
import structlog

from assetcast.domain.entities.errors import JobLaunchError, JobStatusError
from assetcast.domain.entities.jobs import JobKind, JobState
from assetcast.domain.entities.pipeline import AssetManagementData, Pipeline
from assetcast.domain.gateways.job_launcher import IJobLauncher
from assetcast.domain.services import artifact_locator

logger = structlog.get_logger(__name__)

_STATE_MAP = {
    "PIPELINE_STATE_QUEUED": JobState.PENDING,
    "PIPELINE_STATE_PENDING": JobState.PENDING,
    "PIPELINE_STATE_RUNNING": JobState.RUNNING,
    "PIPELINE_STATE_CANCELLING": JobState.RUNNING,
    "PIPELINE_STATE_PAUSED": JobState.RUNNING,
    "PIPELINE_STATE_SUCCEEDED": JobState.SUCCEEDED,
    "PIPELINE_STATE_FAILED": JobState.FAILED,
    "PIPELINE_STATE_CANCELLED": JobState.CANCELLED,
}

_OUTPUT_PREFIXES = {
    JobKind.TRAINING: artifact_locator.models_prefix,
    JobKind.INFERENCE: artifact_locator.forecasts_prefix,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _quote_sql(value: str) -> str:
    return value.replace("'", "''")


class VertexJobLauncher(IJobLauncher):
    """Implementation of the job launcher using the pipelineJobs API."""

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        location: str,
        dataset_id: str,
        table_id: str,
        system_key: str,
        script_path: str,
        output_directory: str,
        service_account: str,
        training_template_uri: str,
        inference_template_uri: str,
        access_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the launcher.

        Args:
            endpoint: Vertex AI REST root, e.g. "https://us-central1-aiplatform.googleapis.com/v1"
            project_id: Cloud project owning the jobs and the history table
            location: Region of the jobs
            dataset_id: Analytical dataset holding the history table
            table_id: History table the jobs read from
            system_key: Namespace of this deployment's artifacts
            script_path: Location of the training/inference script
            output_directory: Root the jobs write their artifacts under
            service_account: Identity the jobs run as
            training_template_uri: Compiled training pipeline template
            inference_template_uri: Compiled inference pipeline template
            access_token: Bearer token for the API
            timeout: Request timeout in seconds
        """
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.location = location
        self.dataset_id = dataset_id
        self.table_id = table_id
        self.system_key = system_key
        self.script_path = script_path
        self.output_directory = output_directory.rstrip("/")
        self.service_account = service_account
        self.templates = {
            JobKind.TRAINING: training_template_uri,
            JobKind.INFERENCE: inference_template_uri,
        }
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._clock = clock

    @property
    def jobs_url(self) -> str:
        return (
            f"{self.endpoint}/projects/{self.project_id}"
            f"/locations/{self.location}/pipelineJobs"
        )

    async def launch_training(
        self, pipeline: Pipeline, asset: AssetManagementData
    ) -> str:
        return await self._launch(JobKind.TRAINING, pipeline, asset)

    async def launch_inference(
        self, pipeline: Pipeline, asset: AssetManagementData
    ) -> str:
        if not asset.asset_model:
            raise JobLaunchError(
                f"Asset {asset.id} has no model to run inference with",
                {"asset_id": asset.id},
            )
        return await self._launch(JobKind.INFERENCE, pipeline, asset)

    async def get_job_state(self, job_name: str) -> JobState:
        try:
            async with self._client() as client:
                response = await client.get(self._job_url(job_name))
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "vertex.job_state_http_error",
                job_name=job_name,
                status_code=e.response.status_code,
            )
            raise JobStatusError(
                f"Job state lookup failed with HTTP {e.response.status_code}",
                {"job_name": job_name},
            ) from e
        except httpx.RequestError as e:
            logger.error("vertex.job_state_request_error", job_name=job_name, error=str(e))
            raise JobStatusError(
                f"Job state lookup failed: {e}", {"job_name": job_name}
            ) from e

        state = response.json().get("state", "")
        return _STATE_MAP.get(state, JobState.UNKNOWN)

    async def cancel_job(self, job_name: str) -> None:
        try:
            async with self._client() as client:
                response = await client.delete(self._job_url(job_name))
                if response.status_code == 404:
                    logger.info("vertex.cancel_missing_job", job_name=job_name)
                    return
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise JobStatusError(
                f"Job cancellation failed with HTTP {e.response.status_code}",
                {"job_name": job_name},
            ) from e
        except httpx.RequestError as e:
            raise JobStatusError(
                f"Job cancellation failed: {e}", {"job_name": job_name}
            ) from e
        logger.info("vertex.job_cancelled", job_name=job_name)

    def build_job_descriptor(
        self, kind: JobKind, pipeline: Pipeline, asset: AssetManagementData
    ) -> Dict[str, Any]:
        """Request body of a pipeline job for one asset."""
        timestamp = self._clock().strftime("%Y%m%d%H%M%S")
        parameters: Dict[str, Any] = {
            "bq_query": self._history_query(pipeline.asset_type_id, asset.id),
            "gcp_project_id": self.project_id,
            "model_id": f"{asset.id}_{timestamp}",
            "script_gcs_path": self.script_path,
        }
        if kind is JobKind.TRAINING:
            parameters["system_key"] = self.system_key
            parameters["sageformer_timestep"] = str(pipeline.timestep)
        else:
            parameters["model_gcs_path"] = asset.asset_model

        return {
            "displayName": (
                f"forecast-{kind.value}-pipeline-job-{self.table_id}"
                f"-{pipeline.asset_type_id}-{asset.id}"
            ),
            "runtimeConfig": {
                "gcsOutputDirectory": (
                    f"{self.output_directory}/{self.system_key}"
                    f"/ia-forecasting/{_OUTPUT_PREFIXES[kind](asset.id)}"
                ),
                "parameterValues": parameters,
            },
            "serviceAccount": self.service_account,
            "templateUri": self.templates[kind],
        }

    async def _launch(
        self, kind: JobKind, pipeline: Pipeline, asset: AssetManagementData
    ) -> str:
        descriptor = self.build_job_descriptor(kind, pipeline, asset)
        log = logger.bind(
            kind=kind.value, asset_type_id=pipeline.asset_type_id, asset_id=asset.id
        )
        try:
            async with self._client() as client:
                response = await client.post(self.jobs_url, json=descriptor)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            log.error(
                "vertex.launch_http_error",
                status_code=e.response.status_code,
                response_text=e.response.text,
            )
            raise JobLaunchError(
                f"Creating {kind.value} job failed with HTTP {e.response.status_code}: "
                f"{e.response.text}",
                {"asset_id": asset.id},
            ) from e
        except httpx.RequestError as e:
            log.error("vertex.launch_request_error", error=str(e))
            raise JobLaunchError(
                f"Creating {kind.value} job failed: {e}", {"asset_id": asset.id}
            ) from e

        job_name = response.json().get("name")
        if not job_name:
            raise JobLaunchError(
                f"Job service returned no name for the {kind.value} job",
                {"asset_id": asset.id},
            )
        log.info("vertex.job_launched", job_name=job_name)
        return job_name

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
            },
        )

    def _job_url(self, job_name: str) -> str:
        if job_name.startswith("projects/"):
            return f"{self.endpoint}/{job_name}"
        return f"{self.jobs_url}/{job_name}"

    def _history_query(self, asset_type_id: str, asset_id: str) -> str:
        return (
            "SELECT date_time, asset_type_id, asset_id, data "
            f"FROM `{self.project_id}.{self.dataset_id}.{self.table_id}` "
            f"WHERE asset_id = '{_quote_sql(asset_id)}' "
            f"AND asset_type_id = '{_quote_sql(asset_type_id)}' "
            "ORDER BY date_time"
        )
