"""
Artifact Discovery

Finds new model checkpoints and unprocessed forecast files for an asset.
A known job id is checked against the launcher first, so the object store
is only scanned once the job has left its active states.
"""

from typing import Optional

from assetcast.domain.entities.errors import JobStatusError
from assetcast.domain.entities.pipeline import AssetManagementData
from assetcast.domain.gateways.job_launcher import IJobLauncher
from assetcast.domain.gateways.object_store import IObjectStore
from assetcast.domain.services import artifact_locator
from assetcast.shared import get_logger

logger = get_logger(__name__)


class ArtifactDiscoveryService:
    def __init__(
        self,
        object_store: IObjectStore,
        job_launcher: IJobLauncher,
        artifact_uri_prefix: str,
    ) -> None:
        self._object_store = object_store
        self._job_launcher = job_launcher
        self._artifact_uri_prefix = artifact_uri_prefix

    async def find_newer_model(self, asset: AssetManagementData) -> Optional[str]:
        """URI of a checkpoint newer than ``asset.asset_model``, if any."""
        if asset.train_job_name and await self._job_active(asset):
            return None

        paths = await self._object_store.read_dir(artifact_locator.models_prefix(asset.id))
        checkpoint = artifact_locator.latest_checkpoint(asset.id, paths)
        if checkpoint is None:
            return None

        uri = artifact_locator.artifact_uri(self._artifact_uri_prefix, checkpoint)
        if not artifact_locator.is_newer_model(uri, asset.asset_model):
            return None
        logger.info("artifacts.model_found", asset_id=asset.id, model=uri)
        return uri

    async def find_pending_forecast(self, asset_id: str) -> Optional[str]:
        paths = await self._object_store.read_dir(artifact_locator.forecasts_prefix(asset_id))
        return artifact_locator.latest_unprocessed_forecast(asset_id, paths)

    async def read_artifact(self, path: str) -> bytes:
        return await self._object_store.read_file(path)

    async def mark_forecast_processed(self, path: str) -> str:
        destination = artifact_locator.processed_path(path)
        await self._object_store.rename_file(path, destination)
        return destination

    async def cleanup_asset_artifacts(self, asset_id: str) -> int:
        """Delete every model and forecast artifact of an asset."""
        removed = 0
        for prefix in (
            artifact_locator.models_prefix(asset_id),
            artifact_locator.forecasts_prefix(asset_id),
        ):
            for path in await self._object_store.read_dir(prefix):
                await self._object_store.delete_file(path)
                removed += 1
        if removed:
            logger.info("artifacts.cleaned", asset_id=asset_id, removed=removed)
        return removed

    async def _job_active(self, asset: AssetManagementData) -> bool:
        try:
            state = await self._job_launcher.get_job_state(asset.train_job_name or "")
        except JobStatusError as exc:
            logger.warning(
                "artifacts.job_state_unavailable",
                asset_id=asset.id,
                job_name=asset.train_job_name,
                error=exc.message,
            )
            return False
        return state.is_active
