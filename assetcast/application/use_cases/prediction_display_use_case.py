"""
Prediction Display Use Case

Copies the forecast value for the current minute from asset history onto
the asset record, so dashboards reading the asset see the live forecast
next to the measured values.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List

from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.domain.repositories.asset_history_repository import (
    IAssetHistoryRepository,
)
from assetcast.domain.repositories.asset_repository import IAssetRepository
from assetcast.domain.services.attribute_classifier import (
    is_synthetic,
    pipeline_synthetic_names,
)
from assetcast.shared import get_logger

logger = get_logger(__name__)


class DisplayPredictionsUseCase:
    def __init__(
        self,
        metadata_store: PipelineMetadataStore,
        history_repository: IAssetHistoryRepository,
        asset_repository: IAssetRepository,
        *,
        window: timedelta = timedelta(minutes=1),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = metadata_store
        self._history = history_repository
        self._assets = asset_repository
        self._window = window
        self._clock = clock

    async def execute(self) -> int:
        """Returns the number of assets whose record was updated."""
        now = self._clock()
        asset_ids: List[str] = []
        names: List[str] = []
        for pipeline in await self._store.list_pipelines():
            asset_ids.extend(pipeline.asset_ids)
            names.extend(pipeline_synthetic_names(pipeline))
        if not asset_ids or not names:
            return 0

        latest = await self._history.latest_rows_with(
            asset_ids, now - self._window, now, names
        )
        updated = 0
        for asset_id, row in latest.items():
            values: Dict[str, float] = {
                name: value for name, value in row.custom_data.items() if is_synthetic(name)
            }
            if values and await self._assets.update_custom_data(asset_id, values):
                updated += 1

        logger.info("predictions.displayed", assets=updated, candidates=len(latest))
        return updated
