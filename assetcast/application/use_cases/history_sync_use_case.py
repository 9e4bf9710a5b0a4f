"""
History Sync Use Case

Bulk path of the history synchronization: pages through an asset's raw
history after its watermark, keeps training-relevant attributes, resamples
them onto the pipeline timestep and loads them into the analytical store.
Also answers whether the message-bus path has caught up with an asset.
"""

from datetime import datetime, timedelta
from typing import AsyncIterator, List, Optional

from assetcast.domain.entities.history import AssetHistoryRow
from assetcast.domain.entities.pipeline import AssetManagementData, Pipeline
from assetcast.domain.gateways.analytical_store import IAnalyticalStoreLoader
from assetcast.domain.repositories.asset_history_repository import (
    IAssetHistoryRepository,
)
from assetcast.domain.services.attribute_classifier import (
    filter_relevant,
    has_synthetic_values,
    relevant_feature_names,
)
from assetcast.domain.services.resampling import aggregation_map, resample_history
from assetcast.shared import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1)


def floor_to_timestep(moment: datetime, timestep_minutes: int) -> datetime:
    """Start of the timestep bucket containing ``moment``."""
    epoch = _EPOCH.replace(tzinfo=moment.tzinfo)
    step = timedelta(minutes=timestep_minutes)
    return epoch + ((moment - epoch) // step) * step


class HistorySyncUseCase:
    def __init__(
        self,
        history_repository: IAssetHistoryRepository,
        analytical_loader: IAnalyticalStoreLoader,
        *,
        page_size: int = 1000,
    ) -> None:
        self._history = history_repository
        self._loader = analytical_loader
        self._page_size = page_size

    async def sync_asset(
        self, pipeline: Pipeline, asset: AssetManagementData, now: datetime
    ) -> Optional[datetime]:
        """
        Push the complete buckets of new history for one asset.

        Only rows before the start of the current bucket are read, so a
        bucket is never split across two loads.

        Returns:
            The new watermark, or None when nothing was loaded
        """
        cutoff = floor_to_timestep(now, pipeline.timestep)
        watermark = asset.last_bq_sync_time
        if watermark is not None and watermark >= cutoff:
            return None

        rows: List[AssetHistoryRow] = []
        async for row in self.relevant_rows(pipeline, asset.id, watermark, cutoff):
            rows.append(row)
        if not rows:
            return None

        points = resample_history(rows, pipeline.timestep, aggregation_map(pipeline))
        loaded = await self._loader.insert_points(pipeline.asset_type_id, asset.id, points)
        new_watermark = max(row.change_date for row in rows)
        logger.info(
            "history_sync.loaded",
            asset_type_id=pipeline.asset_type_id,
            asset_id=asset.id,
            raw_rows=len(rows),
            loaded=loaded,
            watermark=new_watermark.isoformat(),
        )
        return new_watermark

    async def is_synced(
        self,
        pipeline: Pipeline,
        asset: AssetManagementData,
        now: datetime,
        tolerance: timedelta,
    ) -> bool:
        """No relevant raw row older than ``now - tolerance`` is still unsynced."""
        relevant = relevant_feature_names(pipeline)
        if not relevant:
            return True
        pending = await self._history.has_rows_with(
            asset.id, asset.last_bq_sync_time, now - tolerance, relevant
        )
        if pending:
            logger.info(
                "history_sync.behind",
                asset_type_id=pipeline.asset_type_id,
                asset_id=asset.id,
                watermark=(
                    asset.last_bq_sync_time.isoformat()
                    if asset.last_bq_sync_time
                    else None
                ),
            )
        return not pending

    async def relevant_rows(
        self,
        pipeline: Pipeline,
        asset_id: str,
        after: Optional[datetime],
        before: datetime,
    ) -> AsyncIterator[AssetHistoryRow]:
        """Raw rows in the window, minus forecasts and irrelevant attributes."""
        relevant = relevant_feature_names(pipeline)
        skip = 0
        while True:
            page = await self._history.find_page(
                asset_id, after, before, skip=skip, limit=self._page_size
            )
            for row in page:
                if has_synthetic_values(row.custom_data):
                    continue
                values = filter_relevant(row.custom_data, relevant)
                if values:
                    yield AssetHistoryRow(
                        asset_id=row.asset_id,
                        change_date=row.change_date,
                        custom_data=values,
                        asset_type_id=pipeline.asset_type_id,
                    )
            if len(page) < self._page_size:
                return
            skip += self._page_size
