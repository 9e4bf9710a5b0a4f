"""
Forecast Ingestion Use Case

Folds the output of an inference job back into asset history: the newest
unprocessed forecast file is aligned on the inference time, routed onto the
``predicted_*`` attributes, densified per minute and written over any stale
forecast for the same window. The file is renamed only after rows were
written, so an interrupted ingestion is retried by the next cycle.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

from assetcast.application.services.artifact_discovery import ArtifactDiscoveryService
from assetcast.application.services.forecast_csv import parse_forecast_csv
from assetcast.domain.entities.history import AssetHistoryRow, SeriesPoint
from assetcast.domain.entities.pipeline import Pipeline
from assetcast.domain.repositories.asset_history_repository import (
    IAssetHistoryRepository,
)
from assetcast.domain.services.attribute_classifier import (
    pipeline_synthetic_names,
    synthetic_name_for_column,
)
from assetcast.domain.services.interpolation import (
    interpolate_per_minute,
    shift_to_anchor,
)
from assetcast.shared import get_logger

logger = get_logger(__name__)

BOOLEAN_THRESHOLD = 0.5
STALE_FORECAST_MARGIN = timedelta(minutes=1)


def route_forecast_points(
    pipeline: Pipeline, points: List[SeriesPoint]
) -> Tuple[List[SeriesPoint], Set[str]]:
    """
    Rename forecast columns to synthetic attributes and restore booleans.

    Returns:
        The routed points and the synthetic names that hold boolean values
    """
    routes: Dict[str, str] = {}
    discrete: Set[str] = set()
    columns = {column for point in points for column in point.values}
    for column in sorted(columns):
        route = synthetic_name_for_column(column, pipeline.attributes_to_predict)
        if route is None:
            logger.debug("ingestion.column_ignored", column=column)
            continue
        name, feature = route
        routes[column] = name
        if feature.is_boolean:
            discrete.add(name)

    routed = []
    for point in points:
        values: Dict[str, float] = {}
        for column, value in point.values.items():
            name = routes.get(column)
            if name is None:
                continue
            if name in discrete:
                value = 1.0 if value >= BOOLEAN_THRESHOLD else 0.0
            values[name] = value
        if values:
            routed.append(SeriesPoint(timestamp=point.timestamp, values=values))
    return routed, discrete


class ForecastIngestionUseCase:
    def __init__(
        self,
        artifact_discovery: ArtifactDiscoveryService,
        history_repository: IAssetHistoryRepository,
        *,
        insert_batch_size: int = 50,
    ) -> None:
        self._discovery = artifact_discovery
        self._history = history_repository
        self._batch_size = max(1, insert_batch_size)

    async def ingest(
        self,
        pipeline: Pipeline,
        asset_id: str,
        anchor: Optional[datetime],
    ) -> int:
        """
        Ingest the newest unprocessed forecast of an asset.

        Args:
            pipeline: Pipeline the asset belongs to
            asset_id: Asset whose forecasts are ingested
            anchor: Time of the inference that produced the forecast; the
                first forecast row is moved onto it

        Returns:
            Number of history rows written
        """
        if anchor is None:
            return 0
        path = await self._discovery.find_pending_forecast(asset_id)
        if path is None:
            return 0

        content = await self._discovery.read_artifact(path)
        parsed = parse_forecast_csv(content)
        routed, discrete = route_forecast_points(pipeline, parsed)
        if not routed:
            logger.warning("ingestion.no_usable_rows", asset_id=asset_id, path=path)
            return 0

        dense = interpolate_per_minute(shift_to_anchor(routed, anchor), discrete)
        rows = [
            AssetHistoryRow(
                asset_id=asset_id,
                change_date=point.timestamp,
                custom_data=point.values,
                asset_type_id=pipeline.asset_type_id,
            )
            for point in dense
        ]

        removed = await self._history.delete_with_attributes_since(
            asset_id,
            rows[0].change_date - STALE_FORECAST_MARGIN,
            pipeline_synthetic_names(pipeline),
        )

        inserted = 0
        for start in range(0, len(rows), self._batch_size):
            inserted += await self._history.insert_many(rows[start : start + self._batch_size])

        logger.info(
            "ingestion.forecast_written",
            asset_id=asset_id,
            path=path,
            stale_removed=removed,
            inserted=inserted,
            expected=len(rows),
        )
        if inserted > 0:
            await self._discovery.mark_forecast_processed(path)
        return inserted
