"""
Infrastructure Gateway - BigQuery streaming loader

Loads resampled history through the ``tabledata.insertAll`` REST endpoint in
batches of roughly 500 KB, sized from the first row.
"""

import asyncio
import json
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import httpx
import structlog

from assetcast.domain.entities.errors import AnalyticalStoreError
from assetcast.domain.entities.history import SeriesPoint
from assetcast.domain.gateways.analytical_store import IAnalyticalStoreLoader

logger = structlog.get_logger(__name__)

TARGET_BATCH_KB = 500
MAX_ATTEMPTS = 3
BACKOFF_BASE_SECONDS = 1.0


def rows_per_batch(first_row: Dict[str, Any]) -> int:
    """Rows that fit in one batch, estimated from the size of ``first_row``."""
    size_bytes = len(json.dumps(first_row, separators=(",", ":")))
    row_kb = math.ceil(size_bytes / 100) / 10
    return max(1, math.floor(TARGET_BATCH_KB / row_kb))


class BigQueryLoader(IAnalyticalStoreLoader):
    """Implementation of the analytical store loader using insertAll."""

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        dataset_id: str,
        table_id: str,
        access_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.url = (
            f"{endpoint.rstrip('/')}/projects/{project_id}"
            f"/datasets/{dataset_id}/tables/{table_id}/insertAll"
        )
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    async def insert_points(
        self, asset_type_id: str, asset_id: str, points: Sequence[SeriesPoint]
    ) -> int:
        if not points:
            return 0
        rows = [
            {
                "json": {
                    "date_time": point.timestamp.isoformat(),
                    "asset_type_id": asset_type_id,
                    "asset_id": asset_id,
                    "data": point.values,
                }
            }
            for point in points
        ]
        size = rows_per_batch(rows[0])
        batches = [rows[i : i + size] for i in range(0, len(rows), size)]
        logger.info(
            "bigquery.load_started",
            asset_id=asset_id,
            rows=len(rows),
            batches=len(batches),
            rows_per_batch=size,
        )

        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.access_token}"},
        ) as client:
            for index, batch in enumerate(batches):
                # The first batch surfaces schema and auth problems; no point retrying.
                attempts = 1 if index == 0 else MAX_ATTEMPTS
                await self._insert_batch(client, batch, attempts, asset_id, index)

        logger.info("bigquery.load_finished", asset_id=asset_id, rows=len(rows))
        return len(rows)

    async def _insert_batch(
        self,
        client: httpx.AsyncClient,
        batch: List[Dict[str, Any]],
        attempts: int,
        asset_id: str,
        index: int,
    ) -> None:
        last_error = ""
        for attempt in range(1, attempts + 1):
            try:
                response = await client.post(self.url, json={"rows": batch})
                response.raise_for_status()
                insert_errors = response.json().get("insertErrors") or []
                if not insert_errors:
                    return
                last_error = f"{len(insert_errors)} rows rejected"
            except httpx.HTTPStatusError as e:
                last_error = f"HTTP {e.response.status_code}: {e.response.text}"
            except httpx.RequestError as e:
                last_error = str(e)

            logger.warning(
                "bigquery.batch_failed",
                asset_id=asset_id,
                batch=index,
                attempt=attempt,
                error=last_error,
            )
            if attempt < attempts:
                await self._sleep(BACKOFF_BASE_SECONDS * 2 ** (attempt - 1))

        raise AnalyticalStoreError(
            f"Failed to bulk insert batch {index}: {last_error}",
            {"asset_id": asset_id, "batch": index},
        )
