"""
Resampling of irregular asset history onto a fixed timestep grid.

Buckets are half-open ``[start, start + timestep)`` intervals aligned to
multiples of the timestep counted from the Unix epoch, so the grid of an
asset is the same whichever window of its history is resampled.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from assetcast.domain.entities.history import AssetHistoryRow, ScalarValue, SeriesPoint
from assetcast.domain.entities.pipeline import AggregationMethod, Pipeline


def aggregation_map(pipeline: Pipeline) -> Dict[str, AggregationMethod]:
    return {
        feature.attribute_name: feature.aggregation for feature in pipeline.features
    }


def _as_number(value: ScalarValue) -> Optional[float]:
    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, np.number)):
        number = float(value)
        return None if np.isnan(number) else number
    return None


def _mode(values: pd.Series) -> float:
    counts = values.value_counts()
    top = counts.max()
    # ties resolve to the larger value, so an even split of booleans is 1
    return float(max(counts[counts == top].index))


def _collect(
    rows: Iterable[AssetHistoryRow], aggregations: Mapping[str, AggregationMethod]
) -> List[Tuple[datetime, str, float]]:
    records = []
    for row in rows:
        for name, raw in row.custom_data.items():
            if name not in aggregations:
                continue
            number = _as_number(raw)
            if number is not None:
                records.append((row.change_date, name, number))
    return records


def resample_history(
    rows: Iterable[AssetHistoryRow],
    timestep_minutes: int,
    aggregations: Mapping[str, AggregationMethod],
) -> List[SeriesPoint]:
    """
    Aggregate history rows into one point per timestep bucket.

    Numeric attributes are averaged and boolean ones reduced to their mode,
    booleans counting as 0/1. A bucket without samples for an attribute
    carries the last value seen for it in any earlier bucket. Buckets before
    the first sample of every attribute are not emitted.

    The output depends only on the set of input rows, never on their order.
    """
    if timestep_minutes <= 0:
        raise ValueError("timestep_minutes must be positive")

    records = _collect(rows, aggregations)
    if not records:
        return []

    frame = pd.DataFrame.from_records(records, columns=["timestamp", "attribute", "value"])
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    frame = frame.sort_values(["timestamp", "attribute", "value"], kind="mergesort")
    frequency = f"{timestep_minutes}min"
    frame["bucket"] = frame["timestamp"].dt.floor(frequency)

    aggregated: Dict[pd.Timestamp, Dict[str, float]] = {}
    grouped = frame.groupby(["bucket", "attribute"], sort=True)["value"]
    for (bucket, attribute), values in grouped:
        if aggregations[attribute] is AggregationMethod.MODE:
            result = _mode(values)
        else:
            result = float(values.mean())
        aggregated.setdefault(bucket, {})[attribute] = result

    grid = pd.date_range(
        start=frame["bucket"].iloc[0],
        end=frame["bucket"].iloc[-1],
        freq=frequency,
    )

    last_known: Dict[str, float] = {}
    points: List[SeriesPoint] = []
    for bucket in grid:
        last_known.update(aggregated.get(bucket, {}))
        if not last_known:
            continue
        points.append(SeriesPoint(timestamp=bucket.to_pydatetime(), values=dict(last_known)))
    return points
