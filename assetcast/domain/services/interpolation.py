"""
Per-minute densification of sparse forecast output.

Forecast jobs emit one row per timestep; asset history is displayed per
minute, so ingestion fills the minutes in between.
"""

from datetime import datetime, timedelta
from typing import AbstractSet, List, Sequence

import pandas as pd

from assetcast.domain.entities.history import SeriesPoint

ONE_MINUTE = timedelta(minutes=1)
BINARY_VALUES = (0.0, 1.0)


def shift_to_anchor(
    points: Sequence[SeriesPoint], anchor: datetime
) -> List[SeriesPoint]:
    """Move every point by the offset that puts the first one on ``anchor``."""
    if not points:
        return []
    ordered = sorted(points, key=lambda point: point.timestamp)
    offset = anchor - ordered[0].timestamp
    return [
        SeriesPoint(timestamp=point.timestamp + offset, values=dict(point.values))
        for point in ordered
    ]


def _to_frame(points: Sequence[SeriesPoint]) -> pd.DataFrame:
    index = pd.DatetimeIndex([point.timestamp for point in points], name="timestamp")
    frame = pd.DataFrame([point.values for point in points], index=index, dtype=float)
    frame = frame.sort_index(kind="mergesort")
    return frame[~frame.index.duplicated(keep="last")]


def interpolate_per_minute(
    points: Sequence[SeriesPoint],
    discrete_attributes: AbstractSet[str] = frozenset(),
) -> List[SeriesPoint]:
    """
    Produce one point per minute from the first to the last sample.

    A minute that coincides with a sample takes its value. Between two
    samples an attribute keeps the value of the sample before when it is
    listed in ``discrete_attributes`` or when both surrounding samples are
    0 or 1; otherwise it is interpolated linearly in time. Minutes outside an
    attribute's samples take the nearest edge value.
    """
    if not points:
        return []

    frame = _to_frame(points)
    grid = pd.date_range(start=frame.index[0], end=frame.index[-1], freq=ONE_MINUTE)
    frame = frame.reindex(frame.index.union(grid))

    before = frame.ffill()
    after = frame.bfill()
    hold = before.isin(BINARY_VALUES) & after.isin(BINARY_VALUES)
    held = [name for name in frame.columns if name in discrete_attributes]
    if held:
        hold[held] = True

    linear = frame.interpolate(method="time", limit_area="inside")
    dense = linear.mask(hold, before).ffill().bfill().loc[grid]

    return [
        SeriesPoint(
            timestamp=moment.to_pydatetime(),
            values={name: float(value) for name, value in row.items()},
        )
        for moment, row in dense.iterrows()
    ]
