"""
Parsing of forecast artifacts.

A forecast is a CSV with a header row; the first column is a timestamp and
every other column a numeric series. Rows with the wrong number of fields,
an unreadable timestamp or a non-numeric value are skipped.
"""

import io
from typing import List

import pandas as pd

from assetcast.domain.entities.errors import ForecastParseError
from assetcast.domain.entities.history import SeriesPoint


def parse_forecast_csv(content: bytes) -> List[SeriesPoint]:
    """
    Read a forecast artifact into points ordered by timestamp.

    Raises:
        ForecastParseError: If the header is missing or has no value column
    """
    if not content.strip():
        raise ForecastParseError("Forecast artifact is empty")

    try:
        frame = pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            on_bad_lines="skip",
            skipinitialspace=True,
            engine="python",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as exc:
        raise ForecastParseError(f"Forecast artifact is unreadable: {exc}") from exc

    if len(frame.columns) < 2:
        raise ForecastParseError(
            "Forecast artifact needs a timestamp column and at least one value column",
            {"columns": list(frame.columns)},
        )

    time_column, *value_columns = list(frame.columns)
    timestamps = pd.to_datetime(frame[time_column], utc=True, errors="coerce", format="mixed")
    values = frame[value_columns].apply(pd.to_numeric, errors="coerce")

    valid = timestamps.notna() & values.notna().all(axis=1)
    timestamps = timestamps[valid]
    values = values[valid]

    points = [
        SeriesPoint(
            timestamp=timestamp.to_pydatetime(),
            values={column: float(row[column]) for column in value_columns},
        )
        for timestamp, (_, row) in zip(timestamps, values.iterrows())
    ]
    points.sort(key=lambda point: point.timestamp)
    return points
