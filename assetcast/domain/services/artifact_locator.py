"""
Convention-based paths of model and forecast artifacts.

The ML service writes under ``outbox/<asset_id>/``:

- ``models/<run containing a 14-digit timestamp>/.../checkpoint.pth``
- ``forecasts/<YYYYMMDDHHMMSS>.csv``, renamed to
  ``<YYYYMMDDHHMMSS>_processed.csv`` once ingested.
"""

import re
from typing import Iterable, Optional

OUTBOX = "outbox"
CHECKPOINT_FILENAME = "checkpoint.pth"
PROCESSED_SUFFIX = "_processed"

_TIMESTAMP = re.compile(r"(?<!\d)(\d{14})(?!\d)")
_UNPROCESSED_FORECAST = re.compile(r"^(\d{14})\.csv$")


def models_prefix(asset_id: str) -> str:
    return f"{OUTBOX}/{asset_id}/models"


def forecasts_prefix(asset_id: str) -> str:
    return f"{OUTBOX}/{asset_id}/forecasts"


def embedded_timestamp(name: str) -> Optional[str]:
    match = _TIMESTAMP.search(name)
    return match.group(1) if match else None


def latest_checkpoint(asset_id: str, paths: Iterable[str]) -> Optional[str]:
    """
    The checkpoint of the most recent model run, if that run has one.

    Runs are the first path segment below the models prefix; the run whose
    name carries the greatest timestamp wins.
    """
    prefix = models_prefix(asset_id) + "/"
    runs = {}
    for path in paths:
        if not path.startswith(prefix):
            continue
        run = path[len(prefix) :].split("/", 1)[0]
        stamp = embedded_timestamp(run)
        if stamp is not None:
            runs.setdefault((stamp, run), []).append(path)
    if not runs:
        return None

    newest = max(runs)
    checkpoints = sorted(
        path for path in runs[newest] if path.rsplit("/", 1)[-1] == CHECKPOINT_FILENAME
    )
    return checkpoints[0] if checkpoints else None


def _run_timestamp(path: str) -> Optional[str]:
    _, marker, rest = path.partition("/models/")
    if not marker:
        return None
    return embedded_timestamp(rest.split("/", 1)[0])


def is_newer_model(candidate: str, current: Optional[str]) -> bool:
    """Compare model locations by the timestamp of their run directory."""
    if not current:
        return True
    if candidate == current:
        return False
    candidate_stamp = _run_timestamp(candidate)
    current_stamp = _run_timestamp(current)
    if candidate_stamp is None or current_stamp is None:
        return True
    return candidate_stamp > current_stamp


def latest_unprocessed_forecast(asset_id: str, paths: Iterable[str]) -> Optional[str]:
    """Path of the unprocessed forecast with the greatest timestamp."""
    prefix = forecasts_prefix(asset_id) + "/"
    candidates = [
        path
        for path in paths
        if path.startswith(prefix)
        and _UNPROCESSED_FORECAST.match(path[len(prefix) :])
    ]
    return max(candidates) if candidates else None


def processed_path(path: str) -> str:
    head, _, filename = path.rpartition("/")
    stem, dot, extension = filename.rpartition(".")
    if dot:
        renamed = f"{stem}{PROCESSED_SUFFIX}.{extension}"
    else:
        renamed = f"{filename}{PROCESSED_SUFFIX}"
    return f"{head}/{renamed}" if head else renamed


def artifact_uri(prefix: str, path: str) -> str:
    return f"{prefix.rstrip('/')}/{path.lstrip('/')}"
