from __future__ import annotations

from assetcast.domain.services import artifact_locator


def test_latest_checkpoint_picks_the_newest_run() -> None:
    paths = [
        "outbox/a1/models/run_20250101000000/model/checkpoint.pth",
        "outbox/a1/models/run_20250301000000/x/y/checkpoint.pth",
        "outbox/a1/models/run_20250301000000/logs.txt",
        "outbox/a2/models/run_20250401000000/checkpoint.pth",
    ]

    assert artifact_locator.latest_checkpoint("a1", paths) == (
        "outbox/a1/models/run_20250301000000/x/y/checkpoint.pth"
    )


def test_latest_checkpoint_requires_one_in_the_newest_run() -> None:
    paths = [
        "outbox/a1/models/run_20250101000000/checkpoint.pth",
        "outbox/a1/models/run_20250401000000/logs.txt",
    ]

    assert artifact_locator.latest_checkpoint("a1", paths) is None
    assert artifact_locator.latest_checkpoint("a1", []) is None


def test_is_newer_model_compares_run_timestamps() -> None:
    old = "gs://b/outbox/a1/models/run_20250101000000/checkpoint.pth"
    new = "gs://b/outbox/a1/models/run_20250201000000/checkpoint.pth"

    assert artifact_locator.is_newer_model(new, old)
    assert not artifact_locator.is_newer_model(old, new)
    assert not artifact_locator.is_newer_model(new, new)
    assert artifact_locator.is_newer_model(new, None)


def test_latest_unprocessed_forecast() -> None:
    paths = [
        "outbox/a1/forecasts/20250101000000.csv",
        "outbox/a1/forecasts/20250201000000_processed.csv",
        "outbox/a1/forecasts/20250102000000.csv",
    ]

    assert artifact_locator.latest_unprocessed_forecast("a1", paths) == (
        "outbox/a1/forecasts/20250102000000.csv"
    )
    assert artifact_locator.latest_unprocessed_forecast("a2", paths) is None


def test_processed_path() -> None:
    assert artifact_locator.processed_path("outbox/a1/forecasts/20250102000000.csv") == (
        "outbox/a1/forecasts/20250102000000_processed.csv"
    )
