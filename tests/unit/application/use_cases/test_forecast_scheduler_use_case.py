from __future__ import annotations

from datetime import timedelta

import pytest

from assetcast.application.services.artifact_discovery import ArtifactDiscoveryService
from assetcast.application.services.single_flight import SingleFlightGuard
from assetcast.application.use_cases.forecast_ingestion_use_case import (
    ForecastIngestionUseCase,
)
from assetcast.application.use_cases.forecast_scheduler_use_case import (
    ForecastSchedulerUseCase,
)
from assetcast.application.use_cases.history_sync_use_case import HistorySyncUseCase
from assetcast.domain.entities.pipeline import AssetManagementData
from assetcast.shared import EnumSyncMode
from tests.conftest import NOW, make_pipeline

CHECKPOINT = "outbox/a1/models/run_20250602123000/checkpoint.pth"


@pytest.fixture()
def build(
    metadata_store,
    history_repository,
    object_store,
    job_launcher,
    analytical_loader,
):
    def _build(now=NOW, **kwargs) -> ForecastSchedulerUseCase:
        discovery = ArtifactDiscoveryService(object_store, job_launcher, "gs://bucket")
        return ForecastSchedulerUseCase(
            metadata_store,
            history_repository,
            discovery,
            job_launcher,
            ForecastIngestionUseCase(discovery, history_repository),
            HistorySyncUseCase(history_repository, analytical_loader),
            clock=lambda: now,
            **kwargs,
        )

    return _build


def _due_asset(asset_id: str = "a1", **overrides) -> AssetManagementData:
    fields = {
        "next_train_time": NOW - timedelta(minutes=1),
        "next_inference_time": NOW - timedelta(minutes=1),
        "last_bq_sync_time": NOW - timedelta(minutes=5),
    }
    fields.update(overrides)
    return AssetManagementData(id=asset_id, **fields)


def _with_long_history(history_repository, *asset_ids: str) -> None:
    for asset_id in asset_ids:
        history_repository.add(asset_id, NOW - timedelta(days=40), temp=1)


@pytest.mark.asyncio
async def test_first_training_then_model_adoption_and_inference(
    build, pipeline_repository, history_repository, object_store, job_launcher
) -> None:
    pipeline_repository.seed(make_pipeline(assets=[_due_asset()], retrain_frequency=0))
    _with_long_history(history_repository, "a1")

    first = await build().execute()

    assert first.trainings_launched == 1
    assert first.inferences_launched == 0
    asset = pipeline_repository.records["pump"].find_asset("a1")
    assert asset.last_train_time == NOW
    assert asset.next_train_time is None
    assert asset.train_job_name == "train-a1"

    object_store.files[CHECKPOINT] = b"weights"
    later = NOW + timedelta(hours=1)
    second = await build(now=later).execute()

    assert second.models_refreshed == 1
    assert second.inferences_launched == 1
    assert job_launcher.trainings == ["a1"]
    assert job_launcher.inferences == ["a1"]
    asset = pipeline_repository.records["pump"].find_asset("a1")
    assert asset.asset_model == f"gs://bucket/{CHECKPOINT}"
    assert asset.last_inference_time == later
    assert asset.next_inference_time == later + timedelta(days=7)
    assert asset.inference_job_name == "inference-a1"


@pytest.mark.asyncio
async def test_training_waits_for_enough_history(
    build, pipeline_repository, history_repository, job_launcher
) -> None:
    pipeline_repository.seed(make_pipeline(assets=[_due_asset()]))
    history_repository.add("a1", NOW - timedelta(days=2), temp=1)

    report = await build().execute()

    assert report.trainings_launched == 0
    assert job_launcher.trainings == []
    assert report.updated_pipelines == []


@pytest.mark.asyncio
async def test_training_waits_for_history_sync(
    build, pipeline_repository, history_repository, job_launcher
) -> None:
    pipeline_repository.seed(
        make_pipeline(
            assets=[_due_asset(last_bq_sync_time=NOW - timedelta(hours=2))]
        )
    )
    _with_long_history(history_repository, "a1")
    history_repository.add("a1", NOW - timedelta(minutes=30), temp=3)

    report = await build().execute()

    assert report.trainings_launched == 0
    assert job_launcher.trainings == []


@pytest.mark.asyncio
async def test_failed_launch_is_retried_after_the_horizon(
    build, pipeline_repository, history_repository, job_launcher
) -> None:
    pipeline_repository.seed(make_pipeline(assets=[_due_asset()]))
    _with_long_history(history_repository, "a1")
    job_launcher.fail_training = True

    report = await build().execute()

    assert report.launch_failures == 1
    asset = pipeline_repository.records["pump"].find_asset("a1")
    assert asset.last_train_time == NOW
    assert asset.next_train_time == NOW + timedelta(hours=6)
    assert asset.train_job_name is None


@pytest.mark.asyncio
async def test_inference_runs_when_training_is_not_due(
    build, pipeline_repository, history_repository, object_store, job_launcher
) -> None:
    model = "gs://bucket/outbox/a1/models/run_20250101000000/checkpoint.pth"
    pipeline_repository.seed(
        make_pipeline(
            assets=[
                _due_asset(
                    asset_model=model,
                    last_train_time=NOW - timedelta(days=10),
                    next_train_time=None,
                    last_inference_time=NOW - timedelta(days=7),
                )
            ]
        )
    )
    object_store.files["outbox/a1/forecasts/20250526120000.csv"] = (
        b"date,temp\n2025-05-26 12:00:00,1\n2025-05-26 12:15:00,2\n"
    )

    report = await build().execute()

    assert report.inferences_launched == 1
    assert report.forecast_rows_ingested == 16
    written = history_repository.rows_for("a1")
    assert written[0].change_date == NOW - timedelta(days=7)


@pytest.mark.asyncio
async def test_asset_failures_are_contained(
    build, pipeline_repository, history_repository, job_launcher
) -> None:
    pipeline_repository.seed(
        make_pipeline(assets=[_due_asset("a1"), _due_asset("a2")])
    )
    _with_long_history(history_repository, "a1", "a2")
    job_launcher.explode_for.add("a1")

    report = await build().execute()

    assert report.assets_failed == 1
    assert job_launcher.trainings == ["a2"]
    stored = pipeline_repository.records["pump"]
    assert stored.find_asset("a1").next_train_time == NOW + timedelta(hours=6)
    assert stored.find_asset("a2").train_job_name == "train-a2"


@pytest.mark.asyncio
async def test_bulk_mode_loads_history_before_launching(
    build, pipeline_repository, history_repository, analytical_loader, job_launcher
) -> None:
    pipeline_repository.seed(
        make_pipeline(assets=[_due_asset(last_bq_sync_time=None)])
    )
    _with_long_history(history_repository, "a1")
    history_repository.add("a1", NOW - timedelta(minutes=30), temp=3)

    report = await build(sync_mode=EnumSyncMode.BULK_LOAD).execute()

    assert report.trainings_launched == 1
    assert len(analytical_loader.loads) == 1
    asset = pipeline_repository.records["pump"].find_asset("a1")
    assert asset.last_bq_sync_time == NOW - timedelta(minutes=30)


@pytest.mark.asyncio
async def test_untrained_assets_lose_stale_artifacts(
    build, pipeline_repository, object_store
) -> None:
    pipeline_repository.seed(make_pipeline(assets=[AssetManagementData(id="a1")]))
    object_store.files["outbox/a1/forecasts/20250101000000.csv"] = b"date,temp\n"

    await build().execute()

    assert object_store.files == {}


@pytest.mark.asyncio
async def test_overlapping_cycle_is_skipped(
    build, pipeline_repository, lock_provider, job_launcher
) -> None:
    pipeline_repository.seed(make_pipeline(assets=[_due_asset()]))
    guard = SingleFlightGuard("run_forecast_scheduler")

    async with guard.enter(lock_provider):
        report = await build(guard=guard).execute()

    assert report.skipped is True
    assert job_launcher.trainings == []


@pytest.mark.asyncio
async def test_cycle_lock_is_leased_for_the_whole_cycle(
    build, pipeline_repository, lock_provider
) -> None:
    pipeline_repository.seed(make_pipeline(assets=[_due_asset()]))

    await build(
        guard=SingleFlightGuard("run_forecast_scheduler"),
        cycle_lease=timedelta(minutes=45),
    ).execute()

    assert lock_provider.leases["single-flight:run_forecast_scheduler"] == 2700.0


@pytest.mark.asyncio
async def test_failed_history_load_still_ingests_pending_forecasts(
    build,
    pipeline_repository,
    history_repository,
    object_store,
    analytical_loader,
    job_launcher,
) -> None:
    model = "gs://bucket/outbox/a1/models/run_20250101000000/checkpoint.pth"
    pipeline_repository.seed(
        make_pipeline(
            assets=[
                _due_asset(
                    asset_model=model,
                    last_train_time=NOW - timedelta(days=10),
                    next_train_time=None,
                    last_inference_time=NOW - timedelta(days=7),
                    last_bq_sync_time=None,
                )
            ]
        )
    )
    history_repository.add("a1", NOW - timedelta(hours=2), temp=3)
    analytical_loader.reject_loads = True
    object_store.files["outbox/a1/forecasts/20250526120000.csv"] = (
        b"date,temp\n2025-05-26 12:00:00,1\n2025-05-26 12:15:00,2\n"
    )

    report = await build(sync_mode=EnumSyncMode.BULK_LOAD).execute()

    assert report.sync_failures == 1
    assert report.assets_failed == 0
    assert report.inferences_launched == 0
    assert job_launcher.inferences == []
    assert report.forecast_rows_ingested == 16
    asset = pipeline_repository.records["pump"].find_asset("a1")
    assert asset.last_bq_sync_time is None
