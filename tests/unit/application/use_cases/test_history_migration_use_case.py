from __future__ import annotations

from datetime import timedelta

import pytest

from assetcast.application.services.single_flight import SingleFlightGuard
from assetcast.application.use_cases.history_migration_use_case import (
    HISTORY_TOPIC,
    HistoryMigrationUseCase,
    migration_order,
)
from assetcast.domain.entities.pipeline import AssetManagementData, FeatureDescriptor
from tests.conftest import NOW, make_pipeline


def _pipeline(*assets: AssetManagementData):
    return make_pipeline(
        assets=assets,
        supporting=[FeatureDescriptor(attribute_name="running", attribute_type="boolean")],
    )


def _use_case(metadata_store, history, bus, **kwargs) -> HistoryMigrationUseCase:
    kwargs.setdefault("page_pause_seconds", 0)
    return HistoryMigrationUseCase(
        metadata_store, history, bus, clock=lambda: NOW, **kwargs
    )


def test_flowing_assets_first_and_never_synced_last() -> None:
    pipeline = _pipeline(
        AssetManagementData(id="never"),
        AssetManagementData(id="backlog", last_bq_sync_time=NOW - timedelta(days=30)),
        AssetManagementData(id="flowing", last_bq_sync_time=NOW - timedelta(minutes=5)),
        AssetManagementData(id="late", last_bq_sync_time=NOW - timedelta(hours=2)),
    )
    work = [(pipeline, asset) for asset in pipeline.asset_management_data]

    ordered = sorted(work, key=migration_order)

    assert [asset.id for _, asset in ordered] == ["flowing", "late", "backlog", "never"]


@pytest.mark.asyncio
async def test_publishes_relevant_rows_after_the_watermark(
    pipeline_repository, metadata_store, history_repository, message_bus
) -> None:
    watermark = NOW - timedelta(hours=2)
    pipeline_repository.seed(
        _pipeline(AssetManagementData(id="a1", last_bq_sync_time=watermark))
    )
    history_repository.add("a1", watermark, temp=1)
    history_repository.add("a1", NOW - timedelta(minutes=90), temp=21, humidity=40)
    history_repository.add("a1", NOW - timedelta(minutes=80), predicted_temp=22)
    history_repository.add("a1", NOW - timedelta(minutes=70), humidity=41)
    history_repository.add("a1", NOW - timedelta(minutes=60), running=True)
    history_repository.add("a1", NOW + timedelta(minutes=1), temp=30)

    report = await _use_case(metadata_store, history_repository, message_bus).execute()

    assert report.rows_published == 2
    assert report.updated_pipelines == ["pump"]
    first_topic, first_payload, first_properties = message_bus.published[0]
    assert first_topic == HISTORY_TOPIC
    assert first_payload == {
        "date_time": (NOW - timedelta(minutes=90)).isoformat(),
        "asset_type_id": "pump",
        "asset_id": "a1",
        "data": {"temp": 21},
    }
    assert first_properties == {
        "asset_type_id": "pump",
        "asset_id": "a1",
        "change_date": (NOW - timedelta(minutes=90)).isoformat(),
    }
    stored = pipeline_repository.records["pump"].find_asset("a1")
    assert stored.last_bq_sync_time == NOW - timedelta(minutes=60)


@pytest.mark.asyncio
async def test_asset_is_aborted_after_consecutive_failures(
    pipeline_repository, metadata_store, history_repository, message_bus
) -> None:
    pipeline_repository.seed(
        _pipeline(AssetManagementData(id="a1"), AssetManagementData(id="a2"))
    )
    for minute in range(7):
        history_repository.add("a1", NOW - timedelta(minutes=30 - minute), temp=minute)
    history_repository.add("a2", NOW - timedelta(minutes=5), temp=3)
    message_bus.fail_for.add("a1")

    report = await _use_case(metadata_store, history_repository, message_bus).execute()

    assert report.assets_aborted == 1
    assert report.rows_published == 1
    stored = pipeline_repository.records["pump"]
    assert stored.find_asset("a1").last_bq_sync_time is None
    assert stored.find_asset("a2").last_bq_sync_time == NOW - timedelta(minutes=5)


@pytest.mark.asyncio
async def test_exhausted_budget_stops_before_reading(
    pipeline_repository, metadata_store, history_repository, message_bus
) -> None:
    pipeline_repository.seed(_pipeline(AssetManagementData(id="a1")))
    history_repository.add("a1", NOW - timedelta(minutes=5), temp=3)

    report = await _use_case(
        metadata_store,
        history_repository,
        message_bus,
        runtime_budget=timedelta(0),
    ).execute()

    assert report.budget_exhausted is True
    assert message_bus.published == []
    assert report.updated_pipelines == []


@pytest.mark.asyncio
async def test_multi_page_catch_up_seeds_the_watermark(
    pipeline_repository, metadata_store, history_repository, message_bus
) -> None:
    pipeline_repository.seed(_pipeline(AssetManagementData(id="a1")))
    for minute in range(5):
        history_repository.add("a1", NOW - timedelta(minutes=10 - minute), temp=minute)
    history_repository.add("a1", NOW + timedelta(minutes=5), temp=9)

    report = await _use_case(
        metadata_store, history_repository, message_bus, page_size=2
    ).execute()

    assert report.rows_published == 5
    stored = pipeline_repository.records["pump"].find_asset("a1")
    assert stored.last_bq_sync_time == NOW


@pytest.mark.asyncio
async def test_caught_up_assets_are_left_alone(
    pipeline_repository, metadata_store, history_repository, message_bus
) -> None:
    pipeline_repository.seed(
        _pipeline(AssetManagementData(id="a1", last_bq_sync_time=NOW))
    )
    history_repository.add("a1", NOW - timedelta(minutes=5), temp=3)

    report = await _use_case(metadata_store, history_repository, message_bus).execute()

    assert message_bus.published == []
    assert report.assets_processed == 1


@pytest.mark.asyncio
async def test_overlapping_cycle_is_skipped(
    pipeline_repository, metadata_store, history_repository, message_bus, lock_provider
) -> None:
    pipeline_repository.seed(_pipeline(AssetManagementData(id="a1")))
    history_repository.add("a1", NOW - timedelta(minutes=5), temp=3)
    lock_provider.busy.add("single-flight:run_history_migration")

    report = await _use_case(
        metadata_store,
        history_repository,
        message_bus,
        guard=SingleFlightGuard("run_history_migration"),
    ).execute()

    assert report.skipped is True
    assert message_bus.published == []


@pytest.mark.asyncio
async def test_cycle_lock_outlives_the_runtime_budget(
    pipeline_repository, metadata_store, history_repository, message_bus, lock_provider
) -> None:
    pipeline_repository.seed(_pipeline(AssetManagementData(id="a1")))
    budget = timedelta(minutes=15)

    await _use_case(
        metadata_store,
        history_repository,
        message_bus,
        runtime_budget=budget,
        guard=SingleFlightGuard("run_history_migration"),
    ).execute()

    lease = lock_provider.leases["single-flight:run_history_migration"]
    assert lease > budget.total_seconds()


@pytest.mark.asyncio
async def test_single_full_page_does_not_trigger_catch_up(
    pipeline_repository, metadata_store, history_repository, message_bus
) -> None:
    pipeline_repository.seed(_pipeline(AssetManagementData(id="a1")))
    history_repository.add("a1", NOW - timedelta(minutes=10), temp=1)
    history_repository.add("a1", NOW - timedelta(minutes=9), temp=2)
    history_repository.add("a1", NOW + timedelta(minutes=5), temp=9)

    report = await _use_case(
        metadata_store, history_repository, message_bus, page_size=2
    ).execute()

    assert report.rows_published == 2
    stored = pipeline_repository.records["pump"].find_asset("a1")
    assert stored.last_bq_sync_time == NOW - timedelta(minutes=9)
