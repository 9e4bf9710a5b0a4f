from __future__ import annotations

from datetime import timedelta

import pytest

from assetcast.application.services.pipeline_metadata_store import (
    METADATA_LOCK_NAME,
    PipelineMetadataStore,
)
from assetcast.domain.entities.errors import (
    LockError,
    PipelineConflictError,
    PipelineNotFoundError,
)
from assetcast.domain.entities.pipeline import AssetManagementData, AssetUpdate
from tests.conftest import NOW, make_pipeline


@pytest.fixture()
def seeded(pipeline_repository):
    pipeline_repository.seed(
        make_pipeline(
            assets=[
                AssetManagementData(id="a1", last_bq_sync_time=NOW),
                AssetManagementData(id="a2"),
            ]
        )
    )
    return pipeline_repository


@pytest.mark.asyncio
async def test_commit_applies_deltas_under_the_lock(seeded, lock_provider) -> None:
    store = PipelineMetadataStore(seeded, lock_provider)

    written = await store.commit(
        [AssetUpdate("pump", "a2", {"asset_model": "gs://models/a2"})]
    )

    assert written == ["pump"]
    assert lock_provider.acquisitions == [METADATA_LOCK_NAME]
    stored = seeded.records["pump"]
    assert stored.find_asset("a2").asset_model == "gs://models/a2"
    assert stored.version == 1


@pytest.mark.asyncio
async def test_commit_keeps_changes_made_since_the_read(seeded, metadata_store) -> None:
    snapshot = await metadata_store.list_pipelines()
    concurrent = seeded.records["pump"]
    concurrent.find_asset("a1").asset_model = "gs://models/a1"

    await metadata_store.commit(
        [AssetUpdate("pump", "a2", {"next_train_time": NOW})]
    )

    stored = seeded.records["pump"]
    assert snapshot[0].find_asset("a1").asset_model is None
    assert stored.find_asset("a1").asset_model == "gs://models/a1"
    assert stored.find_asset("a2").next_train_time == NOW


@pytest.mark.asyncio
async def test_sync_watermark_never_moves_backwards(seeded, metadata_store) -> None:
    written = await metadata_store.commit(
        [AssetUpdate("pump", "a1", {"last_bq_sync_time": NOW - timedelta(hours=1)})]
    )

    assert written == []
    assert seeded.records["pump"].find_asset("a1").last_bq_sync_time == NOW
    assert seeded.replace_calls == 0


@pytest.mark.asyncio
async def test_commit_retries_after_a_version_conflict(seeded, metadata_store) -> None:
    seeded.fail_next_replaces = 1

    written = await metadata_store.commit(
        [AssetUpdate("pump", "a2", {"train_job_name": "job-1"})]
    )

    assert written == ["pump"]
    assert seeded.replace_calls == 2
    assert seeded.records["pump"].find_asset("a2").train_job_name == "job-1"


@pytest.mark.asyncio
async def test_commit_gives_up_after_repeated_conflicts(seeded, metadata_store) -> None:
    seeded.fail_next_replaces = 5

    with pytest.raises(PipelineConflictError):
        await metadata_store.commit(
            [AssetUpdate("pump", "a2", {"train_job_name": "job-1"})]
        )

    assert seeded.replace_calls == 3


@pytest.mark.asyncio
async def test_commit_skips_deleted_pipelines_and_assets(seeded, metadata_store) -> None:
    written = await metadata_store.commit(
        [
            AssetUpdate("fan", "f1", {"train_job_name": "job"}),
            AssetUpdate("pump", "gone", {"train_job_name": "job"}),
        ]
    )

    assert written == []


@pytest.mark.asyncio
async def test_commit_rejects_unknown_fields(seeded, metadata_store) -> None:
    with pytest.raises(ValueError):
        await metadata_store.commit([AssetUpdate("pump", "a1", {"id": "other"})])


@pytest.mark.asyncio
async def test_commit_propagates_lock_failures(seeded, lock_provider) -> None:
    lock_provider.busy.add(METADATA_LOCK_NAME)
    store = PipelineMetadataStore(seeded, lock_provider)

    with pytest.raises(LockError):
        await store.commit([AssetUpdate("pump", "a1", {"train_job_name": "job"})])

    assert seeded.replace_calls == 0


@pytest.mark.asyncio
async def test_update_pipeline_requires_an_existing_pipeline(metadata_store) -> None:
    with pytest.raises(PipelineNotFoundError):
        await metadata_store.update_pipeline("fan", lambda pipeline: True)
