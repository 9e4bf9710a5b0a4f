from __future__ import annotations

import copy
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import (
    Any,
    AsyncIterator,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
)

import pytest

from assetcast.application.services.pipeline_metadata_store import (
    PipelineMetadataStore,
)
from assetcast.domain.entities.errors import (
    AnalyticalStoreError,
    ArtifactNotFoundError,
    JobLaunchError,
    JobStatusError,
    LockError,
    MessageBusError,
    PipelineAlreadyExistsError,
)
from assetcast.domain.entities.history import AssetHistoryRow, SeriesPoint
from assetcast.domain.entities.jobs import JobState
from assetcast.domain.entities.pipeline import (
    AssetManagementData,
    FeatureDescriptor,
    Pipeline,
)
from assetcast.domain.gateways import (
    IAnalyticalStoreLoader,
    IJobLauncher,
    IMessageBus,
    IObjectStore,
)
from assetcast.domain.repositories import (
    IAssetHistoryRepository,
    IAssetRepository,
    IPipelineRepository,
)

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

UTC = timezone.utc
NOW = datetime(2025, 6, 2, 12, 0, tzinfo=UTC)


def make_pipeline(
    asset_type_id: str = "pump",
    assets: Sequence[AssetManagementData] = (),
    predict: Sequence[FeatureDescriptor] = (),
    supporting: Sequence[FeatureDescriptor] = (),
    **kwargs: Any,
) -> Pipeline:
    return Pipeline(
        asset_type_id=asset_type_id,
        attributes_to_predict=list(predict)
        or [FeatureDescriptor(attribute_name="temp", attribute_type="number")],
        supporting_attributes=list(supporting),
        asset_management_data=[copy.deepcopy(asset) for asset in assets],
        **kwargs,
    )


class InMemoryPipelineRepository(IPipelineRepository):
    """Versioned pipeline store; ``fail_next_replaces`` simulates lost races."""

    def __init__(self) -> None:
        self.records: Dict[str, Pipeline] = {}
        self.replace_calls = 0
        self.fail_next_replaces = 0

    def seed(self, *pipelines: Pipeline) -> None:
        for pipeline in pipelines:
            self.records[pipeline.asset_type_id] = copy.deepcopy(pipeline)

    async def list_all(self) -> List[Pipeline]:
        return [copy.deepcopy(p) for _, p in sorted(self.records.items())]

    async def get(self, asset_type_id: str) -> Pipeline | None:
        pipeline = self.records.get(asset_type_id)
        return copy.deepcopy(pipeline) if pipeline else None

    async def create(self, pipeline: Pipeline) -> Pipeline:
        if pipeline.asset_type_id in self.records:
            raise PipelineAlreadyExistsError(pipeline.asset_type_id)
        self.records[pipeline.asset_type_id] = copy.deepcopy(pipeline)
        return pipeline

    async def replace(self, pipeline: Pipeline, expected_version: int) -> bool:
        self.replace_calls += 1
        if self.fail_next_replaces > 0:
            self.fail_next_replaces -= 1
            return False
        stored = self.records.get(pipeline.asset_type_id)
        if stored is None or stored.version != expected_version:
            return False
        pipeline.version = expected_version + 1
        self.records[pipeline.asset_type_id] = copy.deepcopy(pipeline)
        return True

    async def delete(self, asset_type_id: str) -> bool:
        return self.records.pop(asset_type_id, None) is not None


class FakeLockProvider:
    def __init__(self) -> None:
        self.held: List[str] = []
        self.acquisitions: List[str] = []
        self.busy: Set[str] = set()
        self.leases: Dict[str, Optional[float]] = {}

    @asynccontextmanager
    async def hold(
        self, name: str, *, blocking: bool = True, lease: Optional[float] = None
    ) -> AsyncIterator[bool]:
        self.leases[name] = lease
        if name in self.busy or name in self.held:
            if blocking:
                raise LockError(f"{name} is busy")
            yield False
            return
        self.held.append(name)
        self.acquisitions.append(name)
        try:
            yield True
        finally:
            self.held.remove(name)


class InMemoryHistoryRepository(IAssetHistoryRepository):
    def __init__(self) -> None:
        self.rows: List[AssetHistoryRow] = []
        self.insert_batches: List[int] = []
        self.deletions: List[tuple] = []
        self.reject_inserts = False

    def add(self, asset_id: str, change_date: datetime, **values: Any) -> None:
        self.rows.append(AssetHistoryRow(asset_id, change_date, dict(values)))

    def rows_for(self, asset_id: str) -> List[AssetHistoryRow]:
        return sorted(
            (row for row in self.rows if row.asset_id == asset_id),
            key=lambda row: row.change_date,
        )

    async def find_page(self, asset_id, after, before, skip, limit):
        rows = [
            row
            for row in self.rows_for(asset_id)
            if (after is None or row.change_date > after) and row.change_date < before
        ]
        return rows[skip : skip + limit]

    async def oldest_change_date(self, asset_id):
        rows = self.rows_for(asset_id)
        return rows[0].change_date if rows else None

    async def latest_change_date(self, asset_id):
        rows = self.rows_for(asset_id)
        return rows[-1].change_date if rows else None

    async def has_rows_with(self, asset_id, after, before, attribute_names):
        return any(
            (after is None or row.change_date > after)
            and row.change_date < before
            and any(name in row.custom_data for name in attribute_names)
            for row in self.rows_for(asset_id)
        )

    async def delete_with_attributes_since(self, asset_id, since, attribute_names):
        self.deletions.append((asset_id, since, tuple(attribute_names)))
        kept = [
            row
            for row in self.rows
            if not (
                row.asset_id == asset_id
                and row.change_date >= since
                and any(name in row.custom_data for name in attribute_names)
            )
        ]
        removed = len(self.rows) - len(kept)
        self.rows = kept
        return removed

    async def insert_many(self, rows):
        self.insert_batches.append(len(rows))
        if self.reject_inserts:
            return 0
        self.rows.extend(rows)
        return len(rows)

    async def latest_rows_with(self, asset_ids, since, until, attribute_names):
        latest: Dict[str, AssetHistoryRow] = {}
        for row in sorted(self.rows, key=lambda row: row.change_date):
            if (
                row.asset_id in asset_ids
                and since <= row.change_date <= until
                and any(name in row.custom_data for name in attribute_names)
            ):
                latest[row.asset_id] = row
        return latest


class FakeObjectStore(IObjectStore):
    def __init__(self, files: Mapping[str, bytes] | None = None) -> None:
        self.files: Dict[str, bytes] = dict(files or {})
        self.renamed: List[tuple] = []
        self.deleted: List[str] = []
        self.listed: List[str] = []

    async def read_dir(self, prefix: str) -> List[str]:
        self.listed.append(prefix)
        base = prefix.rstrip("/") + "/"
        return sorted(path for path in self.files if path.startswith(base))

    async def read_file(self, path: str) -> bytes:
        if path not in self.files:
            raise ArtifactNotFoundError(path)
        return self.files[path]

    async def rename_file(self, source: str, destination: str) -> None:
        if source not in self.files:
            raise ArtifactNotFoundError(source)
        self.files[destination] = self.files.pop(source)
        self.renamed.append((source, destination))

    async def delete_file(self, path: str) -> None:
        self.files.pop(path, None)
        self.deleted.append(path)


class FakeJobLauncher(IJobLauncher):
    def __init__(self) -> None:
        self.trainings: List[str] = []
        self.inferences: List[str] = []
        self.cancelled: List[str] = []
        self.states: Dict[str, JobState] = {}
        self.fail_training = False
        self.fail_inference = False
        self.state_error = False
        self.explode_for: Set[str] = set()

    async def launch_training(self, pipeline, asset):
        if asset.id in self.explode_for:
            raise RuntimeError("unexpected launcher failure")
        if self.fail_training:
            raise JobLaunchError("training rejected", {"status_code": 400})
        self.trainings.append(asset.id)
        return f"train-{asset.id}"

    async def launch_inference(self, pipeline, asset):
        if self.fail_inference:
            raise JobLaunchError("inference rejected")
        self.inferences.append(asset.id)
        return f"inference-{asset.id}"

    async def get_job_state(self, job_name):
        if self.state_error:
            raise JobStatusError("job service unavailable")
        return self.states.get(job_name, JobState.SUCCEEDED)

    async def cancel_job(self, job_name):
        self.cancelled.append(job_name)


class FakeMessageBus(IMessageBus):
    def __init__(self) -> None:
        self.published: List[tuple] = []
        self.fail_for: Set[str] = set()
        self.closed = False

    async def publish(self, topic, payload, properties):
        if payload["asset_id"] in self.fail_for:
            raise MessageBusError("broker unavailable")
        self.published.append((topic, dict(payload), dict(properties)))

    async def close(self):
        self.closed = True


class FakeAnalyticalLoader(IAnalyticalStoreLoader):
    def __init__(self) -> None:
        self.loads: List[tuple] = []
        self.reject_loads = False

    async def insert_points(
        self, asset_type_id: str, asset_id: str, points: Sequence[SeriesPoint]
    ) -> int:
        if self.reject_loads:
            raise AnalyticalStoreError("insertAll rejected", {"asset_id": asset_id})
        self.loads.append((asset_type_id, asset_id, list(points)))
        return len(points)


class FakeAssetRepository(IAssetRepository):
    def __init__(self, known: Sequence[str] = ()) -> None:
        self.known = set(known)
        self.custom_data: Dict[str, Dict[str, Any]] = {}

    async def update_custom_data(self, asset_id, values):
        if asset_id not in self.known or not values:
            return False
        self.custom_data.setdefault(asset_id, {}).update(values)
        return True


class FakeCursor:
    def __init__(self, documents: Sequence[Dict[str, Any]]):
        self._documents = list(documents)
        self._skip = 0
        self._limit = 0

    def sort(self, *args: Any, **kwargs: Any) -> "FakeCursor":
        return self

    def skip(self, amount: int) -> "FakeCursor":
        self._skip = amount
        return self

    def limit(self, amount: int) -> "FakeCursor":
        self._limit = amount
        return self

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        docs = self._documents[self._skip :]
        if self._limit:
            docs = docs[: self._limit]
        return iter(docs)


class FakeCollection:
    """Records the queries it receives; matches on plain equality only."""

    def __init__(self) -> None:
        self.documents: List[Dict[str, Any]] = []
        self.queries: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.created_indexes: List[tuple] = []

    def _select(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        return [
            doc
            for doc in self.documents
            if all(
                doc.get(key) == value
                for key, value in query.items()
                if not isinstance(value, dict) and not key.startswith("$")
            )
        ]

    def find_one(self, query: Dict[str, Any], *args: Any, **kwargs: Any):
        self.queries.append(query)
        self.calls.append(("find_one", query, kwargs))
        matches = self._select(query)
        return copy.deepcopy(matches[0]) if matches else None

    def find(self, query: Dict[str, Any], *args: Any, **kwargs: Any) -> FakeCursor:
        self.queries.append(query)
        return FakeCursor(copy.deepcopy(self._select(query)))

    def insert_one(self, document: Dict[str, Any]) -> Any:
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(acknowledged=True, inserted_id=len(self.documents))

    def insert_many(self, documents: Sequence[Dict[str, Any]], ordered: bool = True):
        self.calls.append(("insert_many", list(documents), {"ordered": ordered}))
        self.documents.extend(copy.deepcopy(list(documents)))
        return SimpleNamespace(inserted_ids=list(range(len(documents))))

    def replace_one(self, query: Dict[str, Any], document: Dict[str, Any]) -> Any:
        self.queries.append(query)
        for index, doc in enumerate(self.documents):
            if all(doc.get(key) == value for key, value in query.items()):
                self.documents[index] = copy.deepcopy(document)
                return SimpleNamespace(matched_count=1)
        return SimpleNamespace(matched_count=0)

    def update_one(self, query: Dict[str, Any], update: Dict[str, Any]) -> Any:
        self.calls.append(("update_one", query, update))
        matches = self._select(query)
        return SimpleNamespace(matched_count=1 if matches else 0)

    def delete_one(self, query: Dict[str, Any]) -> Any:
        matches = self._select(query)
        if matches:
            self.documents.remove(matches[0])
        return SimpleNamespace(deleted_count=len(matches[:1]))

    def delete_many(self, query: Dict[str, Any]) -> Any:
        self.calls.append(("delete_many", query, {}))
        return SimpleNamespace(deleted_count=0)

    def aggregate(self, pipeline: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.calls.append(("aggregate", list(pipeline), {}))
        return []

    def create_index(self, keys: Any, name: str | None = None, **kwargs: Any) -> Any:
        self.created_indexes.append((keys, name, kwargs))
        return name or keys


class FakeMongoDatabase:
    def __init__(self) -> None:
        self.collections: Dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())

    async def find_one(self, collection_name: str, query: Dict[str, Any]) -> Any:
        return self.get_collection(collection_name).find_one(query)

    async def find_many(
        self,
        collection_name: str,
        query: Dict[str, Any],
        sort_by: str | None = None,
        sort_direction: int = 1,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self.get_collection(collection_name).find(query)
        cursor.sort(sort_by, sort_direction)
        cursor.skip(skip)
        cursor.limit(limit)
        return list(cursor)

    async def create_indexes(self) -> None:  # pragma: no cover - stub for tests
        pass

    def close(self) -> None:
        pass


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def pipeline_repository() -> InMemoryPipelineRepository:
    return InMemoryPipelineRepository()


@pytest.fixture()
def lock_provider() -> FakeLockProvider:
    return FakeLockProvider()


@pytest.fixture()
def metadata_store(
    pipeline_repository: InMemoryPipelineRepository, lock_provider: FakeLockProvider
) -> PipelineMetadataStore:
    return PipelineMetadataStore(pipeline_repository, lock_provider)


@pytest.fixture()
def history_repository() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()


@pytest.fixture()
def object_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture()
def job_launcher() -> FakeJobLauncher:
    return FakeJobLauncher()


@pytest.fixture()
def message_bus() -> FakeMessageBus:
    return FakeMessageBus()


@pytest.fixture()
def analytical_loader() -> FakeAnalyticalLoader:
    return FakeAnalyticalLoader()


@pytest.fixture()
def fake_mongo_database() -> FakeMongoDatabase:
    return FakeMongoDatabase()
