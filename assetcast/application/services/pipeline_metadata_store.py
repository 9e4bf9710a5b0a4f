"""
Pipeline Metadata Store

Shared, lock-guarded access to the pipeline collection. The scheduler and
the migrator never write what they read at the start of their cycle;
instead they hand over per-asset field deltas which are applied to a fresh
copy under the ``forecast_ml_pipelines_update`` lock and written with a
version check.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from assetcast.domain.entities.errors import PipelineConflictError, PipelineNotFoundError
from assetcast.domain.entities.pipeline import (
    ASSET_MUTABLE_FIELDS,
    AssetManagementData,
    AssetUpdate,
    Pipeline,
)
from assetcast.domain.ports.distributed_lock import ILockProvider
from assetcast.domain.repositories.pipeline_repository import IPipelineRepository
from assetcast.shared import get_logger

logger = get_logger(__name__)

METADATA_LOCK_NAME = "forecast_ml_pipelines_update"

# Fields that may only move forward in time.
MONOTONIC_FIELDS = frozenset({"last_bq_sync_time"})


def apply_asset_fields(asset: AssetManagementData, fields: Dict[str, object]) -> bool:
    """Apply deltas to an asset entry. Returns whether anything changed."""
    changed = False
    for name, value in fields.items():
        if name not in ASSET_MUTABLE_FIELDS:
            raise ValueError(f"Field {name} cannot be updated by a cycle")
        current = getattr(asset, name)
        if name in MONOTONIC_FIELDS and current is not None:
            if value is None or value <= current:
                continue
        if current != value:
            setattr(asset, name, value)
            changed = True
    return changed


@dataclass
class _Mutation:
    asset_type_id: str
    apply: Callable[[Pipeline], bool]


class PipelineMetadataStore:
    """Read access and serialized read-merge-write for pipelines."""

    def __init__(
        self,
        repository: IPipelineRepository,
        lock_provider: ILockProvider,
        *,
        max_write_attempts: int = 3,
    ) -> None:
        self._repository = repository
        self._lock_provider = lock_provider
        self._max_write_attempts = max(1, max_write_attempts)

    @property
    def lock_provider(self) -> ILockProvider:
        return self._lock_provider

    async def list_pipelines(self) -> List[Pipeline]:
        return await self._repository.list_all()

    async def get_pipeline(self, asset_type_id: str) -> Optional[Pipeline]:
        return await self._repository.get(asset_type_id)

    async def commit(self, updates: Sequence[AssetUpdate]) -> List[str]:
        """
        Merge per-asset deltas into the stored pipelines.

        Only pipelines that actually change are written. Lock and write
        failures propagate: the caller's progress is then not recorded and
        will be recomputed by the next cycle.

        Returns:
            Asset type ids of the pipelines that were written
        """
        grouped: "OrderedDict[str, List[AssetUpdate]]" = OrderedDict()
        for update in updates:
            if update.fields:
                grouped.setdefault(update.asset_type_id, []).append(update)
        if not grouped:
            return []

        def _merge(asset_updates: List[AssetUpdate]) -> Callable[[Pipeline], bool]:
            def apply(pipeline: Pipeline) -> bool:
                changed = False
                for update in asset_updates:
                    asset = pipeline.find_asset(update.asset_id)
                    if asset is None:
                        logger.warning(
                            "metadata_store.asset_missing",
                            asset_type_id=update.asset_type_id,
                            asset_id=update.asset_id,
                        )
                        continue
                    changed = apply_asset_fields(asset, update.fields) or changed
                return changed

            return apply

        mutations = [
            _Mutation(asset_type_id, _merge(asset_updates))
            for asset_type_id, asset_updates in grouped.items()
        ]
        return await self._run_locked(mutations, missing_ok=True)

    async def update_pipeline(
        self, asset_type_id: str, mutate: Callable[[Pipeline], bool]
    ) -> Pipeline:
        """
        Apply ``mutate`` to a fresh copy of one pipeline under the lock.

        Raises:
            PipelineNotFoundError: If the pipeline does not exist
        """
        written: Dict[str, Pipeline] = {}

        def apply(pipeline: Pipeline) -> bool:
            changed = mutate(pipeline)
            written[pipeline.asset_type_id] = pipeline
            return changed

        await self._run_locked([_Mutation(asset_type_id, apply)], missing_ok=False)
        return written[asset_type_id]

    async def create_pipeline(self, pipeline: Pipeline) -> Pipeline:
        async with self._lock_provider.hold(METADATA_LOCK_NAME):
            return await self._repository.create(pipeline)

    async def delete_pipeline(self, asset_type_id: str) -> bool:
        async with self._lock_provider.hold(METADATA_LOCK_NAME):
            return await self._repository.delete(asset_type_id)

    async def _run_locked(
        self, mutations: Sequence[_Mutation], *, missing_ok: bool
    ) -> List[str]:
        written: List[str] = []
        async with self._lock_provider.hold(METADATA_LOCK_NAME):
            for mutation in mutations:
                if await self._write_with_retry(mutation, missing_ok=missing_ok):
                    written.append(mutation.asset_type_id)
        if written:
            logger.info("metadata_store.committed", pipelines=written)
        return written

    async def _write_with_retry(self, mutation: _Mutation, *, missing_ok: bool) -> bool:
        for attempt in range(1, self._max_write_attempts + 1):
            fresh = await self._repository.get(mutation.asset_type_id)
            if fresh is None:
                if missing_ok:
                    logger.warning(
                        "metadata_store.pipeline_missing",
                        asset_type_id=mutation.asset_type_id,
                    )
                    return False
                raise PipelineNotFoundError(mutation.asset_type_id)

            if not mutation.apply(fresh):
                return False
            if await self._repository.replace(fresh, expected_version=fresh.version):
                return True

            logger.warning(
                "metadata_store.version_conflict",
                asset_type_id=mutation.asset_type_id,
                attempt=attempt,
            )

        raise PipelineConflictError(
            f"Pipeline {mutation.asset_type_id} kept changing during the update",
            {"attempts": self._max_write_attempts},
        )
