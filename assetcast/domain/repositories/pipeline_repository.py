"""
Domain Repository Interface - Pipelines

Persistence contract for forecasting pipelines. Writes are versioned: a
replace only succeeds when the stored version still equals the one the
caller read.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from assetcast.domain.entities.pipeline import Pipeline


class IPipelineRepository(ABC):
    """Interface for pipeline repository."""

    @abstractmethod
    async def list_all(self) -> List[Pipeline]:
        """Return every configured pipeline."""

    @abstractmethod
    async def get(self, asset_type_id: str) -> Optional[Pipeline]:
        """Return the pipeline of an asset type, if any."""

    @abstractmethod
    async def create(self, pipeline: Pipeline) -> Pipeline:
        """
        Store a new pipeline.

        Raises:
            PipelineAlreadyExistsError: If the asset type already has one
        """

    @abstractmethod
    async def replace(self, pipeline: Pipeline, expected_version: int) -> bool:
        """
        Overwrite a pipeline if its stored version equals ``expected_version``.

        On success the entity's ``version`` is incremented.

        Returns:
            False when another writer got there first or the record is gone
        """

    @abstractmethod
    async def delete(self, asset_type_id: str) -> bool:
        """Remove a pipeline. Returns whether a record was deleted."""
