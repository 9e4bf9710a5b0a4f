"""Domain Gateway - Analytical store bulk loader."""

from abc import ABC, abstractmethod
from typing import Sequence

from assetcast.domain.entities.history import SeriesPoint


class IAnalyticalStoreLoader(ABC):
    """Interface for loading resampled history into the analytical store."""

    @abstractmethod
    async def insert_points(
        self, asset_type_id: str, asset_id: str, points: Sequence[SeriesPoint]
    ) -> int:
        """
        Load points in size-bounded batches.

        Returns:
            Number of rows loaded

        Raises:
            AnalyticalStoreError: When a batch cannot be loaded
        """
