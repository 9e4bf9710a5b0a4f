"""Domain Repository Interface - Asset records."""

from abc import ABC, abstractmethod
from typing import Mapping

from assetcast.domain.entities.history import ScalarValue


class IAssetRepository(ABC):
    """Interface for the asset records that surface current values."""

    @abstractmethod
    async def update_custom_data(
        self, asset_id: str, values: Mapping[str, ScalarValue]
    ) -> bool:
        """Merge ``values`` into the asset's custom data. False if unknown."""
