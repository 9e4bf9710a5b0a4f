"""
Domain Repository Interface - Asset History

Read and append access to the external, append-only asset history store.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Collection, Dict, List, Optional, Sequence

from assetcast.domain.entities.history import AssetHistoryRow


class IAssetHistoryRepository(ABC):
    """Interface for asset history repository."""

    @abstractmethod
    async def find_page(
        self,
        asset_id: str,
        after: Optional[datetime],
        before: datetime,
        skip: int,
        limit: int,
    ) -> List[AssetHistoryRow]:
        """
        Rows with ``after < change_date < before`` in ascending order.

        Args:
            asset_id: Asset whose history is read
            after: Exclusive lower bound, unbounded when None
            before: Exclusive upper bound
            skip: Rows to skip
            limit: Page size
        """

    @abstractmethod
    async def oldest_change_date(self, asset_id: str) -> Optional[datetime]:
        """Timestamp of the first recorded row of the asset."""

    @abstractmethod
    async def latest_change_date(self, asset_id: str) -> Optional[datetime]:
        """Timestamp of the most recent recorded row of the asset."""

    @abstractmethod
    async def has_rows_with(
        self,
        asset_id: str,
        after: Optional[datetime],
        before: datetime,
        attribute_names: Collection[str],
    ) -> bool:
        """Whether a row in ``(after, before)`` carries any of the attributes."""

    @abstractmethod
    async def delete_with_attributes_since(
        self, asset_id: str, since: datetime, attribute_names: Collection[str]
    ) -> int:
        """Delete rows at or after ``since`` carrying any of the attributes."""

    @abstractmethod
    async def insert_many(self, rows: Sequence[AssetHistoryRow]) -> int:
        """
        Append rows, tolerating individual failures.

        Returns:
            Number of rows actually written
        """

    @abstractmethod
    async def latest_rows_with(
        self,
        asset_ids: Collection[str],
        since: datetime,
        until: datetime,
        attribute_names: Collection[str],
    ) -> Dict[str, AssetHistoryRow]:
        """Most recent row per asset in ``[since, until]`` carrying the attributes."""
