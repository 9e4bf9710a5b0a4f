"""MongoDB repository implementations."""

from .asset_history_repository import AssetHistoryRepository
from .asset_repository import AssetRepository
from .pipeline_repository import PipelineRepository

__all__ = ["AssetHistoryRepository", "AssetRepository", "PipelineRepository"]
