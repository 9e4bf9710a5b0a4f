"""
Domain Repositories Package

Persistence interfaces for pipelines, asset history and asset records.
"""

from .asset_history_repository import IAssetHistoryRepository
from .asset_repository import IAssetRepository
from .pipeline_repository import IPipelineRepository

__all__ = ["IAssetHistoryRepository", "IAssetRepository", "IPipelineRepository"]
