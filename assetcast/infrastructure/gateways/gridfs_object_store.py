"""
GridFS Object Store - Infrastructure Layer

Implements the artifact store on a MongoDB GridFS bucket. Paths such as
``outbox/<asset>/forecasts/20250101000000.csv`` are stored as filenames, so a
directory listing is a prefix match on the filename.
"""

import re
from typing import List

import gridfs
import structlog
from gridfs.errors import NoFile
from pymongo.errors import PyMongoError

from assetcast.domain.entities.errors import ArtifactNotFoundError, ObjectStoreError
from assetcast.domain.gateways.object_store import IObjectStore
from assetcast.infrastructure.database.mongo_database import MongoDatabase

logger = structlog.get_logger(__name__)


class GridFSObjectStore(IObjectStore):
    """MongoDB GridFS implementation of the artifact store."""

    def __init__(self, database: MongoDatabase, bucket_name: str):
        """
        Initialize the GridFS object store.

        Args:
            database: Shared MongoDB database wrapper
            bucket_name: GridFS bucket the ML service writes into
        """
        self.bucket = gridfs.GridFSBucket(database.db, bucket_name=bucket_name)

    async def read_dir(self, prefix: str) -> List[str]:
        pattern = "^" + re.escape(prefix.rstrip("/") + "/")
        try:
            filenames = {
                grid_out.filename
                for grid_out in self.bucket.find({"filename": {"$regex": pattern}})
            }
        except PyMongoError as e:
            logger.error("Failed to list artifacts", prefix=prefix, error=str(e))
            raise ObjectStoreError(f"Failed to list {prefix}: {e}") from e
        return sorted(filenames)

    async def read_file(self, path: str) -> bytes:
        try:
            with self.bucket.open_download_stream_by_name(path) as stream:
                return stream.read()
        except NoFile as e:
            raise ArtifactNotFoundError(path) from e
        except PyMongoError as e:
            logger.error("Failed to read artifact", path=path, error=str(e))
            raise ObjectStoreError(f"Failed to read {path}: {e}") from e

    async def rename_file(self, source: str, destination: str) -> None:
        try:
            revisions = list(self.bucket.find({"filename": source}))
            if not revisions:
                raise ArtifactNotFoundError(source)
            for grid_out in revisions:
                self.bucket.rename(grid_out._id, destination)
        except (NoFile, PyMongoError) as e:
            logger.error(
                "Failed to rename artifact",
                source=source,
                destination=destination,
                error=str(e),
            )
            raise ObjectStoreError(f"Failed to rename {source}: {e}") from e
        logger.info("Artifact renamed", source=source, destination=destination)

    async def delete_file(self, path: str) -> None:
        try:
            for grid_out in list(self.bucket.find({"filename": path})):
                try:
                    self.bucket.delete(grid_out._id)
                except NoFile:
                    continue
        except PyMongoError as e:
            logger.error("Failed to delete artifact", path=path, error=str(e))
            raise ObjectStoreError(f"Failed to delete {path}: {e}") from e
