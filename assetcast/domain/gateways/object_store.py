"""Domain Gateway - Hierarchical artifact store."""

from abc import ABC, abstractmethod
from typing import List


class IObjectStore(ABC):
    """Interface for the bucket the ML service writes artifacts to."""

    @abstractmethod
    async def read_dir(self, prefix: str) -> List[str]:
        """Full paths of every file below ``prefix``."""

    @abstractmethod
    async def read_file(self, path: str) -> bytes:
        """
        Content of a file.

        Raises:
            ArtifactNotFoundError: If the path does not exist
        """

    @abstractmethod
    async def rename_file(self, source: str, destination: str) -> None:
        """
        Move a file to a new path.

        Raises:
            ArtifactNotFoundError: If ``source`` does not exist
        """

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        """Delete a file. Missing files are ignored."""
