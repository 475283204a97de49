"""
Storage Interface - Abstract base class for all storage backends.
The knowledge store, customer store and autosave slots are all written
through this interface so a hosted backend can replace the filesystem.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """
    Abstract key/blob storage contract.

    Implementations never raise for backend failures: they log and report
    failure through the return value (False / None / []), so callers can
    degrade to a fallback copy.
    """

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path, replacing any previous content.

        Args:
            path: Relative path (e.g., "knowledge/snippets/1730000000000.json")
            content: Content to save (bytes or str)

        Returns:
            bool: True if save was successful, False otherwise
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Returns:
            Optional[bytes]: File content, or None if missing or unreadable
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete content at the specified path.

        Returns:
            bool: True if something was deleted
        """
        pass

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List files directly inside a directory.

        Args:
            path: Directory path to list
            pattern: Optional glob pattern to filter files (e.g., "*.json")

        Returns:
            List[str]: Sorted relative file paths
        """
        pass
