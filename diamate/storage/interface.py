"""
Storage Interface - Abstract base class for device key-value storage.
Implementations can target the local filesystem, a platform keystore, etc.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class StorageInterface(ABC):
    """
    Async string key-value storage, the shape of a mobile device's
    persistent storage API.
    """

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: Storage key (e.g., "diamate-storage")

        Returns:
            Optional[str]: Stored text, or None if the key is absent
        """
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> bool:
        """
        Store a value, replacing any previous one.

        Args:
            key: Storage key
            value: Text to store

        Returns:
            bool: True if the write was successful
        """
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            bool: True if a value was removed
        """
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        """List the stored keys."""
        pass
