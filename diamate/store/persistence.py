"""
Persistence for the client health-data store.

The store writes a JSON projection of its state under one fixed key of the
device's key-value storage, wrapped the way the mobile client's state
library does it: ``{"state": {...}, "version": 0}``.
"""

import copy
import json
import logging
from typing import Any, Dict, Optional, Protocol

from ..config import settings
from ..storage import LocalStorage, StorageInterface

logger = logging.getLogger(__name__)

STORAGE_KEY = "diamate-storage"
STATE_VERSION = 0


class StateRepository(Protocol):
    """Where the store's persisted projection lives."""

    async def load(self) -> Optional[Dict[str, Any]]:
        """Return the last saved snapshot, or None if nothing was saved."""
        ...

    async def save(self, snapshot: Dict[str, Any]) -> None:
        ...


class InMemoryStateRepository:
    """Keeps snapshots in memory. Used in tests and for ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.snapshot = copy.deepcopy(initial) if initial is not None else None
        self.saves = 0

    async def load(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.snapshot)

    async def save(self, snapshot: Dict[str, Any]) -> None:
        self.snapshot = copy.deepcopy(snapshot)
        self.saves += 1


class FileStateRepository:
    """Snapshot stored as JSON through a StorageInterface (files under ``settings.store_path`` by default)."""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        base_dir: Optional[str] = None,
        key: str = STORAGE_KEY,
    ):
        self.storage = storage or LocalStorage(base_dir or settings.store_path)
        self.key = key

    async def load(self) -> Optional[Dict[str, Any]]:
        """
        Read the persisted snapshot.

        Raises:
            ValueError: if the stored text is not the expected JSON envelope
        """
        raw = await self.storage.get_item(self.key)
        if raw is None:
            return None
        payload = json.loads(raw)
        if not isinstance(payload, dict) or not isinstance(payload.get("state"), dict):
            raise ValueError(f"Unexpected layout under {self.key}")
        return payload["state"]

    async def save(self, snapshot: Dict[str, Any]) -> None:
        text = json.dumps({"state": snapshot, "version": STATE_VERSION}, ensure_ascii=False)
        if not await self.storage.set_item(self.key, text):
            raise OSError(f"Could not write {self.key}")

    async def clear(self) -> None:
        await self.storage.remove_item(self.key)
