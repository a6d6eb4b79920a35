"""
Local Filesystem Storage Implementation.
One file per key under a base directory.
"""

import logging
import os
import re
import aiofiles
from pathlib import Path
from typing import List, Optional

from .interface import StorageInterface

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Values are written to ``<base_dir>/<key>.json`` and replaced atomically.
    """

    def __init__(self, base_dir: str = "./data/device"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Map a key to its file, rejecting keys that could leave base_dir."""
        if not _KEY_PATTERN.match(key) or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_dir / f"{key}.json"

    async def get_item(self, key: str) -> Optional[str]:
        full_path = self._get_full_path(key)
        if not full_path.exists():
            return None
        try:
            async with aiofiles.open(full_path, 'r', encoding='utf-8') as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error loading key {key}: {e}")
            return None

    async def set_item(self, key: str, value: str) -> bool:
        full_path = self._get_full_path(key)
        tmp_path = full_path.with_suffix(".json.tmp")
        try:
            async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                await f.write(value)
            os.replace(tmp_path, full_path)
            return True
        except OSError as e:
            logger.error(f"Error saving key {key}: {e}")
            return False

    async def remove_item(self, key: str) -> bool:
        full_path = self._get_full_path(key)
        try:
            if full_path.exists():
                full_path.unlink()
                return True
            return False
        except OSError as e:
            logger.error(f"Error deleting key {key}: {e}")
            return False

    async def keys(self) -> List[str]:
        return sorted(p.stem for p in self.base_dir.glob("*.json"))
