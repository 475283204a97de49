"""
Local Filesystem Storage Implementation.
Every record is one file under a base directory. Writes go to a temporary
sibling first and are moved into place, so a reader never sees a half-written
document (autosave snapshots are rewritten after every message).
"""

import logging
import uuid
import aiofiles
import aiofiles.os
from pathlib import Path
from typing import Optional, List
from .interface import StorageInterface

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Filesystem-backed StorageInterface.
    Used both as the primary store and as the local fallback copy.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Args:
            base_dir: Base directory for all stored files (created if missing)
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Resolve a relative path, refusing anything outside the base directory."""
        full_path = (self.base_dir / path).resolve()
        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            raise ValueError(f"Invalid path: {path} - path traversal detected")
        return full_path

    async def save(self, path: str, content: bytes | str) -> bool:
        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)

            tmp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex[:8]}.tmp")
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, full_path)
            return True
        except Exception as e:
            logger.error(f"Error saving {path} under {self.base_dir}: {e}")
            return False

    async def load(self, path: str) -> Optional[bytes]:
        try:
            full_path = self._get_full_path(path)
            if not full_path.is_file():
                return None
            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except Exception as e:
            logger.error(f"Error loading {path} under {self.base_dir}: {e}")
            return None

    async def delete(self, path: str) -> bool:
        try:
            full_path = self._get_full_path(path)
            if not full_path.is_file():
                return False
            await aiofiles.os.remove(full_path)
            return True
        except Exception as e:
            logger.error(f"Error deleting {path} under {self.base_dir}: {e}")
            return False

    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        try:
            full_path = self._get_full_path(path)
            if not full_path.is_dir():
                return []
            # skip in-flight temporary files
            files = [p for p in full_path.glob(pattern or "*") if p.is_file() and not p.name.startswith(".")]
            return sorted(p.relative_to(self.base_dir).as_posix() for p in files)
        except Exception as e:
            logger.error(f"Error listing {path} under {self.base_dir}: {e}")
            return []
