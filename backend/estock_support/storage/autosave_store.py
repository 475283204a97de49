"""
Autosave Store - Snapshots of in-progress sessions, keyed by session id.

A snapshot is overwritten after every transcript change and deleted when the
session ends; anything left over at startup belongs to an abandoned session.
"""

import logging
from pathlib import Path
from typing import List, Optional

from ..models import AutosaveSnapshot
from .interface import StorageInterface

logger = logging.getLogger(__name__)


class AutosaveStore:
    """Autosave slots under the well-known autosave/ namespace."""

    NAMESPACE = "autosave"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def _path(self, session_id: str) -> str:
        return f"{self.NAMESPACE}/{session_id}.json"

    async def save(self, snapshot: AutosaveSnapshot) -> bool:
        """Overwrite the snapshot of a session."""
        ok = await self.storage.save(
            self._path(snapshot.session_id),
            snapshot.model_dump_json(by_alias=True),
        )
        if not ok:
            logger.warning(f"Autosave failed for session {snapshot.session_id}")
        return ok

    async def load(self, session_id: str) -> Optional[AutosaveSnapshot]:
        """
        Load a snapshot.

        Raises:
            pydantic.ValidationError: If the stored snapshot is corrupt
        """
        content = await self.storage.load(self._path(session_id))
        if content is None:
            return None
        return AutosaveSnapshot.model_validate_json(content)

    async def clear(self, session_id: str) -> bool:
        return await self.storage.delete(self._path(session_id))

    async def list_session_ids(self) -> List[str]:
        """Return the ids of every session with a pending snapshot."""
        files = await self.storage.list(self.NAMESPACE, pattern="*.json")
        return [Path(f).stem for f in files]
