"""
Knowledge Store - Manual, snippets, Q&A items, company info, chat logs,
feedback and the admin password, persisted as JSON documents.

Reads try the primary backend first and fall back to the local copy; writes
go to both so the local copy stays usable while the primary is unreachable.
Writes are last-writer-wins with no isolation from concurrent readers.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.errors import PersistenceError
from ..models import ChatLog, CompanyInfo, Feedback, KBItem, KnowledgeSnippet, now_ms
from ..utils.auth import get_password_hash, verify_password
from .interface import StorageInterface

logger = logging.getLogger(__name__)

DEFAULT_MANUAL_PATH = Path(__file__).resolve().parent.parent / "data" / "default_manual.md"

INITIAL_KB_ITEMS = [
    KBItem(
        id="1",
        question="أجيب منين فاتورة المبيعات؟",
        answer='من قائمة [المبيعات] واختار "فاتورة المبيعات" أو اضغط على اختصار Alt+S.',
        tags=["sales", "pos"],
    ),
]

MANUAL_SEPARATOR = "\n\n================================\n"


def load_default_manual() -> str:
    """Return the bundled e-stock manual."""
    return DEFAULT_MANUAL_PATH.read_text(encoding="utf-8")


class KnowledgeStore:
    """
    Layered document store used by the conversation core and the admin API.
    """

    MANUAL_PATH = "knowledge/manual.json"
    SNIPPETS_DIR = "knowledge/snippets"
    KB_ITEMS_PATH = "knowledge/kb_items.json"
    COMPANY_INFO_PATH = "settings/company_info.json"
    ADMIN_PATH = "settings/admin.json"
    LOGS_DIR = "logs"
    FEEDBACK_DIR = "feedback"

    def __init__(
        self,
        primary: StorageInterface,
        local: Optional[StorageInterface] = None,
        screen_images: Optional[Dict[str, str]] = None,
        default_admin_password: str = "admin123",
    ):
        """
        Initialize the store.

        Args:
            primary: Shared backend, the source of truth when reachable
            local: Optional fallback copy written alongside the primary
            screen_images: Screen name -> illustration URL
            default_admin_password: Password seeded when none is stored
        """
        self.primary = primary
        self.local = local
        self.screen_images = {k.lower(): v for k, v in (screen_images or {}).items()}
        self.default_admin_password = default_admin_password

    def _backends(self) -> List[StorageInterface]:
        return [b for b in (self.primary, self.local) if b is not None]

    # ------------------------------------------------------------------ #
    # Document helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _decode(content: bytes, path: str) -> Optional[Any]:
        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable document {path}: {e}")
            return None

    async def _read(self, path: str) -> Optional[Any]:
        """Read a JSON document from the first backend that has it."""
        for backend in self._backends():
            content = await backend.load(path)
            if content is None:
                continue
            data = self._decode(content, path)
            if data is not None:
                return data
        return None

    async def _write(self, path: str, data: Any) -> None:
        """
        Write a JSON document to every backend.

        Raises:
            PersistenceError: If no backend accepted the write
        """
        payload = json.dumps(data, ensure_ascii=False, indent=2)
        primary_ok = await self.primary.save(path, payload)
        if not primary_ok:
            logger.warning(f"Primary store write failed for {path}, relying on local copy")

        local_ok = False
        if self.local is not None:
            local_ok = await self.local.save(path, payload)

        if not (primary_ok or local_ok):
            raise PersistenceError(f"Could not persist {path}")

    async def _remove(self, path: str) -> bool:
        removed = False
        for backend in self._backends():
            removed = await backend.delete(path) or removed
        return removed

    async def _read_collection(self, directory: str) -> List[Dict[str, Any]]:
        """
        Read every document in a directory across backends.
        Records present only in the local copy are included; where both
        backends hold the same file, the primary's copy wins.
        """
        items = []
        seen = set()
        for backend in self._backends():
            for file_path in await backend.list(directory, pattern="*.json"):
                if file_path in seen:
                    continue
                content = await backend.load(file_path)
                if content is None:
                    continue
                data = self._decode(content, file_path)
                if isinstance(data, dict):
                    seen.add(file_path)
                    items.append(data)
        return items

    # ------------------------------------------------------------------ #
    # Manual
    # ------------------------------------------------------------------ #

    async def get_manual(self) -> str:
        """
        Return the base manual.
        An explicitly stored empty manual is honoured; only a missing record
        falls back to the bundled default.
        """
        data = await self._read(self.MANUAL_PATH)
        if isinstance(data, dict) and data.get("content") is not None:
            return str(data["content"])
        return load_default_manual()

    async def save_manual(self, text: str) -> None:
        """Replace the manual."""
        await self._write(self.MANUAL_PATH, {"content": text, "timestamp": now_ms()})

    async def append_manual(self, source_name: str, text: str) -> int:
        """
        Append already-extracted document text to the manual.

        Returns:
            int: New manual length in characters
        """
        current = await self.get_manual()
        separator = MANUAL_SEPARATOR if current else ""
        updated = f"{current}{separator}📚 **source:** {source_name}\n{text}"
        await self.save_manual(updated)
        return len(updated)

    async def reset_manual(self) -> int:
        """Clear the manual completely, including the bundled default."""
        await self.save_manual("")
        return 0

    async def restore_default_manual(self) -> int:
        """Drop the stored manual so the bundled default applies again."""
        await self._remove(self.MANUAL_PATH)
        return len(load_default_manual())

    # ------------------------------------------------------------------ #
    # Snippets
    # ------------------------------------------------------------------ #

    async def get_snippets(self) -> List[KnowledgeSnippet]:
        """Return all snippets, newest first."""
        snippets = []
        for raw in await self._read_collection(self.SNIPPETS_DIR):
            try:
                snippets.append(KnowledgeSnippet.model_validate(raw))
            except ValueError as e:
                logger.warning(f"Skipping invalid snippet record: {e}")
        snippets.sort(key=lambda s: (s.timestamp, s.id), reverse=True)
        return snippets

    async def get_snippet(self, snippet_id: str) -> Optional[KnowledgeSnippet]:
        for snippet in await self.get_snippets():
            if snippet.id == snippet_id:
                return snippet
        return None

    async def add_snippet(self, snippet: KnowledgeSnippet) -> KnowledgeSnippet:
        await self._write(f"{self.SNIPPETS_DIR}/{snippet.id}.json", snippet.model_dump(by_alias=True))
        return snippet

    async def delete_snippet(self, snippet_id: str) -> bool:
        return await self._remove(f"{self.SNIPPETS_DIR}/{snippet_id}.json")

    # ------------------------------------------------------------------ #
    # Q&A items
    # ------------------------------------------------------------------ #

    async def get_kb_items(self) -> List[KBItem]:
        data = await self._read(self.KB_ITEMS_PATH)
        if not isinstance(data, list):
            return list(INITIAL_KB_ITEMS)
        return [KBItem.model_validate(item) for item in data]

    async def save_kb_items(self, items: List[KBItem]) -> None:
        await self._write(self.KB_ITEMS_PATH, [item.model_dump(by_alias=True) for item in items])

    async def search_kb(self, query: str) -> Optional[str]:
        """
        Return the answer of the first Q&A item whose question contains the query.

        Args:
            query: Search text (case-insensitive)

        Returns:
            Matching answer, or None
        """
        q = query.strip().lower()
        if not q:
            return None
        for item in await self.get_kb_items():
            if q in item.question.lower():
                return item.answer
        return None

    # ------------------------------------------------------------------ #
    # Company info & screen images
    # ------------------------------------------------------------------ #

    async def get_company_info(self) -> CompanyInfo:
        data = await self._read(self.COMPANY_INFO_PATH)
        defaults = CompanyInfo().model_dump(by_alias=True)
        if isinstance(data, dict):
            defaults.update({k: v for k, v in data.items() if v is not None})
        return CompanyInfo.model_validate(defaults)

    async def save_company_info(self, info: CompanyInfo) -> None:
        await self._write(self.COMPANY_INFO_PATH, info.model_dump(by_alias=True))

    def get_screen_image(self, screen_name: str) -> Optional[str]:
        """Return the illustration URL for a screen, or None if none is mapped."""
        return self.screen_images.get((screen_name or "").lower())

    # ------------------------------------------------------------------ #
    # Logs & feedback
    # ------------------------------------------------------------------ #

    async def append_log(self, log: ChatLog) -> None:
        """
        Persist a chat log keyed by its session id.

        Raises:
            PersistenceError: If no backend accepted the write
        """
        await self._write(f"{self.LOGS_DIR}/{log.id}.json", log.model_dump(by_alias=True))

    async def has_log(self, log_id: str) -> bool:
        return await self._read(f"{self.LOGS_DIR}/{log_id}.json") is not None

    async def get_logs(self, limit: int = 100) -> List[ChatLog]:
        """Return the most recent logs, newest first."""
        logs = [ChatLog.model_validate(raw) for raw in await self._read_collection(self.LOGS_DIR)]
        logs.sort(key=lambda log: log.timestamp, reverse=True)
        return logs[:limit]

    async def add_feedback(self, feedback: Feedback) -> None:
        await self._write(f"{self.FEEDBACK_DIR}/{feedback.id}.json", feedback.model_dump(by_alias=True))

    async def get_feedback(self, limit: int = 100) -> List[Feedback]:
        items = [Feedback.model_validate(raw) for raw in await self._read_collection(self.FEEDBACK_DIR)]
        items.sort(key=lambda f: f.timestamp, reverse=True)
        return items[:limit]

    # ------------------------------------------------------------------ #
    # Admin password
    # ------------------------------------------------------------------ #

    async def get_admin_password(self) -> str:
        """Return the stored admin password hash, seeding the default on first use."""
        data = await self._read(self.ADMIN_PATH)
        if isinstance(data, dict) and data.get("password_hash"):
            return data["password_hash"]
        hashed = get_password_hash(self.default_admin_password)
        await self._write(self.ADMIN_PATH, {"password_hash": hashed})
        return hashed

    async def set_admin_password(self, password: str) -> None:
        await self._write(self.ADMIN_PATH, {"password_hash": get_password_hash(password)})

    async def verify_admin_password(self, password: str) -> bool:
        return verify_password(password, await self.get_admin_password())

    # ------------------------------------------------------------------ #
    # Export
    # ------------------------------------------------------------------ #

    async def export_knowledge(self) -> str:
        """Return the manual followed by every snippet as one text document."""
        content = await self.get_manual()
        snippets = await self.get_snippets()
        if snippets:
            content += "\n\n=== 🚨 Snippets & Critical Updates ===\n"
            for s in snippets:
                day = datetime.fromtimestamp(s.timestamp / 1000).date().isoformat()
                content += f"\n[ID: {s.id}] {day} \n{s.content}\n-------------------"
        return content
