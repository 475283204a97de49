"""
Shared test fixtures and configuration.
"""

import pytest
import os
import tempfile

# Set test environment variables before importing app modules
_TEST_ROOT = tempfile.mkdtemp(prefix="estock_test_")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", os.path.join(_TEST_ROOT, "data"))
os.environ.setdefault("LOCAL_CACHE_PATH", os.path.join(_TEST_ROOT, "cache"))
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LLM_API_KEY", "")

from estock_support.llm.base import ChatHandle, LLMProvider, ModelReply
from estock_support.storage import AutosaveStore, CustomerStore, KnowledgeStore, LocalStorage


SCREEN_IMAGES = {
    "sales": "https://img.example.com/sales.png",
    "inventory": "https://img.example.com/inventory.png",
}


class FakeChat(ChatHandle):
    """
    Chat handle replaying scripted replies.
    An Exception in the script is raised instead of returned. Like the real
    chat APIs, a reply carrying function calls must be answered by exactly
    those function responses before anything else is sent.
    """

    def __init__(self, replies, system_instruction="", tools=None):
        super().__init__(system_instruction, tools)
        self.replies = list(replies)
        self.sent = []

    def pending_calls(self):
        if self.history and isinstance(self.history[-1], ModelReply):
            return [c.name for c in self.history[-1].function_calls]
        return []

    async def send_message(self, content):
        self.sent.append(content)
        answered = [
            p.function_response.name for p in self._as_parts(content)
            if p.function_response is not None
        ]
        if answered != self.pending_calls():
            raise RuntimeError("400: function calls must be followed by their responses")
        if not self.replies:
            raise AssertionError("FakeChat ran out of scripted replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        self.history.extend([content, reply])
        return reply


class FakeProvider(LLMProvider):
    """Provider handing out FakeChat instances with a shared script."""

    def __init__(self, replies=None):
        super().__init__(api_key="test-key", model="fake-model")
        self.replies = list(replies or [])
        self.chats = []

    def create_chat(self, system_instruction, tools=None):
        chat = FakeChat(self.replies, system_instruction, tools)
        self.chats.append(chat)
        return chat

    @property
    def chat(self) -> FakeChat:
        return self.chats[-1]


def text_reply(text: str) -> ModelReply:
    return ModelReply(text=text, model="fake-model")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def primary_storage(tmp_path):
    return LocalStorage(str(tmp_path / "primary"))


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(str(tmp_path / "local"))


@pytest.fixture
def knowledge_store(primary_storage, local_storage):
    return KnowledgeStore(
        primary_storage,
        local_storage,
        screen_images=SCREEN_IMAGES,
        default_admin_password="admin123",
    )


@pytest.fixture
def autosave(primary_storage):
    return AutosaveStore(primary_storage)


@pytest.fixture
def customer_store(primary_storage):
    return CustomerStore(primary_storage)
