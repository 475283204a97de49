"""
Tests for the knowledge, customer and autosave stores.
"""

import json
import pytest

from estock_support.core.errors import PersistenceError
from estock_support.models import (
    AutosaveSnapshot, ChatLog, CompanyInfo, Customer, Feedback, KBItem, KnowledgeSnippet, Message,
    MessageRole,
)
from estock_support.storage import KnowledgeStore, LocalStorage, load_default_manual
from estock_support.storage.customer_store import DUPLICATE_CONTRACT_MESSAGE, MISSING_FIELDS_MESSAGE


class FailingStorage(LocalStorage):
    """LocalStorage that refuses every write."""

    async def save(self, path, content):
        return False


class FlakyStorage(LocalStorage):
    """LocalStorage whose writes can be switched off mid-test."""

    def __init__(self, base_dir):
        super().__init__(base_dir)
        self.down = False

    async def save(self, path, content):
        if self.down:
            return False
        return await super().save(path, content)


def log(log_id: str, timestamp: int) -> ChatLog:
    return ChatLog(id=log_id, timestamp=timestamp, duration=3.0, user_query="q", bot_response="a")


class TestLocalStorage:

    @pytest.mark.asyncio
    async def test_save_load_list(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        assert await storage.save("logs/b.json", "{}")
        assert await storage.save("logs/a.json", b"{}")
        assert await storage.load("logs/a.json") == b"{}"
        assert await storage.list("logs", pattern="*.json") == ["logs/a.json", "logs/b.json"]
        assert await storage.load("logs/missing.json") is None

    def test_path_traversal_rejected(self, tmp_path):
        storage = LocalStorage(str(tmp_path))
        with pytest.raises(ValueError):
            storage._get_full_path("../outside.json")


class TestKnowledgeStoreManual:

    @pytest.mark.asyncio
    async def test_default_manual_when_nothing_stored(self, knowledge_store):
        assert await knowledge_store.get_manual() == load_default_manual()

    @pytest.mark.asyncio
    async def test_cleared_manual_stays_empty(self, knowledge_store):
        assert await knowledge_store.reset_manual() == 0
        assert await knowledge_store.get_manual() == ""

    @pytest.mark.asyncio
    async def test_restore_default(self, knowledge_store):
        await knowledge_store.save_manual("custom")
        length = await knowledge_store.restore_default_manual()
        assert await knowledge_store.get_manual() == load_default_manual()
        assert length == len(load_default_manual())

    @pytest.mark.asyncio
    async def test_append(self, knowledge_store):
        await knowledge_store.save_manual("Base")
        length = await knowledge_store.append_manual("printers.pdf", "Install the driver.")
        manual = await knowledge_store.get_manual()
        assert manual == (
            "Base\n\n================================\n"
            "📚 **source:** printers.pdf\nInstall the driver."
        )
        assert length == len(manual)

    @pytest.mark.asyncio
    async def test_append_to_empty_manual(self, knowledge_store):
        await knowledge_store.reset_manual()
        await knowledge_store.append_manual("a.docx", "text")
        assert await knowledge_store.get_manual() == "📚 **source:** a.docx\ntext"


class TestKnowledgeStoreLayering:

    @pytest.mark.asyncio
    async def test_reads_fall_back_to_local_copy(self, tmp_path):
        primary = LocalStorage(str(tmp_path / "primary"))
        local = LocalStorage(str(tmp_path / "local"))
        store = KnowledgeStore(primary, local)

        await store.save_manual("written to both")
        await primary.delete(KnowledgeStore.MANUAL_PATH)
        assert await store.get_manual() == "written to both"

    @pytest.mark.asyncio
    async def test_primary_wins_when_both_present(self, tmp_path):
        primary = LocalStorage(str(tmp_path / "primary"))
        local = LocalStorage(str(tmp_path / "local"))
        store = KnowledgeStore(primary, local)

        await local.save(KnowledgeStore.MANUAL_PATH, json.dumps({"content": "stale"}))
        await primary.save(KnowledgeStore.MANUAL_PATH, json.dumps({"content": "fresh"}))
        assert await store.get_manual() == "fresh"

    @pytest.mark.asyncio
    async def test_write_succeeds_when_primary_down(self, tmp_path):
        local = LocalStorage(str(tmp_path / "local"))
        store = KnowledgeStore(FailingStorage(str(tmp_path / "primary")), local)

        await store.append_log(log("1", 1))
        assert [entry.id for entry in await store.get_logs()] == ["1"]

    @pytest.mark.asyncio
    async def test_write_fails_when_no_backend_accepts(self, tmp_path):
        store = KnowledgeStore(FailingStorage(str(tmp_path / "primary")))
        with pytest.raises(PersistenceError):
            await store.append_log(log("1", 1))

    @pytest.mark.asyncio
    async def test_collections_include_local_only_records(self, tmp_path):
        primary = FlakyStorage(str(tmp_path / "primary"))
        store = KnowledgeStore(primary, LocalStorage(str(tmp_path / "local")))

        await store.add_snippet(KnowledgeSnippet(id="s1", content="first", timestamp=100))
        await store.append_log(log("1", 1))
        primary.down = True
        await store.add_snippet(KnowledgeSnippet(id="s2", content="override", timestamp=200))
        await store.append_log(log("2", 2))
        await store.add_feedback(Feedback(id="f1", chat_id="2", rating=4, timestamp=3))

        assert [s.id for s in await store.get_snippets()] == ["s2", "s1"]
        assert [entry.id for entry in await store.get_logs()] == ["2", "1"]
        assert [f.id for f in await store.get_feedback()] == ["f1"]

    @pytest.mark.asyncio
    async def test_collection_primary_copy_wins(self, tmp_path):
        primary = LocalStorage(str(tmp_path / "primary"))
        local = LocalStorage(str(tmp_path / "local"))
        store = KnowledgeStore(primary, local)

        stale = KnowledgeSnippet(id="s1", content="stale", timestamp=100)
        fresh = KnowledgeSnippet(id="s1", content="fresh", timestamp=100)
        await local.save(f"{KnowledgeStore.SNIPPETS_DIR}/s1.json", json.dumps(stale.model_dump(by_alias=True)))
        await primary.save(f"{KnowledgeStore.SNIPPETS_DIR}/s1.json", json.dumps(fresh.model_dump(by_alias=True)))

        snippets = await store.get_snippets()
        assert [s.content for s in snippets] == ["fresh"]


class TestKnowledgeStoreRecords:

    @pytest.mark.asyncio
    async def test_snippets_newest_first(self, knowledge_store):
        await knowledge_store.add_snippet(KnowledgeSnippet(id="old", content="a", timestamp=100))
        await knowledge_store.add_snippet(KnowledgeSnippet(id="new", content="b", timestamp=200))
        assert [s.id for s in await knowledge_store.get_snippets()] == ["new", "old"]

        assert await knowledge_store.delete_snippet("old")
        assert await knowledge_store.get_snippet("old") is None
        assert not await knowledge_store.delete_snippet("old")

    @pytest.mark.asyncio
    async def test_kb_seed_and_search(self, knowledge_store):
        items = await knowledge_store.get_kb_items()
        assert len(items) == 1
        assert await knowledge_store.search_kb("فاتورة المبيعات") == items[0].answer

        await knowledge_store.save_kb_items([KBItem(id="9", question="Reset Password?", answer="Call us.")])
        assert await knowledge_store.search_kb("reset") == "Call us."
        assert await knowledge_store.search_kb("فاتورة المبيعات") is None
        assert await knowledge_store.search_kb("   ") is None

    @pytest.mark.asyncio
    async def test_logs_newest_first_with_limit(self, knowledge_store):
        for i, ts in enumerate([300, 100, 200]):
            await knowledge_store.append_log(log(str(i), ts))
        logs = await knowledge_store.get_logs(limit=2)
        assert [entry.timestamp for entry in logs] == [300, 200]
        assert await knowledge_store.has_log("1")
        assert not await knowledge_store.has_log("99")

    @pytest.mark.asyncio
    async def test_feedback(self, knowledge_store):
        await knowledge_store.add_feedback(Feedback(id="f1", chat_id="1", rating=5, timestamp=10))
        await knowledge_store.add_feedback(Feedback(id="f2", chat_id="2", rating=3, timestamp=20))
        assert [f.id for f in await knowledge_store.get_feedback()] == ["f2", "f1"]

    @pytest.mark.asyncio
    async def test_company_info_defaults_and_update(self, knowledge_store):
        assert await knowledge_store.get_company_info() == CompanyInfo()
        await knowledge_store.save_company_info(CompanyInfo(phone="0111"))
        info = await knowledge_store.get_company_info()
        assert info.phone == "0111"
        assert info.email == CompanyInfo().email

    def test_screen_image_lookup(self, knowledge_store):
        assert knowledge_store.get_screen_image("INVENTORY") == "https://img.example.com/inventory.png"
        assert knowledge_store.get_screen_image("reports") is None

    @pytest.mark.asyncio
    async def test_admin_password(self, knowledge_store):
        assert await knowledge_store.verify_admin_password("admin123")
        await knowledge_store.set_admin_password("s3cret")
        assert not await knowledge_store.verify_admin_password("admin123")
        assert await knowledge_store.verify_admin_password("s3cret")

    @pytest.mark.asyncio
    async def test_export(self, knowledge_store):
        await knowledge_store.save_manual("Manual")
        await knowledge_store.add_snippet(KnowledgeSnippet(id="s1", content="Update", timestamp=0))
        exported = await knowledge_store.export_knowledge()
        assert exported.startswith("Manual\n\n=== 🚨 Snippets & Critical Updates ===\n")
        assert "[ID: s1]" in exported
        assert exported.endswith("\nUpdate\n-------------------")


class TestCustomerStore:

    @pytest.mark.asyncio
    async def test_register_and_authenticate(self, customer_store):
        customer, error = await customer_store.register(" صيدلية الشفاء ", "1001")
        assert error is None
        assert customer.name == "صيدلية الشفاء"

        logged_in = await customer_store.authenticate("صيدلية الشفاء", "1001")
        assert logged_in.id == customer.id
        assert logged_in.last_login is not None

    @pytest.mark.asyncio
    async def test_register_validation(self, customer_store):
        assert await customer_store.register("", "1") == (None, MISSING_FIELDS_MESSAGE)
        await customer_store.register("A", "1")
        assert await customer_store.register("B", "1") == (None, DUPLICATE_CONTRACT_MESSAGE)

    @pytest.mark.asyncio
    async def test_authenticate_rejections(self, customer_store):
        customer, _ = await customer_store.register("A", "77")
        assert await customer_store.authenticate("B", "77") is None
        assert await customer_store.authenticate("A", "78") is None

        customer.is_active = False
        await customer_store.save_customer(customer)
        assert await customer_store.authenticate("A", "77") is None

    @pytest.mark.asyncio
    async def test_contract_change_updates_index(self, customer_store):
        customer, _ = await customer_store.register("A", "10")
        customer.contract_number = "20"
        await customer_store.save_customer(customer)
        assert await customer_store.get_by_contract("10") is None
        assert (await customer_store.get_by_contract("20")).id == customer.id

    @pytest.mark.asyncio
    async def test_bulk_add_skips_existing(self, customer_store):
        await customer_store.register("A", "1")
        added = await customer_store.bulk_add([
            Customer(id="x1", name="B", contract_number="1"),
            Customer(id="x2", name="C", contract_number="2"),
        ])
        assert added == 1
        assert [c.name for c in await customer_store.list_customers()] == ["A", "C"]

    @pytest.mark.asyncio
    async def test_delete(self, customer_store):
        customer, _ = await customer_store.register("A", "5")
        assert await customer_store.delete_customer(customer.id)
        assert await customer_store.get_by_contract("5") is None
        assert not await customer_store.delete_customer(customer.id)


class TestAutosaveStore:

    @pytest.mark.asyncio
    async def test_overwrite_and_clear(self, autosave):
        first = AutosaveSnapshot(
            session_id="42",
            messages=[Message(id="init", role=MessageRole.MODEL, text="hi")],
            timestamp=42,
        )
        await autosave.save(first)
        second = first.model_copy(update={"messages": first.messages * 2})
        await autosave.save(second)

        loaded = await autosave.load("42")
        assert len(loaded.messages) == 2
        assert await autosave.list_session_ids() == ["42"]

        assert await autosave.clear("42")
        assert await autosave.load("42") is None
