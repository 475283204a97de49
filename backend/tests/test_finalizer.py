"""
Tests for session finalization and abandoned-session recovery.
"""

import pytest
from unittest.mock import AsyncMock

from estock_support.agents.finalizer import (
    DEFAULT_CLIENT_NAME, DEFAULT_SUMMARY, ERROR_LOG_CLIENT, ERROR_LOG_QUERY, FALLBACK_SUMMARY,
    SessionFinalizer, SummaryExtractor, parse_summary,
)
from estock_support.agents.recovery import (
    RECOVERED_CLIENT_NAME, RECOVERED_SUMMARY, recover_abandoned_sessions,
)
from estock_support.agents.support_agent import ConversationSession, SessionState
from estock_support.agents.tools import ToolDispatcher
from estock_support.core.errors import PersistenceError, SessionBusyError
from estock_support.models import AutosaveSnapshot, ChatLog, Message, MessageRole, now_ms
from estock_support.storage import KnowledgeStore, LocalStorage

from conftest import FakeProvider, text_reply


class FailingStorage(LocalStorage):
    """LocalStorage that refuses every write."""

    async def save(self, path, content):
        return False


def conversation(session_id: str = "1700000000000"):
    return [
        Message(id="init", role=MessageRole.MODEL, text="أهلاً"),
        Message(id=f"{session_id}_u", role=MessageRole.USER, text="عندي مشكلة"),
    ]


async def ready_session(knowledge_store, autosave, replies):
    provider = FakeProvider(replies)
    session = ConversationSession(
        session_id=str(now_ms()),
        started_at=now_ms(),
        dispatcher=ToolDispatcher(knowledge_store),
        autosave=autosave,
    )

    async def build_instruction():
        return "instruction"

    await session.start(provider, build_instruction)
    return session


class TestParseSummary:

    def test_embedded_object(self):
        summary = parse_summary('Here you go: {"clientName": "منى", "summary": "سؤال عن الجرد"} thanks')
        assert summary.client_name == "منى"
        assert summary.summary == "سؤال عن الجرد"

    def test_empty_fields_use_fallbacks(self):
        summary = parse_summary('{"clientName": "", "summary": ""}')
        assert summary.client_name == DEFAULT_CLIENT_NAME
        assert summary.summary == FALLBACK_SUMMARY

    def test_no_object(self):
        assert parse_summary("I could not find a name.") is None
        assert parse_summary(None) is None

    def test_malformed_object(self):
        assert parse_summary('{"clientName": "x", }') is None


class TestSessionFinalizer:

    @pytest.mark.asyncio
    async def test_extraction_failure_uses_defaults(self, knowledge_store, autosave):
        session = await ready_session(knowledge_store, autosave, [])
        session.messages.extend(conversation()[1:])

        extractor = AsyncMock(spec=SummaryExtractor)
        extractor.extract.side_effect = RuntimeError("model unavailable")
        finalizer = SessionFinalizer(knowledge_store, autosave, extractor)

        await finalizer.finalize(session)
        logs = await knowledge_store.get_logs()
        assert len(logs) == 1
        assert logs[0].client_name == DEFAULT_CLIENT_NAME
        assert logs[0].bot_response == DEFAULT_SUMMARY
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_unparseable_reply_uses_defaults(self, knowledge_store, autosave):
        session = await ready_session(knowledge_store, autosave, [text_reply("no json here")])
        session.messages.extend(conversation()[1:])

        await SessionFinalizer(knowledge_store, autosave).finalize(session)
        logs = await knowledge_store.get_logs()
        assert logs[0].client_name == DEFAULT_CLIENT_NAME

    @pytest.mark.asyncio
    async def test_persistence_failure_writes_error_log(self, knowledge_store, autosave):
        session = await ready_session(knowledge_store, autosave, [])
        store = AsyncMock()
        store.append_log.side_effect = [PersistenceError("primary down"), None]

        await SessionFinalizer(store, autosave).finalize(session)
        assert store.append_log.await_count == 2
        fallback = store.append_log.await_args_list[1].args[0]
        assert fallback.id == session.session_id
        assert fallback.user_query == ERROR_LOG_QUERY
        assert fallback.client_name == ERROR_LOG_CLIENT
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_autosave_cleared_even_when_nothing_persists(self, tmp_path, autosave):
        broken = KnowledgeStore(FailingStorage(str(tmp_path / "broken")))
        session = await ready_session(broken, autosave, [])
        session.messages.extend(conversation()[1:])
        await autosave.save(session.snapshot())

        await SessionFinalizer(broken, autosave).finalize(session)
        assert await autosave.list_session_ids() == []
        assert session.state is SessionState.CLOSED

    @pytest.mark.asyncio
    async def test_busy_session_cannot_finalize(self, knowledge_store, autosave):
        session = await ready_session(knowledge_store, autosave, [])
        session.state = SessionState.EXECUTING_TOOLS

        with pytest.raises(SessionBusyError):
            await SessionFinalizer(knowledge_store, autosave).finalize(session)
        assert await knowledge_store.get_logs() == []


class TestRecovery:

    @pytest.mark.asyncio
    async def test_recovers_and_clears(self, knowledge_store, autosave):
        await autosave.save(AutosaveSnapshot(session_id="111", messages=conversation("111"), timestamp=111))

        recovered = await recover_abandoned_sessions(autosave, knowledge_store)
        assert recovered == ["111"]

        logs = await knowledge_store.get_logs()
        assert logs[0].id == "111"
        assert logs[0].client_name == RECOVERED_CLIENT_NAME
        assert logs[0].bot_response == RECOVERED_SUMMARY
        assert "👤 العميل: عندي مشكلة" in logs[0].user_query
        assert await autosave.list_session_ids() == []

    @pytest.mark.asyncio
    async def test_greeting_only_snapshot_discarded(self, knowledge_store, autosave):
        await autosave.save(AutosaveSnapshot(
            session_id="222", messages=conversation("222")[:1], timestamp=222
        ))

        assert await recover_abandoned_sessions(autosave, knowledge_store) == []
        assert await knowledge_store.get_logs() == []
        assert await autosave.list_session_ids() == []

    @pytest.mark.asyncio
    async def test_already_logged_session_not_duplicated(self, knowledge_store, autosave):
        await knowledge_store.append_log(ChatLog(
            id="333", timestamp=333, duration=1.0, user_query="q", bot_response="done", client_name="منى",
        ))
        await autosave.save(AutosaveSnapshot(session_id="333", messages=conversation("333"), timestamp=333))

        assert await recover_abandoned_sessions(autosave, knowledge_store) == []
        logs = await knowledge_store.get_logs()
        assert len(logs) == 1
        assert logs[0].client_name == "منى"

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_removed(self, knowledge_store, autosave, primary_storage):
        await primary_storage.save("autosave/444.json", "{not json")

        assert await recover_abandoned_sessions(autosave, knowledge_store) == []
        assert await autosave.list_session_ids() == []

    @pytest.mark.asyncio
    async def test_second_pass_is_noop(self, knowledge_store, autosave):
        await autosave.save(AutosaveSnapshot(session_id="555", messages=conversation("555"), timestamp=555))

        await recover_abandoned_sessions(autosave, knowledge_store)
        assert await recover_abandoned_sessions(autosave, knowledge_store) == []
        assert len(await knowledge_store.get_logs()) == 1
