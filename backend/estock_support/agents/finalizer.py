"""
Session Finalizer - Summarizes an ended session and persists its chat log.

Finalization always ends in CLOSED: extraction failures fall back to default
name/summary values, and a persistence failure is replaced by a minimal error
log. The autosave snapshot is cleared in every case.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from ..core.transcript import format_transcript
from ..llm.base import ChatHandle
from ..models import CamelModel, ChatLog, now_ms
from .prompts import SUMMARY_EXTRACTION_PROMPT

logger = logging.getLogger(__name__)

# used when extraction is skipped or fails
DEFAULT_CLIENT_NAME = "زائر"
DEFAULT_SUMMARY = "محادثة عامة"
# used when the model answered but left a field empty
FALLBACK_SUMMARY = "محادثة دعم فني"

ERROR_LOG_QUERY = "Error saving detail"
ERROR_LOG_RESPONSE = "Session ended with error"
ERROR_LOG_CLIENT = "Error"

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class SessionSummary(CamelModel):
    client_name: str = DEFAULT_CLIENT_NAME
    summary: str = DEFAULT_SUMMARY


class _ExtractedFields(CamelModel):
    client_name: Optional[str] = None
    summary: Optional[str] = None


def parse_summary(text: Optional[str]) -> Optional[SessionSummary]:
    """
    Parse the JSON object embedded in a model reply.

    Returns:
        SessionSummary, or None when no valid object is found
    """
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None

    try:
        data = json.loads(match.group(0))
        fields = _ExtractedFields.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Failed to parse session summary: {str(e)}")
        return None

    return SessionSummary(
        client_name=fields.client_name or DEFAULT_CLIENT_NAME,
        summary=fields.summary or FALLBACK_SUMMARY,
    )


class SummaryExtractor(ABC):
    """Extracts the customer name and a one-line summary from a live chat."""

    @abstractmethod
    async def extract(self, chat: ChatHandle) -> Optional[SessionSummary]:
        pass


class JsonSummaryExtractor(SummaryExtractor):
    """Asks the model for a JSON object and parses it from the free-text reply."""

    def __init__(self, prompt: str = SUMMARY_EXTRACTION_PROMPT):
        self.prompt = prompt

    async def extract(self, chat: ChatHandle) -> Optional[SessionSummary]:
        reply = await chat.send_message(self.prompt)
        return parse_summary(reply.text)


class SessionFinalizer:
    """Turns a ConversationSession into exactly one ChatLog."""

    def __init__(self, knowledge_store, autosave, extractor: Optional[SummaryExtractor] = None):
        self.knowledge_store = knowledge_store
        self.autosave = autosave
        self.extractor = extractor or JsonSummaryExtractor()

    async def _summarize(self, session) -> SessionSummary:
        if session.chat is None or len(session.messages) <= 1:
            return SessionSummary()
        try:
            return await self.extractor.extract(session.chat) or SessionSummary()
        except Exception as e:
            session.log.warning(f"Failed to extract session details, using defaults: {str(e)}")
            return SessionSummary()

    async def finalize(self, session) -> str:
        """
        End a session.

        Args:
            session: ConversationSession in READY or ERROR state

        Returns:
            str: Id of the persisted log (the session id)
        """
        session.begin_finalizing()
        session.log.info(f"Finalizing session with {len(session.messages)} message(s)")

        def duration() -> float:
            return (now_ms() - session.started_at) / 1000

        try:
            summary = await self._summarize(session)
            await self.knowledge_store.append_log(ChatLog(
                id=session.session_id,
                timestamp=session.started_at,
                duration=duration(),
                user_query=format_transcript(session.messages),
                bot_response=summary.summary,
                client_name=summary.client_name,
            ))
        except Exception as e:
            session.log.error(f"Error saving log: {str(e)}", exc_info=True)
            try:
                await self.knowledge_store.append_log(ChatLog(
                    id=session.session_id,
                    timestamp=session.started_at,
                    duration=duration(),
                    user_query=ERROR_LOG_QUERY,
                    bot_response=ERROR_LOG_RESPONSE,
                    client_name=ERROR_LOG_CLIENT,
                ))
            except Exception as fallback_error:
                session.log.error(f"Fallback log could not be saved: {str(fallback_error)}")
        finally:
            await self.autosave.clear(session.session_id)
            session.close()

        session.log.info("Session closed")
        return session.session_id
