"""
Session Orchestrator - The session boundary exposed to the API layer.

start_session / submit_turn / end_session are the only operations callers
invoke on the conversation core. Live sessions are kept in memory; their
autosave snapshots make them recoverable after a restart.
"""

import logging
from typing import AsyncIterator, Dict, Optional, Set

from ..core.context_assembler import ContextAssembler
from ..core.errors import SessionClosedError, SessionNotFoundError
from ..llm.base import LLMProvider
from ..models import Customer, Message, now_ms
from .finalizer import SessionFinalizer, SummaryExtractor
from .prompts import build_system_instruction
from .support_agent import ConversationSession, ImageAttachment
from .tools import ToolDispatcher

logger = logging.getLogger(__name__)


class SessionOrchestrator:
    """
    Creates, drives and finalizes conversation sessions.
    """

    def __init__(
        self,
        knowledge_store,
        autosave,
        llm_provider: Optional[LLMProvider] = None,
        assembler: Optional[ContextAssembler] = None,
        extractor: Optional[SummaryExtractor] = None,
        max_image_bytes: int = 1024 * 1024,
        max_tool_iterations: int = 10,
    ):
        """
        Initialize the orchestrator.

        Args:
            knowledge_store: KnowledgeStore read for context and written with logs
            autosave: AutosaveStore for in-progress snapshots
            llm_provider: Model provider, None when no API key is configured
            assembler: Context assembler (defaults to standard limits)
            extractor: Summary extractor used at session end
            max_image_bytes: Upload cap for turn images
            max_tool_iterations: Tool rounds allowed per user turn
        """
        self.knowledge_store = knowledge_store
        self.autosave = autosave
        self.llm_provider = llm_provider
        self.assembler = assembler or ContextAssembler()
        self.dispatcher = ToolDispatcher(knowledge_store)
        self.finalizer = SessionFinalizer(knowledge_store, autosave, extractor)
        self.max_image_bytes = max_image_bytes
        self.max_tool_iterations = max_tool_iterations

        self._sessions: Dict[str, ConversationSession] = {}
        self._closed: Set[str] = set()
        self._last_id = 0

    def _new_session_id(self) -> int:
        # time-based, bumped so two sessions in the same millisecond differ
        self._last_id = max(now_ms(), self._last_id + 1)
        return self._last_id

    async def start_session(self, customer: Optional[Customer] = None) -> ConversationSession:
        """
        Open a session and greet the customer.

        Args:
            customer: Logged-in customer, personalizes the persona prompt

        Returns:
            ConversationSession: READY with the greeting, or ERROR with a fallback message
        """
        started_at = self._new_session_id()
        session = ConversationSession(
            session_id=str(started_at),
            started_at=started_at,
            dispatcher=self.dispatcher,
            autosave=self.autosave,
            max_image_bytes=self.max_image_bytes,
            max_tool_iterations=self.max_tool_iterations,
        )
        self._sessions[session.session_id] = session

        async def build_instruction() -> str:
            knowledge = await self.assembler.build(self.knowledge_store)
            return build_system_instruction(knowledge, customer)

        await session.start(self.llm_provider, build_instruction)
        logger.info(
            f"Session {session.session_id} opened: state={session.state.value}",
            extra={"extra_fields": {
                "session_id": session.session_id,
                "customer_id": customer.id if customer else None,
            }}
        )
        return session

    @property
    def active_session_count(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> ConversationSession:
        """
        Raises:
            SessionClosedError: The session already ended
            SessionNotFoundError: No such session
        """
        if session_id in self._closed:
            raise SessionClosedError(f"Session {session_id} is closed")
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    def submit_turn(
        self,
        session_id: str,
        text: Optional[str] = None,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[Message]:
        """
        Submit a user turn; validation errors are raised before anything runs.

        Returns:
            AsyncIterator[Message]: Messages appended by the turn
        """
        return self.get_session(session_id).submit_turn(text, image)

    async def end_session(self, session_id: str) -> str:
        """
        Finalize a session.

        Returns:
            str: Log id (equal to the session id)
        """
        session = self.get_session(session_id)
        log_id = await self.finalizer.finalize(session)
        self._sessions.pop(session_id, None)
        self._closed.add(session_id)
        return log_id
