"""
Conversation Session - One customer chat bound to one system instruction.

States:
    UNINITIALIZED -> READY -> AWAITING_MODEL <-> EXECUTING_TOOLS -> READY
    READY -> FINALIZING -> CLOSED
    UNINITIALIZED -> ERROR (initialization failed, no retry)

Model calls for one session are strictly serialized. Tool calls inside one
batch run concurrently and their results go back to the model as one turn.
"""

import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from ..core.errors import (
    ConfigurationError, SessionBusyError, SessionClosedError, SubmissionError,
)
from ..core.logging_config import SessionLoggerAdapter
from ..llm.base import ChatHandle, LLMProvider, MessageContent, Part
from ..models import AutosaveSnapshot, Message, MessageRole, time_id
from .prompts import (
    EMPTY_TURN_MESSAGE, GREETING_MESSAGE, IMAGE_ONLY_PROMPT, IMAGE_TOO_LARGE_MESSAGE,
    INIT_ERROR_MESSAGE, MISSING_API_KEY_MESSAGE, TOOL_LOOP_MESSAGE, TURN_ERROR_MESSAGE,
)
from .tools import TOOL_DECLARATIONS, ToolDispatcher

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    FINALIZING = "finalizing"
    CLOSED = "closed"
    ERROR = "error"


@dataclass
class ImageAttachment:
    """An image uploaded with a user turn."""
    data: bytes
    mime_type: str = "image/png"

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


class ToolLoopExceeded(Exception):
    """The model kept requesting tools past the iteration cap."""


class ConversationSession:
    """
    Owns the transcript and chat handle of one session.
    """

    def __init__(
        self,
        session_id: str,
        started_at: int,
        dispatcher: ToolDispatcher,
        autosave=None,
        max_image_bytes: int = 1024 * 1024,
        max_tool_iterations: int = 10,
    ):
        """
        Args:
            session_id: Time-based unique id
            started_at: Session start, epoch ms
            dispatcher: Executes tool calls
            autosave: Optional AutosaveStore receiving transcript snapshots
            max_image_bytes: Upload cap for turn images
            max_tool_iterations: Tool rounds allowed per user turn
        """
        self.session_id = session_id
        self.started_at = started_at
        self.dispatcher = dispatcher
        self.autosave = autosave
        self.max_image_bytes = max_image_bytes
        self.max_tool_iterations = max_tool_iterations

        self.state = SessionState.UNINITIALIZED
        self.messages: List[Message] = []
        self.system_instruction: Optional[str] = None
        self.chat: Optional[ChatHandle] = None
        self.log = SessionLoggerAdapter(logger, {"session_id": session_id})

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(
        self,
        provider: Optional[LLMProvider],
        build_instruction: Callable[[], Awaitable[str]],
    ) -> Message:
        """
        Assemble the system instruction, open the chat and greet the customer.

        Initialization failures leave the session in ERROR with a fixed
        fallback message; they are not raised.

        Returns:
            Message: The greeting, or the fallback message on failure
        """
        if self.state is not SessionState.UNINITIALIZED:
            raise SessionBusyError(f"Session {self.session_id} already started")

        try:
            if provider is None:
                raise ConfigurationError("Model API key is not configured")
            self.system_instruction = await build_instruction()
            self.chat = provider.create_chat(self.system_instruction, TOOL_DECLARATIONS)
        except ConfigurationError as e:
            self.log.error(f"Session initialization failed: {e}")
            return await self._fail(MISSING_API_KEY_MESSAGE)
        except Exception as e:
            self.log.error(f"Session initialization failed: {str(e)}", exc_info=True)
            return await self._fail(INIT_ERROR_MESSAGE)

        self.state = SessionState.READY
        self.log.info(f"Session started, instruction length={len(self.system_instruction)} chars")
        return await self._append(Message(id="init", role=MessageRole.MODEL, text=GREETING_MESSAGE))

    async def _fail(self, text: str) -> Message:
        self.state = SessionState.ERROR
        return await self._append(Message(id="error_init", role=MessageRole.MODEL, text=text))

    def begin_finalizing(self) -> None:
        """Move to FINALIZING; only a READY or failed session may end."""
        if self.state in (SessionState.FINALIZING, SessionState.CLOSED):
            raise SessionClosedError(f"Session {self.session_id} is already closed")
        if self.state not in (SessionState.READY, SessionState.ERROR):
            raise SessionBusyError(f"Session {self.session_id} is busy ({self.state.value})")
        self.state = SessionState.FINALIZING

    def close(self) -> None:
        self.state = SessionState.CLOSED

    # ------------------------------------------------------------------ #
    # Turns
    # ------------------------------------------------------------------ #

    def validate_turn(self, text: Optional[str], image: Optional[ImageAttachment]) -> None:
        """
        Reject a turn before any state change or model call.

        Raises:
            SessionClosedError, SessionBusyError, SubmissionError
        """
        if self.state in (SessionState.FINALIZING, SessionState.CLOSED):
            raise SessionClosedError(f"Session {self.session_id} is closed")
        if self.state is not SessionState.READY:
            raise SessionBusyError(f"Session {self.session_id} is busy ({self.state.value})")
        if not (text or "").strip() and image is None:
            raise SubmissionError(EMPTY_TURN_MESSAGE, reason="empty")
        if image is not None and image.size > self.max_image_bytes:
            raise SubmissionError(IMAGE_TOO_LARGE_MESSAGE, reason="image_too_large")

    def submit_turn(
        self,
        text: Optional[str] = None,
        image: Optional[ImageAttachment] = None,
    ) -> AsyncIterator[Message]:
        """
        Submit a user turn.

        Validation happens immediately; the returned iterator then yields
        every message the turn appends (user message, tool images, reply).

        Raises:
            SubmissionError: Empty turn or oversized image
            SessionBusyError: Another turn is in flight
            SessionClosedError: The session has ended
        """
        self.validate_turn(text, image)
        return self._run_turn(text or "", image)

    async def _run_turn(self, text: str, image: Optional[ImageAttachment]) -> AsyncIterator[Message]:
        # re-checked here: another turn may have started since validation
        if self.state is not SessionState.READY:
            raise SessionBusyError(f"Session {self.session_id} is busy ({self.state.value})")
        self.state = SessionState.AWAITING_MODEL

        try:
            yield await self._append(Message(
                id=time_id(),
                role=MessageRole.USER,
                text=text,
                image=image.data_uri if image else None,
            ))

            mark = self.chat.checkpoint()
            try:
                async for message in self._converse(self._user_content(text, image)):
                    yield message
            except ToolLoopExceeded:
                self.log.warning(f"Tool loop exceeded {self.max_tool_iterations} iterations")
                self.chat.rollback(mark)
                yield await self._append_model_text(TOOL_LOOP_MESSAGE)
            except Exception as e:
                self.log.error(
                    f"Turn failed: {str(e)}",
                    exc_info=True,
                    extra={"extra_fields": {"error": str(e)}}
                )
                self.chat.rollback(mark)
                yield await self._append_model_text(TURN_ERROR_MESSAGE)
        finally:
            if self.state in (SessionState.AWAITING_MODEL, SessionState.EXECUTING_TOOLS):
                self.state = SessionState.READY

    async def _converse(self, content: MessageContent) -> AsyncIterator[Message]:
        """Send the turn, run tool batches until the model answers in text."""
        reply = await self.chat.send_message(content)
        iterations = 0

        while reply.function_calls:
            if iterations >= self.max_tool_iterations:
                raise ToolLoopExceeded()
            iterations += 1

            self.state = SessionState.EXECUTING_TOOLS
            self.log.info(
                f"Executing {len(reply.function_calls)} tool call(s): "
                f"{', '.join(c.name for c in reply.function_calls)}"
            )
            outcomes = await self.dispatcher.dispatch_batch(reply.function_calls)
            for outcome in outcomes:
                for event in outcome.events:
                    yield await self._append(event)

            self.state = SessionState.AWAITING_MODEL
            reply = await self.chat.send_message(
                [Part.from_function_response(o.response) for o in outcomes]
            )

        if reply.text:
            yield await self._append_model_text(reply.text)

    @staticmethod
    def _user_content(text: str, image: Optional[ImageAttachment]) -> MessageContent:
        if image is None:
            return text
        return [
            Part.from_image(image.base64, image.mime_type),
            Part.from_text(text or IMAGE_ONLY_PROMPT),
        ]

    # ------------------------------------------------------------------ #
    # Transcript
    # ------------------------------------------------------------------ #

    async def _append_model_text(self, text: str) -> Message:
        return await self._append(Message(id=time_id(), role=MessageRole.MODEL, text=text))

    async def _append(self, message: Message) -> Message:
        """Append to the transcript and refresh the autosave snapshot."""
        self.messages.append(message)
        # the greeting alone is not worth recovering
        if self.autosave is not None and len(self.messages) > 1:
            await self.autosave.save(self.snapshot())
        return message

    def snapshot(self) -> AutosaveSnapshot:
        return AutosaveSnapshot(
            session_id=self.session_id,
            messages=list(self.messages),
            timestamp=self.started_at,
        )
