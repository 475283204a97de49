"""
Chat Models - Messages, session logs, autosave snapshots and feedback.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import Field

from .base import CamelModel, now_ms


class MessageRole(str, Enum):
    """Transcript roles. Tool results never appear in the transcript."""
    USER = "user"
    MODEL = "model"


class Message(CamelModel):
    """A single transcript entry. Append-only once created."""
    id: str
    role: MessageRole
    text: str = ""
    image: Optional[str] = None  # URL or data URI shown to the customer
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatLog(CamelModel):
    """Persisted record of a finished (or recovered) session."""
    id: str  # equals the session id
    timestamp: int  # session start, epoch ms
    duration: float  # seconds
    user_query: str  # full transcript
    bot_response: str  # summary
    client_name: Optional[str] = None


class AutosaveSnapshot(CamelModel):
    """Overwrite-style snapshot of an in-progress session."""
    session_id: str
    messages: List[Message]
    timestamp: int  # session start, epoch ms


class Feedback(CamelModel):
    """Customer rating left after a session ends."""
    id: str
    timestamp: int = Field(default_factory=now_ms)
    chat_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class FeedbackCreate(CamelModel):
    """Feedback submission payload."""
    chat_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class StatelessChatRequest(CamelModel):
    """Body of the stateless single-turn endpoint."""
    message: Any = None  # text or a list of parts
    system_instruction: Optional[str] = None
    tools: Optional[List[dict]] = None


class SessionView(CamelModel):
    """Public view of a live session."""
    session_id: str
    state: str
    messages: List[Message]


class EndSessionResult(CamelModel):
    """Returned when a session is finalized."""
    log_id: str
    status: Literal["closed"] = "closed"


class TurnResult(CamelModel):
    """Messages appended by one user turn."""
    session_id: str
    state: str
    messages: List[Message]
