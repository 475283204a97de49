"""Agents module - the e-stock support conversation core."""

from .support_agent import ConversationSession, SessionState, ImageAttachment
from .tools import ToolDispatcher, ToolKind, ToolOutcome, TOOL_DECLARATIONS
from .finalizer import SessionFinalizer, SummaryExtractor, JsonSummaryExtractor, SessionSummary
from .recovery import recover_abandoned_sessions
from .orchestrator import SessionOrchestrator

__all__ = [
    'ConversationSession',
    'SessionState',
    'ImageAttachment',
    'ToolDispatcher',
    'ToolKind',
    'ToolOutcome',
    'TOOL_DECLARATIONS',
    'SessionFinalizer',
    'SummaryExtractor',
    'JsonSummaryExtractor',
    'SessionSummary',
    'recover_abandoned_sessions',
    'SessionOrchestrator',
]
