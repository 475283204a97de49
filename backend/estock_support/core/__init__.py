"""Core module - errors, logging, context assembly and transcript formatting."""

from .errors import (
    SupportError, ConfigurationError, SubmissionError, SessionBusyError,
    SessionNotFoundError, SessionClosedError, PersistenceError,
)
from .context_assembler import ContextAssembler
from .transcript import format_transcript

__all__ = [
    'SupportError', 'ConfigurationError', 'SubmissionError', 'SessionBusyError',
    'SessionNotFoundError', 'SessionClosedError', 'PersistenceError',
    'ContextAssembler', 'format_transcript',
]
