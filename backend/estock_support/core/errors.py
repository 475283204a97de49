"""
Domain errors raised by the conversation core.

Tool failures are never raised; they travel back to the model as structured
function responses. Only caller mistakes and configuration problems surface
as exceptions.
"""


class SupportError(Exception):
    """Base class for all support-bot errors."""


class ConfigurationError(SupportError):
    """Required configuration (e.g. the model API key) is missing."""


class SubmissionError(SupportError):
    """A user turn was rejected before reaching the model."""

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason  # "empty" or "image_too_large"


class SessionBusyError(SupportError):
    """A turn or end request arrived while the session was not READY."""


class SessionNotFoundError(SupportError):
    """No live session exists with the given id."""


class SessionClosedError(SupportError):
    """The session has already been finalized."""


class PersistenceError(SupportError):
    """No storage backend accepted a write."""
