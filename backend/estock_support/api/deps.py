"""
Shared API dependencies and error mapping.
"""

from fastapi import HTTPException, status

from ..core.errors import (
    ConfigurationError, PersistenceError, SessionBusyError, SessionClosedError,
    SessionNotFoundError, SubmissionError, SupportError,
)


def http_error(error: SupportError) -> HTTPException:
    """Map a domain error to the HTTP status the API reports for it."""
    if isinstance(error, SubmissionError):
        code = (status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
                if error.reason == "image_too_large" else status.HTTP_400_BAD_REQUEST)
    elif isinstance(error, SessionNotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, SessionBusyError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(error, SessionClosedError):
        code = status.HTTP_410_GONE
    elif isinstance(error, PersistenceError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(error, ConfigurationError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(error))
