"""
FastAPI middleware for logging API requests and responses.

Pure ASGI middleware (not BaseHTTPMiddleware) so Server-Sent Event streams
pass through untouched.

Logged per request: method, path, chat session id, status code, duration,
and sanitized JSON bodies. Image uploads and event streams are summarized by
size instead of being buffered into the log.
"""

import json
import logging
import re
import time
from typing import Dict, Optional
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)

SESSION_PATH = re.compile(r"^/chat/sessions/(?P<session_id>[^/]+)")
MAX_BODY_LOG = 5000


def _session_id_from_path(path: str) -> Optional[str]:
    match = SESSION_PATH.match(path)
    return match.group("session_id") if match else None


def _is_loggable(content_type: str) -> bool:
    """Only JSON and plain text bodies are worth copying into a log line."""
    content_type = content_type.lower()
    return content_type.startswith("application/json") or content_type.startswith("text/plain")


def _sanitize_body(data: bytes) -> str:
    """Decode a body, mask sensitive JSON fields and truncate."""
    text = data.decode("utf-8", errors="ignore")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return truncate_large_data(text, max_length=MAX_BODY_LOG)
    return truncate_large_data(
        json.dumps(filter_sensitive_data(payload), ensure_ascii=False), max_length=MAX_BODY_LOG
    )


def _error_reason(body_text: Optional[str]) -> Optional[str]:
    """Pull the error message out of an error response body."""
    if not body_text:
        return None
    try:
        payload = json.loads(body_text)
    except json.JSONDecodeError:
        return truncate_large_data(body_text, max_length=500)
    if isinstance(payload, dict):
        for key in ("detail", "error", "message"):
            if payload.get(key):
                return str(payload[key])
    return truncate_large_data(body_text, max_length=500)


def _headers(raw) -> Dict[str, str]:
    return {
        k.decode("utf-8", errors="ignore").lower(): v.decode("utf-8", errors="ignore")
        for k, v in raw
    }


class RequestLoggingMiddleware:
    """Pure ASGI middleware to log all API requests and responses."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths logged without bodies (e.g., ["/health"])
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        request_headers = _headers(scope.get("headers", []))
        log_request_body = _is_loggable(request_headers.get("content-type", ""))
        client = scope.get("client")

        fields = {
            "request_id": id(scope),
            "method": method,
            "path": path,
            "session_id": _session_id_from_path(path),
            "client": client[0] if client else None,
        }

        request_size = 0
        request_chunks = []

        async def logging_receive() -> Message:
            nonlocal request_size
            message = await receive()
            if message["type"] == "http.request":
                body = message.get("body", b"")
                request_size += len(body)
                if log_request_body:
                    request_chunks.append(body)
            return message

        status_code = 0
        response_size = 0
        response_chunks = []
        log_response_body = True

        async def logging_send(message: Message) -> None:
            nonlocal status_code, response_size, log_response_body
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                response_headers = _headers(message.get("headers", []))
                log_response_body = _is_loggable(response_headers.get("content-type", ""))
            elif message["type"] == "http.response.body":
                body = message.get("body", b"")
                response_size += len(body)
                if log_response_body:
                    response_chunks.append(body)
            await send(message)

        logger.info(f"Request started: {method} {path}", extra={"extra_fields": fields})

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            logger.error(
                f"Request failed: {method} {path} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    **fields,
                    "duration_ms": (time.time() - start_time) * 1000,
                    "error": str(e),
                }}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        request_body = _sanitize_body(b"".join(request_chunks)) if request_chunks else None
        if request_body is None and request_size:
            request_body = f"<{request_size} bytes>"
        response_body = _sanitize_body(b"".join(response_chunks)) if response_chunks else None
        if response_body is None and response_size:
            response_body = f"<{response_size} bytes>"

        error_reason = _error_reason(response_body) if status_code >= 400 else None

        if status_code < 400:
            log_level = logging.INFO
        elif status_code < 500:
            log_level = logging.WARNING
        else:
            log_level = logging.ERROR

        message = f"Request completed: {method} {path} - {status_code} ({duration_ms:.2f}ms)"
        if error_reason:
            message += f" | error_reason={error_reason}"

        logger.log(
            log_level,
            message,
            extra={"extra_fields": {
                **fields,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "request_body": request_body,
                "response_body": response_body,
                "error_reason": error_reason,
            }}
        )
