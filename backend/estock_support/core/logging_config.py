"""
Centralized logging configuration for the support bot backend.

This module provides:
- Console output with colored formatting
- File output with JSON structured logging
- Rotating file handler to prevent disk space issues
- A session-aware logger adapter
- Sensitive data filtering for request logs
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


class ColoredFormatter(logging.Formatter):
    """Custom formatter to add colors to console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m',      # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        # copy so file handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        level_color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        record.levelname = f"{level_color}{record.levelname:8s}{self.COLORS['RESET']}"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """Custom formatter to output structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
PLAIN_FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# 10MB per file, keep 5 backups
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Third-party loggers that drown out session logs at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "multipart")


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _file_handler(path: str, level: int, json_format: bool) -> logging.Handler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=log_path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding='utf-8'
    )
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(config: Any) -> None:
    """
    Configure the root logger from application settings.

    Args:
        config: Settings object (log_level, log_console_enabled, log_file_enabled,
            log_file_path, log_json_format, log_llm_calls)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    if config.log_console_enabled:
        root_logger.addHandler(_console_handler(log_level))
    if config.log_file_enabled:
        root_logger.addHandler(_file_handler(config.log_file_path, log_level, config.log_json_format))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Per-call token usage is logged at INFO by the providers
    llm_level = logging.NOTSET if config.log_llm_calls else logging.WARNING
    logging.getLogger("estock_support.llm").setLevel(llm_level)

    root_logger.info(
        f"Logging initialized: level={config.log_level.upper()}, "
        f"console={config.log_console_enabled}, "
        f"file={config.log_file_enabled}, "
        f"llm_calls={config.log_llm_calls}"
    )


class SessionLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that stamps every record with the chat session id.

    Usage:
        logger = SessionLoggerAdapter(logging.getLogger(__name__), {"session_id": "17300"})
        logger.info("Turn submitted")
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Merge the adapter's fields into extra_fields."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}

        kwargs['extra']['extra_fields'] = {**self.extra, **kwargs['extra'].get('extra_fields', {})}
        return f"[session {self.extra.get('session_id', '-')}] {msg}", kwargs


def filter_sensitive_data(data: Any, sensitive_keys: Optional[list] = None) -> Any:
    """
    Filter sensitive information from log data.

    Args:
        data: Data to filter (dict, list, or primitive)
        sensitive_keys: Keys to mask (default: password, token, secret, authorization, keys)

    Returns:
        Filtered data with sensitive values replaced by "***FILTERED***"
    """
    if sensitive_keys is None:
        sensitive_keys = ['password', 'token', 'secret', 'authorization', 'api_key', 'api-key', 'apikey',
                          'recovery']

    if isinstance(data, dict):
        return {
            key: "***FILTERED***" if any(sensitive in key.lower() for sensitive in sensitive_keys)
            else filter_sensitive_data(value, sensitive_keys)
            for key, value in data.items()
        }
    elif isinstance(data, list):
        return [filter_sensitive_data(item, sensitive_keys) for item in data]
    else:
        return data


def truncate_large_data(data: str, max_length: int = 5000) -> str:
    """Truncate large strings (uploaded images, manuals) before they reach a log line."""
    if len(data) <= max_length:
        return data
    return data[:max_length] + f"... (truncated, total length: {len(data)})"
