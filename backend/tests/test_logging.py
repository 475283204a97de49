"""
Tests for logging helpers.
"""

import json
import logging

from estock_support.core.logging_config import (
    ColoredFormatter, JSONFormatter, SessionLoggerAdapter, filter_sensitive_data, truncate_large_data,
)


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("estock_support.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_formatter_merges_extra_fields(self):
        record = make_record(extra_fields={"session_id": "1730", "rating": 5})
        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["session_id"] == "1730"
        assert data["rating"] == 5

    def test_colored_formatter_leaves_record_untouched(self):
        record = make_record()
        output = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "\033[32m" in output
        assert record.levelname == "INFO"


class TestSessionLoggerAdapter:

    def test_prefix_and_fields(self):
        adapter = SessionLoggerAdapter(logging.getLogger("x"), {"session_id": "42"})
        msg, kwargs = adapter.process("Turn submitted", {"extra": {"extra_fields": {"tool": "search"}}})
        assert msg == "[session 42] Turn submitted"
        assert kwargs["extra"]["extra_fields"] == {"session_id": "42", "tool": "search"}


class TestSanitizing:

    def test_sensitive_keys_masked(self):
        data = filter_sensitive_data({
            "password": "admin123",
            "recoveryKey": "k",
            "nested": [{"access_token": "t", "name": "ok"}],
        })
        assert data["password"] == "***FILTERED***"
        assert data["recoveryKey"] == "***FILTERED***"
        assert data["nested"][0]["access_token"] == "***FILTERED***"
        assert data["nested"][0]["name"] == "ok"

    def test_truncate(self):
        assert truncate_large_data("abc", max_length=5) == "abc"
        assert truncate_large_data("a" * 10, max_length=4).startswith("aaaa... (truncated, total length: 10)")
