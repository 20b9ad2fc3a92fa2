"""Tests for logging configuration module.

Verifies that logging configuration:
1. Drops credential fields (BLOCKED_FIELDS)
2. Strips credentials from download URLs (presigned query strings, userinfo)
3. Produces valid JSON output
"""

from __future__ import annotations

import io
import json
import logging

import pytest

from modelforge.logging_config import (
    BLOCKED_FIELDS,
    JsonFormatter,
    SimpleFormatter,
    _filter_log_record,
    _sanitize_text,
    get_logger,
    redact_urls,
    setup_logging,
    strip_url_credentials,
)


def _record(msg: str = "test", level: int = logging.INFO, name: str = "test") -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestBlockedFields:
    """Test that credential fields are properly blocked."""

    def test_blocked_fields_cover_credentials(self) -> None:
        assert "api_key" in BLOCKED_FIELDS
        assert "secret" in BLOCKED_FIELDS
        assert "token" in BLOCKED_FIELDS
        assert "password" in BLOCKED_FIELDS
        assert "signature" in BLOCKED_FIELDS

    def test_filter_removes_partial_matches(self) -> None:
        """Fields containing blocked words should be removed."""
        record = {
            "x_api_key_header": "value",
            "access_token": "value",
            "url_signature": "value",
            "safe_field": "keep",
        }
        filtered = _filter_log_record(record)
        assert "x_api_key_header" not in filtered
        assert "access_token" not in filtered
        assert "url_signature" not in filtered
        assert filtered["safe_field"] == "keep"

    def test_filter_case_insensitive(self) -> None:
        filtered = _filter_log_record({"API_KEY": "secret", "Password": "hunter2"})
        assert filtered == {}

    def test_bulky_fields_redacted(self) -> None:
        filtered = _filter_log_record(
            {"body": b"\x00" * 10, "headers": {"Authorization": "x"}, "manifest": "name: m"}
        )
        assert filtered == {"body": "[BODY]", "headers": "[HEADERS]", "manifest": "[MANIFEST]"}


class TestUrlCredentials:
    """Download URLs keep scheme, host and path only."""

    def test_query_and_fragment_removed(self) -> None:
        url = "https://bucket.s3.amazonaws.com/models/w.bin?X-Amz-Signature=abc&X-Amz-Credential=k#f"
        assert strip_url_credentials(url) == "https://bucket.s3.amazonaws.com/models/w.bin"

    def test_userinfo_removed(self) -> None:
        assert strip_url_credentials("https://user:pw@host/w.bin") == "https://host/w.bin"

    def test_port_kept(self) -> None:
        assert strip_url_credentials("http://127.0.0.1:8080/a?x=1") == "http://127.0.0.1:8080/a"

    def test_url_field_sanitized(self) -> None:
        filtered = _filter_log_record({"url": "https://host/w.bin?token=abc"})
        assert filtered["url"] == "https://host/w.bin"

    def test_local_source_unchanged(self) -> None:
        filtered = _filter_log_record({"source": "pretrained/backbone.pth"})
        assert filtered["source"] == "pretrained/backbone.pth"

    def test_redact_urls_in_text(self) -> None:
        text = "Could not verify https://host/w.bin?sig=s3cr3t after 3 attempts: HTTP 403"
        assert redact_urls(text) == "Could not verify https://host/w.bin after 3 attempts: HTTP 403"

    def test_redact_urls_without_urls(self) -> None:
        assert redact_urls("Cannot copy weights.bin") == "Cannot copy weights.bin"


class TestSanitizeText:
    """Tests for _sanitize_text function."""

    def test_url_in_message(self) -> None:
        result = _sanitize_text("Cannot fetch https://host/weights.bin?sig=secret123: HTTP 403")
        assert "secret123" not in result
        assert "https://host/weights.bin" in result

    def test_bearer_token_redacted(self) -> None:
        result = _sanitize_text("sent bearer abc123xyz")
        assert "abc123xyz" not in result
        assert "[TOKEN]" in result

    def test_api_key_redacted(self) -> None:
        result = _sanitize_text("Using api_key=sk-secret-12345")
        assert "sk-secret-12345" not in result
        assert "[API_KEY]" in result

    def test_empty_string_unchanged(self) -> None:
        assert _sanitize_text("") == ""

    def test_safe_text_unchanged(self) -> None:
        text = "Model directory provisioned"
        assert _sanitize_text(text) == text


class TestFilterLogRecord:
    """Test the _filter_log_record function."""

    def test_safe_fields_preserved(self) -> None:
        record = {"model": "cats-vs-dogs", "attempt": 3, "ratio": 0.5, "complete": True}
        assert _filter_log_record(record) == record

    def test_list_capped_at_10(self) -> None:
        filtered = _filter_log_record({"failed_steps": [f"s{i}" for i in range(15)]})
        assert filtered["failed_steps"] == "[list:15 items]"

    def test_small_list_preserved(self) -> None:
        filtered = _filter_log_record({"failed_steps": ["modules", "template"]})
        assert filtered["failed_steps"] == ["modules", "template"]

    def test_nested_dict_filtered(self) -> None:
        filtered = _filter_log_record({"fetch": {"timeout": 30, "api_key": "secret"}})
        assert filtered["fetch"] == {"timeout": 30}


class TestJsonFormatter:
    """Test the JSON log formatter."""

    def test_contains_required_fields(self) -> None:
        parsed = json.loads(JsonFormatter().format(_record("hello world", name="mylogger")))
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "mylogger"
        assert parsed["msg"] == "hello world"
        assert "ts" in parsed

    def test_warning_includes_location(self) -> None:
        parsed = json.loads(JsonFormatter().format(_record(level=logging.WARNING)))
        assert parsed["file"] == "test.py"
        assert parsed["line"] == 10

    def test_extra_fields_filtered(self) -> None:
        record = _record()
        record.attempt = 2
        record.url = "https://host/w.bin?sig=abc"
        record.api_key = "secret123"
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["attempt"] == 2
        assert parsed["url"] == "https://host/w.bin"
        assert "api_key" not in parsed


class TestSimpleFormatter:
    def test_extra_fields_appended(self) -> None:
        record = _record("Dependency downloaded")
        record.attempt = 3
        output = SimpleFormatter().format(record)
        assert output.startswith("INFO")
        assert "Dependency downloaded" in output
        assert "attempt=3" in output


class TestSetupLogging:
    """Test the setup_logging function."""

    def test_setup_logging_json(self) -> None:
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)

        get_logger("test_json").info("test message", extra={"model": "cats-vs-dogs"})

        parsed = json.loads(stream.getvalue().strip())
        assert parsed["msg"] == "test message"
        assert parsed["model"] == "cats-vs-dogs"

    def test_setup_logging_simple(self) -> None:
        stream = io.StringIO()
        setup_logging(json_format=False, stream=stream)

        get_logger("test_simple").info("simple test")

        output = stream.getvalue()
        assert "simple test" in output
        with pytest.raises(json.JSONDecodeError):
            json.loads(output.strip())

    def test_setup_logging_level_name(self) -> None:
        stream = io.StringIO()
        setup_logging(level="WARNING", json_format=False, stream=stream)

        logger = get_logger("test_level")
        logger.info("info message")
        logger.warning("warning message")

        output = stream.getvalue()
        assert "info message" not in output
        assert "warning message" in output
