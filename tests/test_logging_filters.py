"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO
from logging.handlers import RotatingFileHandler

import pytest

from ratewindow.core.config import LogSettings
from ratewindow.core.logging import (
    JsonFormatter,
    REDACTED,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    configure_logging,
    hash_key,
    set_request_id,
)


def _build_logger(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_api_keys():
    logger, stream = _build_logger("test_redaction")

    logger.info(
        "auth_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_raw_limiter_keys():
    logger, stream = _build_logger("test_limiter_key_redaction")

    logger.warning(
        "rate_limit.exceeded",
        extra={
            "rate_limit_key": "ip:203.0.113.7:path:/login",
            "client_ip": "203.0.113.7",
            "key_hash": hash_key("ip:203.0.113.7:path:/login"),
            "policy": "route",
        },
    )

    payload = json.loads(stream.getvalue())
    assert "203.0.113.7" not in stream.getvalue()
    assert payload["rate_limit_key"] == "[REDACTED]"
    assert payload["policy"] == "route"
    assert len(payload["key_hash"]) == 16


def test_sensitive_filter_allows_safe_fields():
    logger, stream = _build_logger("test_safe_fields")

    logger.info(
        "rate_limit.allowed",
        extra={
            "policy": "global",
            "limit": 100,
            "remaining": 42,
            "window_s": 60.0,
        },
    )

    payload = json.loads(stream.getvalue())
    assert payload["message"] == "rate_limit.allowed"
    assert payload["level"] == "info"
    assert payload["remaining"] == 42
    assert "[REDACTED]" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_dicts():
    logger, stream = _build_logger("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "x-api-key": "secret-key",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output


def test_request_id_from_context_is_attached():
    logger, stream = _build_logger("test_request_id")

    set_request_id("req-abc")
    try:
        logger.info("with_context")
    finally:
        clear_request_id()

    assert json.loads(stream.getvalue())["request_id"] == "req-abc"


def test_hash_key_is_stable_and_short():
    assert hash_key("ip:10.0.0.1") == hash_key("ip:10.0.0.1")
    assert hash_key("ip:10.0.0.1") != hash_key("ip:10.0.0.2")
    assert len(hash_key("anything")) == 16


def test_redaction_reaches_into_lists():
    logger, stream = _build_logger("test_lists")

    logger.info("batch", extra={"entries": [{"client_ip": "198.51.100.4", "policy": "user"}]})

    payload = json.loads(stream.getvalue())
    assert payload["entries"] == [{"client_ip": REDACTED, "policy": "user"}]


def test_standard_record_attributes_are_not_emitted():
    logger, stream = _build_logger("test_standard_attrs")

    logger.info("plain_event")

    payload = json.loads(stream.getvalue())
    assert set(payload) == {"timestamp", "level", "logger", "message"}


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_writes_json_to_rotating_file(tmp_path, restore_root_logger):
    log_file = tmp_path / "logs" / "ratewindow.log"
    configure_logging(LogSettings(output="file", file_path=str(log_file), level="INFO"))

    (handler,) = restore_root_logger.handlers
    assert isinstance(handler, RotatingFileHandler)

    logging.getLogger("ratewindow.test").info("to_file", extra={"api_key": "sk-live"})
    handler.flush()

    payload = json.loads(log_file.read_text(encoding="utf-8").strip())
    assert payload["message"] == "to_file"
    assert payload["api_key"] == REDACTED
