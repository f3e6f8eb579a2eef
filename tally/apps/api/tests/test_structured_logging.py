"""Tests for structured JSON logging with request context.

Every log line emitted while serving a request carries request_id, and
user_id / org_id once session auth has run.
"""

import json
import logging
from io import StringIO

import pytest

from tally_api.context import org_id_var, request_id_var, user_id_var
from tally_api.utils.logging import JSONFormatter, configure_json_logging


@pytest.fixture
def capture():
    """Logger wired to a JSONFormatter over an in-memory stream."""
    logger = logging.getLogger("test_json_logger")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)

    yield logger, stream

    request_id_var.set("")
    user_id_var.set("")
    org_id_var.set("")


def _last(stream: StringIO) -> dict:
    return json.loads(stream.getvalue().strip().split("\n")[-1])


def test_json_formatter_includes_context_vars(capture) -> None:
    logger, stream = capture
    request_id_var.set("req_123")
    user_id_var.set("user_abc")
    org_id_var.set("org_xyz")

    logger.info("Test message")

    log_data = _last(stream)
    assert log_data["message"] == "Test message"
    assert log_data["request_id"] == "req_123"
    assert log_data["user_id"] == "user_abc"
    assert log_data["org_id"] == "org_xyz"


def test_json_formatter_handles_missing_context(capture) -> None:
    """Outside a request the context fields are absent, not empty strings."""
    logger, stream = capture
    request_id_var.set("")
    user_id_var.set("")
    org_id_var.set("")

    logger.info("Background message")

    log_data = _last(stream)
    assert log_data["message"] == "Background message"
    assert "request_id" not in log_data
    assert "user_id" not in log_data
    assert "org_id" not in log_data


def test_json_formatter_includes_extra_fields(capture) -> None:
    logger, stream = capture
    user_id_var.set("user_extra")

    logger.info(
        "Timer started",
        extra={"event": "timer.started", "entry_id": "e1", "duration": 900},
    )

    log_data = _last(stream)
    assert log_data["user_id"] == "user_extra"
    assert log_data["event"] == "timer.started"
    assert log_data["entry_id"] == "e1"
    assert log_data["duration"] == 900


def test_json_formatter_includes_exception_info(capture) -> None:
    logger, stream = capture

    try:
        raise ValueError("Test exception for logging")
    except ValueError:
        logger.error("Exception occurred", exc_info=True)

    log_data = _last(stream)
    assert "ValueError: Test exception for logging" in log_data["exc_info"]
    assert "Traceback" in log_data["exc_info"]


def test_secrets_are_redacted(capture) -> None:
    logger, stream = capture

    logger.info("Auth header was Bearer tly_sess_abcdef", extra={"password": "hunter22", "email": "a@b.co"})

    log_data = _last(stream)
    assert "tly_sess_abcdef" not in log_data["message"]
    assert "[REDACTED]" in log_data["message"]
    assert log_data["password"] != "hunter22"
    assert log_data["email"] == "a@b.co"


def test_log_fields_structure(capture) -> None:
    logger, stream = capture
    request_id_var.set("req_full_999")

    logger.info("Complete log entry")

    log_data = _last(stream)
    for field in ("timestamp", "level", "message", "module", "func", "line", "request_id"):
        assert field in log_data, f"Required field '{field}' missing from log"
    assert "T" in log_data["timestamp"]
    assert log_data["timestamp"].endswith("+00:00")


def test_context_isolation_between_requests(capture) -> None:
    logger, stream = capture

    user_id_var.set("user_request1")
    org_id_var.set("org_request1")
    logger.info("Request 1")
    log1 = _last(stream)

    user_id_var.set("user_request2")
    org_id_var.set("")
    logger.info("Request 2")
    log2 = _last(stream)

    assert log1["user_id"] == "user_request1"
    assert log2["user_id"] == "user_request2"
    assert "org_id" not in log2


def test_configure_json_logging_sets_json_formatter() -> None:
    configure_json_logging(log_level="INFO")

    root_logger = logging.getLogger()
    assert len(root_logger.handlers) > 0
    assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)
