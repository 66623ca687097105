"""Unit tests for structured logging."""
import sys
sys.path.insert(0, 'backend')

import json
import logging
from logger import JSONFormatter, setup_logging


def make_record(message, **extra):
    record = logging.LogRecord(
        name="services.test", level=logging.WARNING, pathname=__file__,
        lineno=1, msg=message, args=(), exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_fields():
    payload = json.loads(JSONFormatter().format(make_record("hello %s" % "world")))

    assert payload["message"] == "hello world"
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "services.test"
    assert payload["timestamp"].endswith("Z")


def test_json_formatter_includes_extra_fields():
    payload = json.loads(JSONFormatter().format(make_record("failed", error_code="TIMEOUT_ERROR")))

    assert payload["error_code"] == "TIMEOUT_ERROR"
    assert "msg" not in payload


def test_json_formatter_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record("failed")
        record.exc_info = sys.exc_info()

    payload = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in payload["exception"]


def test_setup_logging_replaces_root_handlers():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        setup_logging("DEBUG")
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
