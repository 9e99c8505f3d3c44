"""Unit tests for structured JSON logging."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import json
import logging

from logger import JSONFormatter, setup_logging


def make_record(msg="Saved conversation c1", exc_info=None, **extra):
    record = logging.LogRecord(
        name="services.chat_store",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_basic_fields():
    entry = json.loads(JSONFormatter().format(make_record()))

    assert entry["level"] == "INFO"
    assert entry["logger"] == "services.chat_store"
    assert entry["message"] == "Saved conversation c1"
    assert entry["timestamp"].endswith("Z")


def test_includes_extra_fields():
    record = make_record(error_code="RATE_LIMIT_ERROR", error_details={"retry_after": 60})

    entry = json.loads(JSONFormatter().format(record))

    assert entry["error_code"] == "RATE_LIMIT_ERROR"
    assert entry["error_details"] == {"retry_after": 60}
    assert "pathname" not in entry


def test_includes_exception():
    try:
        raise ValueError("bad payload")
    except ValueError:
        record = make_record(exc_info=sys.exc_info())

    entry = json.loads(JSONFormatter().format(record))

    assert "ValueError: bad payload" in entry["exception"]


def test_setup_logging_replaces_root_handlers():
    root_logger = logging.getLogger()
    saved_handlers, saved_level = root_logger.handlers[:], root_logger.level
    try:
        setup_logging("DEBUG")

        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, JSONFormatter)
        assert root_logger.level == logging.DEBUG
    finally:
        root_logger.handlers = saved_handlers
        root_logger.setLevel(saved_level)
