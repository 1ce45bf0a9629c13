"""Tests for structured logging helpers."""
import json
import logging

import pytest

from flowforge.observability import run_context, setup_logging
from flowforge.observability.logging import CustomJsonFormatter, RunContextFilter


def make_record(**extra):
    record = logging.LogRecord("flowforge.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRunContext:
    """Test run_context."""

    def test_only_set_fields(self):
        assert run_context(workflow_id=3, run_id="r1") == {"workflow_id": 3, "run_id": "r1"}

    def test_extra_fields_pass_through(self):
        assert run_context(schedule_id=9) == {"schedule_id": 9}


class TestCustomJsonFormatter:
    """Test CustomJsonFormatter."""

    def test_run_context_fields(self):
        record = make_record(workflow_id=3, run_id="r1")
        RunContextFilter().filter(record)

        data = json.loads(CustomJsonFormatter("%(message)s").format(record))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "flowforge.test"
        assert data["workflow_id"] == 3
        assert data["run_id"] == "r1"
        assert "block_name" not in data
        assert "timestamp" in data


class TestSetupLogging:
    """Test setup_logging."""

    def test_level_override(self, restore_root_logger):
        setup_logging("debug")

        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 1
        assert any(isinstance(f, RunContextFilter) for f in restore_root_logger.handlers[0].filters)

    def test_json_formatter_when_enabled(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("FLOWFORGE_LOG_JSON", "true")

        setup_logging()

        assert isinstance(restore_root_logger.handlers[0].formatter, CustomJsonFormatter)

    def test_plain_formatter_in_tests(self, restore_root_logger):
        setup_logging()

        assert not isinstance(restore_root_logger.handlers[0].formatter, CustomJsonFormatter)
