# tests/unit/logging/test_logger.py - v1
"""Tests for logging/logger.py - formatters and setup."""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

from fileorganizer.config.settings import Settings
from fileorganizer.logging.context import clear_context, set_phase_context, set_run_context
from fileorganizer.logging.logger import (
    ROOT_LOGGER,
    JsonFormatter,
    TextFormatter,
    setup_logging,
    setup_logging_from_settings,
)


def _record(msg: str = "Hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="fileorganizer.test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=exc_info,
    )


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert parsed["logger"] == "fileorganizer.test"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_run_context("run_1")
        set_phase_context("judging", window_index=3)
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {"run_id": "run_1", "phase": "judging", "window_index": 3}

    def test_format_with_data_and_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record("failed", exc_info=sys.exc_info())
        record.data = {"pages": [1, 2]}
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["data"] == {"pages": [1, 2]}
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_format_with_window(self):
        set_run_context("run_1")
        set_phase_context("judging", window_index=0)
        output = TextFormatter().format(_record())
        assert "[run_1]" in output
        assert "(judging#0)" in output


class TestSetupLogging:
    def teardown_method(self):
        logging.getLogger(ROOT_LOGGER).handlers.clear()

    def test_console_only(self):
        logger = setup_logging(level="debug", log_format="text")
        assert logger.name == ROOT_LOGGER
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_stack_handlers(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_with_file(self, tmp_path):
        logger = setup_logging(log_file=str(tmp_path / "logs" / "run.log"))
        assert len(logger.handlers) == 2
        assert isinstance(logger.handlers[1], RotatingFileHandler)
        logger.handlers[1].close()

    def test_from_settings(self):
        settings = Settings(_env_file=None, log_level="WARNING", log_format="text")
        logger = setup_logging_from_settings(settings)
        assert logger.level == logging.WARNING
