"""
Unit tests for logging configuration.

Tests structured JSON logging, text output, handler setup, the run context
adapter and the performance and file-result helpers.
"""

import json
import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from runreport.core.config import Config
from runreport.core.logging_config import (
    StructuredFormatter,
    TextFormatter,
    setup_logging,
    get_logger,
    log_file_result,
    log_performance,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test.component",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestStructuredFormatter:
    """Test cases for StructuredFormatter."""

    def test_format_basic_log_record(self):
        formatter = StructuredFormatter("run-123")

        log_data = json.loads(formatter.format(_record()))

        assert log_data["level"] == "INFO"
        assert log_data["component"] == "test.component"
        assert log_data["run_id"] == "run-123"
        assert log_data["message"] == "Test message"
        assert "timestamp" in log_data

    def test_format_with_metadata(self):
        formatter = StructuredFormatter("run-123")
        record = _record("Finished file", logging.ERROR)
        record.metadata = {"file_path": "tests/a.test.js", "exit_code": 1}

        log_data = json.loads(formatter.format(record))

        assert log_data["metadata"]["file_path"] == "tests/a.test.js"
        assert log_data["metadata"]["exit_code"] == 1

    def test_format_with_exception(self):
        formatter = StructuredFormatter("run-123")

        try:
            raise ValueError("Test exception")
        except ValueError:
            import sys

            record = _record("Exception occurred", logging.ERROR, exc_info=sys.exc_info())

        log_data = json.loads(formatter.format(record))

        assert "ValueError: Test exception" in log_data["exception"]

    def test_format_with_context_fields(self):
        formatter = StructuredFormatter("run-123")
        record = _record()
        record.test_name = "login works"
        record.exit_code = 0
        record.status = "passed"

        log_data = json.loads(formatter.format(record))

        assert log_data["test_name"] == "login works"
        assert log_data["exit_code"] == 0
        assert log_data["status"] == "passed"

    def test_record_run_id_overrides_process_id(self):
        formatter = StructuredFormatter("server-1")
        record = _record()
        record.run_id = "run_abc"

        log_data = json.loads(formatter.format(record))

        assert log_data["run_id"] == "run_abc"


class TestTextFormatter:
    def test_includes_metadata_pairs(self):
        formatter = TextFormatter("run-123")
        record = _record("Collected records")
        record.metadata = {"artifacts": 3}

        formatted = formatter.format(record)

        assert "Collected records" in formatted
        assert "artifacts=3" in formatted
        assert "INFO" in formatted

    def test_includes_file_and_record_run_id(self):
        formatter = TextFormatter("server-1")
        record = _record("Finished")
        record.file_path = "tests/a.test.js"
        record.run_id = "run_abcdef123"

        formatted = formatter.format(record)

        assert "Finished [tests/a.test.js]" in formatted
        assert "(run: run_abcd)" in formatted


class TestLoggingSetup:
    """Test cases for logging setup functions."""

    @patch.dict(os.environ, {"CI": ""})
    def test_setup_logging_development_mode(self, tmp_path):
        config = Config(project_root=tmp_path, ci_mode=False)
        config.log_format = "text"
        config.log_level = "DEBUG"

        root = setup_logging(config, "run-123")

        assert root.level == logging.DEBUG
        assert (tmp_path / "logs" / "runreport.log").exists()
        assert any(isinstance(h.formatter, TextFormatter) for h in root.handlers)

    def test_setup_logging_ci_mode(self, tmp_path):
        config = Config(project_root=tmp_path, ci_mode=True)
        config.log_level = "INFO"

        root = setup_logging(config, "run-123")

        assert root.level == logging.INFO
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert not (tmp_path / "logs").exists()

    def test_get_logger(self):
        logger = get_logger("test.component")

        assert isinstance(logger, logging.Logger)
        assert logger.name == "test.component"

    def test_get_logger_with_context(self):
        logger = get_logger("test.component", run_id="run-1")

        assert isinstance(logger, logging.LoggerAdapter)
        assert logger.extra == {"run_id": "run-1"}

    def test_log_performance(self):
        mock_logger = MagicMock()

        log_performance(mock_logger, "report_assembly", 1.5, records=3)

        call_args = mock_logger.info.call_args
        assert "report_assembly completed in 1.50s" in call_args[0][0]
        metadata = call_args[1]["extra"]["metadata"]
        assert metadata["duration"] == 1.5
        assert metadata["records"] == 3

    def test_context_adapter_keeps_call_extra(self, caplog):
        logger = get_logger("runreport.test", run_id="run-1")

        with caplog.at_level(logging.INFO):
            logger.info("hello", extra={"metadata": {"files": 2}})

        record = caplog.records[-1]
        assert record.run_id == "run-1"
        assert record.metadata == {"files": 2}


class TestLogFileResult:
    def test_clean_run_logs_info(self, caplog):
        logger = logging.getLogger("runreport.test")

        with caplog.at_level(logging.DEBUG):
            log_file_result(logger, "tests/a.test.js", 0, 1.23456)

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.status == "passed"
        assert record.file_path == "tests/a.test.js"
        assert record.exit_code == 0
        assert record.duration == 1.235
        assert record.getMessage() == "Finished tests/a.test.js (exit code: 0)"

    def test_failing_exit_logs_warning(self, caplog):
        logger = logging.getLogger("runreport.test")

        with caplog.at_level(logging.DEBUG):
            log_file_result(logger, "tests/a.test.js", 1, 0.5)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.status == "failed"

    def test_synthesized_results_log_error(self, caplog):
        logger = get_logger("runreport.test", run_id="run-1")

        with caplog.at_level(logging.DEBUG):
            log_file_result(logger, "tests/a.test.js", 1, 0.5, synthesized=True, error_type="Syntax Error")

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.status == "synthesized"
        assert record.run_id == "run-1"
        assert record.metadata == {"synthesized": True, "error_type": "Syntax Error"}
        assert record.getMessage().endswith(": Syntax Error")

        log_data = json.loads(StructuredFormatter("server").format(record))
        assert log_data["run_id"] == "run-1"
        assert log_data["exit_code"] == 1
        assert log_data["file_path"] == "tests/a.test.js"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
