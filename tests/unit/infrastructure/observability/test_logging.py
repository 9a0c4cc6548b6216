"""Tests for structured logging."""

import json
import logging
from pathlib import Path

import pytest

from reelvault.infrastructure.observability.logging import (
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging replaces root handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        test_id = "test-123-abc"
        result = set_correlation_id(test_id)
        assert result == test_id
        assert get_correlation_id() == test_id

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert result
        assert get_correlation_id() == result


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        """Test configuring logging with DEBUG level."""
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_info_level(self):
        """Test configuring logging with INFO level."""
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() == logging.INFO

    def test_no_stdout_handler_when_log_out_disabled(self, tmp_path: Path):
        """Only the file handler is installed when log_out is off."""
        log_file = tmp_path / "logs" / "reelvault.log"
        configure_logging(log_level="INFO", log_file=str(log_file), log_out=False)

        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0], logging.FileHandler)

    def test_stdout_kept_without_log_file(self):
        """Logs never vanish: log_out=False without a file still logs to stdout."""
        configure_logging(log_level="INFO", log_out=False)
        assert len(logging.getLogger().handlers) == 1

    def test_json_file_output_includes_correlation_id(self, tmp_path: Path):
        """JSON records carry the correlation ID of the current context."""
        log_file = tmp_path / "reelvault.log"
        configure_logging(
            log_level="INFO", json_format=True, log_file=str(log_file), log_out=False
        )
        set_correlation_id("corr-42")

        logging.getLogger("reelvault.test").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        hello = next(r for r in records if r.get("message") == "hello")
        assert hello["correlation_id"] == "corr-42"
