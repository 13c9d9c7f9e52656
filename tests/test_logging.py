"""
Tests for logging configuration module.
"""

import logging
import tempfile
from pathlib import Path

import pytest

from goreinstall.common import vlog
from goreinstall.logging_config import ColoredFormatter, get_logger, setup_logging


def make_record(level=logging.INFO, msg="Test message"):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestSetupLogging:
    """Test logging setup and configuration."""

    def test_setup_logging_default(self):
        """Test default logging setup."""
        logger = setup_logging()
        assert logger.name == "goreinstall"
        assert logger.level == logging.INFO

    def test_setup_logging_verbose(self):
        """Test verbose logging enables DEBUG level."""
        logger = setup_logging(verbose=True)
        assert logger.level == logging.DEBUG

    def test_setup_logging_quiet(self):
        """Test quiet mode suppresses console output."""
        logger = setup_logging(quiet=True)
        assert logger.level == logging.WARNING
        console_handlers = [
            h for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        assert len(console_handlers) == 0

    def test_setup_logging_with_file(self):
        """Test logging to file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "goreinstall.log"
            logger = setup_logging(log_file=str(log_file))

            logger.info("Test message")
            for handler in logger.handlers:
                handler.flush()

            assert "Test message" in log_file.read_text()
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_setup_logging_creates_log_directory(self):
        """Test that log directory is created if it doesn't exist."""
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = Path(tmpdir) / "subdir" / "goreinstall.log"
            logger = setup_logging(log_file=str(log_file))

            logger.info("Test")
            assert log_file.parent.exists()
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_setup_logging_replaces_handlers(self):
        """Test repeated setup does not stack console handlers."""
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1


class TestGetLogger:
    """Test logger retrieval."""

    def test_get_logger_singleton(self):
        """Test get_logger returns same instance."""
        assert get_logger() is get_logger()


class TestColoredFormatter:
    """Test colored log formatter."""

    def test_with_colors(self):
        formatter = ColoredFormatter("%(levelname_colored)s %(message)s", use_colors=True)
        formatted = formatter.format(make_record())
        assert "Test message" in formatted
        assert "\033[" in formatted

    def test_without_colors(self):
        formatter = ColoredFormatter("%(levelname_colored)s %(message)s", use_colors=False)
        formatted = formatter.format(make_record())
        assert formatted == "INFO Test message"

    def test_with_time(self):
        """Test verbose output is prefixed with a timestamp."""
        formatter = ColoredFormatter("%(levelname_colored)s %(message)s", use_colors=False, with_time=True)
        formatted = formatter.format(make_record())
        assert formatted.endswith("INFO Test message")
        assert formatted != "INFO Test message"

    @pytest.mark.parametrize("level", [logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL])
    def test_all_levels(self, level):
        formatter = ColoredFormatter("%(levelname_colored)s", use_colors=True)
        assert formatter.format(make_record(level))


class TestVlog:
    """Test verbose logging helper."""

    def test_vlog_verbose(self, caplog, monkeypatch):
        monkeypatch.delenv("GOREINSTALL_DEBUG", raising=False)
        setup_logging(level="INFO", propagate=True)
        with caplog.at_level(logging.INFO, logger="goreinstall"):
            vlog("reading build info", verbose=True)
        assert "reading build info" in caplog.text

    def test_vlog_quiet_by_default(self, caplog, monkeypatch):
        monkeypatch.delenv("GOREINSTALL_DEBUG", raising=False)
        setup_logging(level="INFO", propagate=True)
        with caplog.at_level(logging.INFO, logger="goreinstall"):
            vlog("should not appear", verbose=False)
        assert "should not appear" not in caplog.text

    def test_debug_env_forces_vlog(self, caplog, monkeypatch):
        """Test GOREINSTALL_DEBUG=1 enables vlog without the flag."""
        monkeypatch.setenv("GOREINSTALL_DEBUG", "1")
        setup_logging(level="INFO", propagate=True)
        with caplog.at_level(logging.INFO, logger="goreinstall"):
            vlog("forced", verbose=False)
        assert "forced" in caplog.text
