"""Tests for logging helpers."""

import logging

import pytest

from scopebox.config import Settings
from scopebox.logging_utils import configure_logging, format_keys, preview_source, resolve_level


class TestConfigureLogging:
    def test_noop_without_level_or_file(self):
        logger = logging.getLogger("scopebox")
        handlers = list(logger.handlers)

        configure_logging()

        assert logger.handlers == handlers

    def test_level_from_argument(self):
        configure_logging("debug")

        logger = logging.getLogger("scopebox")
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 1

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("SCOPEBOX_LOG_LEVEL", "INFO")

        configure_logging()

        assert logging.getLogger("scopebox").level == logging.INFO

    def test_log_file(self, tmp_path):
        """A log file defaults to WARNING and creates its directory."""
        path = tmp_path / "logs" / "scopebox.log"

        configure_logging(log_file=str(path))
        logger = logging.getLogger("scopebox")
        logger.warning("written")
        for handler in logger.handlers:
            handler.close()

        assert logger.level == logging.WARNING
        assert "written" in path.read_text()

    def test_development_defaults_to_info(self):
        """Development mode shows the restore diagnostics without a level."""
        configure_logging(settings=Settings(environment="development"))

        assert logging.getLogger("scopebox").level == logging.INFO

    def test_resolve_level(self):
        assert resolve_level(None, Settings()) is None
        assert resolve_level(None, Settings(log_level="error")) == logging.ERROR
        assert resolve_level("debug", Settings(log_level="error")) == logging.DEBUG

    def test_invalid_level(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging("chatty")


class TestFormatting:
    def test_preview_source(self):
        assert preview_source("x = 1") == "x = 1"
        assert preview_source("x = 1\ny = 2\nz = 3\n") == "x = 1 (+2 lines)"
        assert preview_source("x" * 10, limit=4) == "xxxx..."
        assert preview_source("") == ""

    def test_format_keys(self):
        assert format_keys({"a": None, "b": None}) == "['a', 'b']"
        assert format_keys([]) == "[]"
        assert format_keys(["abcdef"], limit=4) == "['ab...]"
