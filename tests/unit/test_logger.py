"""
Unit tests for StructuredLogger
===============================
"""

import json
import uuid

import pytest

from src.core.logger import StructuredLogger, clear_logger_cache, get_logger
from src.domain.models.collaboration import ConnectionState
from src.infrastructure.config.settings import LoggingSettings, LogLevel


def unique_name():
    return f"test_logger_{uuid.uuid4().hex[:8]}"


@pytest.fixture(autouse=True)
def _reset_cache():
    clear_logger_cache()
    yield
    clear_logger_cache()


class TestStructuredLogger:
    """JSON output and handler setup"""

    def test_json_line_per_event(self, capsys):
        logger = StructuredLogger(unique_name(), LoggingSettings())

        logger.info("collaboration.user_joined", {"project_id": "p1", "state": ConnectionState.JOINED})

        entry = json.loads(capsys.readouterr().out.strip())
        assert entry["event"] == "collaboration.user_joined"
        assert entry["level"] == "INFO"
        assert entry["data"] == {"project_id": "p1", "state": "joined"}

    def test_level_filters_debug(self, capsys):
        logger = StructuredLogger(unique_name(), LoggingSettings(level=LogLevel.INFO))

        logger.debug("room_broadcaster.skipped", {})

        assert capsys.readouterr().out == ""

    def test_error_with_traceback(self, capsys):
        logger = StructuredLogger(unique_name(), LoggingSettings())

        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("message_router.handler_error", {"type": "join"}, exc_info=True)

        entry = json.loads(capsys.readouterr().out.strip())
        assert "ValueError: boom" in entry["exception"]

    def test_handlers_not_duplicated(self):
        name = unique_name()
        first = StructuredLogger(name, LoggingSettings())
        StructuredLogger(name, LoggingSettings())

        assert len(first.logger.handlers) == 1

    def test_file_handler(self, tmp_path):
        settings = LoggingSettings(console_enabled=False, file_enabled=True, log_dir=str(tmp_path))
        name = unique_name()
        logger = StructuredLogger(name, settings)

        logger.warning("staleness_reaper.sweep_failed", {"error": "timeout"})
        for handler in logger.logger.handlers:
            handler.flush()

        lines = (tmp_path / f"{name}.jsonl").read_text().splitlines()
        assert json.loads(lines[0])["event"] == "staleness_reaper.sweep_failed"

    def test_plain_format(self, capsys):
        logger = StructuredLogger(unique_name(), LoggingSettings(structured_logging=False))

        logger.info("collaboration.user_left", {"user_id": "u1"})

        out = capsys.readouterr().out
        assert " - INFO - " in out
        assert "collaboration.user_left" in out


class TestGetLogger:
    def test_cached_per_name(self):
        name = unique_name()
        settings = LoggingSettings(console_enabled=False)

        assert get_logger(name, settings) is get_logger(name)

    def test_explicit_config_replaces_cached_one(self, capsys):
        """An app built with its own LoggingSettings is not stuck with an import-time logger"""
        name = unique_name()
        first = get_logger(name, LoggingSettings())

        quiet = get_logger(name, LoggingSettings(console_enabled=False))
        quiet.info("collaboration.user_joined", {"project_id": "p1"})

        assert quiet is not first
        assert quiet.logger.handlers == []
        assert capsys.readouterr().out == ""
        assert get_logger(name) is quiet

    def test_same_config_keeps_cached_logger(self):
        name = unique_name()

        assert get_logger(name, LoggingSettings(console_enabled=False)) is get_logger(
            name, LoggingSettings(console_enabled=False)
        )
