"""
Structured Logging
==================
Every log call carries a dotted event name and a data dict; records are
rendered as one JSON object per line (or plain text when structured logging
is switched off) to stdout and, optionally, a size-rotated file.
"""

import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, TYPE_CHECKING
from pathlib import Path

if TYPE_CHECKING:
    from ..infrastructure.config.settings import LoggingSettings

_logger_cache: Dict[str, 'StructuredLogger'] = {}
_cache_lock = threading.RLock()

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_OWNED_MARK = '_structured_logger_owned'


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(str(item) for item in value)
    return repr(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, event, data."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            entry["message"] = record.getMessage()
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=_json_default)


class StructuredLogger:
    """
    Event-oriented logger.

        logger.info("collaboration.user_joined", {"project_id": "p1"})

    Building a StructuredLogger replaces the handlers an earlier one attached
    to the same stdlib logger, so the latest configuration for a name wins
    and output is never duplicated.
    """

    def __init__(self, name: str, config: 'LoggingSettings', filename: Optional[str] = None):
        self.name = name
        self.config = config
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, str(getattr(config.level, "value", config.level)).upper(), logging.INFO))
        self.logger.propagate = False

        self._detach_owned_handlers()
        formatter = JsonFormatter() if config.structured_logging else logging.Formatter(PLAIN_FORMAT)

        if config.console_enabled:
            self._attach(logging.StreamHandler(sys.stdout), formatter)

        if filename or config.file_enabled:
            log_file = Path(config.log_dir) / (filename or f"{name}.jsonl")
            self._attach_file(log_file, config.max_file_size_mb, config.backup_count, formatter)

    def _detach_owned_handlers(self):
        for handler in list(self.logger.handlers):
            if getattr(handler, _OWNED_MARK, False):
                self.logger.removeHandler(handler)
                handler.close()

    def _attach(self, handler: logging.Handler, formatter: logging.Formatter):
        setattr(handler, _OWNED_MARK, True)
        handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    def _attach_file(self, log_file: Path, max_size_mb: int, backup_count: int, formatter: logging.Formatter):
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                os.path.abspath(log_file),
                maxBytes=max_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding='utf-8'
            )
        except OSError as e:
            # stderr is the only channel left before logging is configured
            print(f"ERROR: Failed to create file handler for {log_file}: {e}", file=sys.stderr)
            return

        self._attach(handler, formatter)

    def _log(self, level: int, event_type: str, data: Optional[Dict[str, Any]], exc_info: bool = False):
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(level, {"event": event_type, "data": data or {}}, exc_info=exc_info)

    def debug(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.DEBUG, event_type, data)

    def info(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.INFO, event_type, data)

    def warning(self, event_type: str, data: Dict[str, Any] = None):
        self._log(logging.WARNING, event_type, data)

    def error(self, event_type: str, data: Dict[str, Any] = None, exc_info: bool = False):
        """
        Log an error event.

        Args:
            event_type: Dotted event name, e.g. "session_store.insert_failed"
            data: Optional error context
            exc_info: Attach the active exception traceback
        """
        self._log(logging.ERROR, event_type, data, exc_info=exc_info)


def get_logger(name: str, config: 'LoggingSettings' = None) -> StructuredLogger:
    """
    Cached StructuredLogger for ``name``.

    Without a config the cached logger is returned as is (the first one is
    built from the working-directory settings). An explicit config that
    differs from the cached one rebuilds the logger and its handlers.
    """
    with _cache_lock:
        logger = _logger_cache.get(name)
        if logger is not None and (config is None or config == logger.config):
            return logger

        if config is None:
            from ..infrastructure.config.config_loader import get_settings_from_working_directory
            config = get_settings_from_working_directory().logging
        logger = StructuredLogger(name, config)
        _logger_cache[name] = logger
        return logger


def clear_logger_cache() -> None:
    with _cache_lock:
        _logger_cache.clear()
