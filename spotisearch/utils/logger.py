#!/usr/bin/env python3
"""
🔍 Centralized Logging System for SpotiSearch
Console logging for launcher hosts and the CLI, with optional rotating files.
Supports structured JSON logging for log aggregation
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

IS_DEV_MODE = '--dev' in sys.argv or os.getenv('SPOTISEARCH_DEV') == '1'

ENABLE_JSON_LOGS = os.getenv('SPOTISEARCH_JSON_LOGS', '0') == '1'
ENABLE_FILE_LOGGING = os.getenv('SPOTISEARCH_FILE_LOGS', '0') == '1'
MAX_LOG_SIZE = 2 * 1024 * 1024
BACKUP_COUNT = 3

LOG_LEVEL = logging.DEBUG if IS_DEV_MODE else logging.WARNING

_env_level = os.getenv('SPOTISEARCH_LOG_LEVEL')
if _env_level:
    try:
        LOG_LEVEL = getattr(logging, _env_level.upper())
    except AttributeError:
        pass  # Ignore invalid level


def _get_app_log_dir() -> Path:
    """Get application log directory path-agnostically"""
    env_log_dir = os.getenv('SPOTISEARCH_LOG_DIR')
    if env_log_dir:
        return Path(env_log_dir)
    home = os.getenv('SPOTISEARCH_HOME')
    base = Path(home) if home else Path.home() / ".spotisearch"
    return base / "logs"


LOG_DIR = _get_app_log_dir()

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName', 'no_color',
))


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def __init__(self) -> None:
        super().__init__('%(levelname)s | %(name)s | %(message)s%(context)s')

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors and append structured extras."""
        extras = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS and k != 'context'}
        record.context = (" | " + " ".join(f"{k}={v}" for k, v in extras.items())) if extras else ""

        if getattr(record, 'no_color', False):
            return super().format(record)

        levelname = record.levelname
        color = self.COLORS.get(levelname, self.COLORS['RESET'])
        record.levelname = f"{color}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class JSONFormatter(logging.Formatter):
    """Structured JSON formatter.

    Example output:
        {"level": "WARNING", "logger": "spotify.http", "message": "spotify.request.error",
         "method": "GET", "error": "ReadTimeout", "timestamp": "2025-11-04T10:30:00.123000Z"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc)
            .replace(tzinfo=None).isoformat() + 'Z',
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            log_data['source'] = f"{record.filename}:{record.lineno}"
            log_data['function'] = record.funcName

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_data:
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, ensure_ascii=True, sort_keys=True)


def _file_formatter() -> logging.Formatter:
    if ENABLE_JSON_LOGS:
        return JSONFormatter()
    return logging.Formatter(
        '%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(message)s'
    )


def setup_logger(name: str, level: Any = None) -> logging.Logger:
    """
    Sets up a logger with console (and optionally file) handlers.

    Args:
        name: Logger name, usually the top of a logger hierarchy ("spotify")
        level: Optional level override (name or number)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    effective_level = LOG_LEVEL
    if isinstance(level, str):
        effective_level = getattr(logging, level.upper(), LOG_LEVEL)
    elif isinstance(level, int):
        effective_level = level
    logger.setLevel(effective_level)

    # Prevent duplicate handlers if logger already exists
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(JSONFormatter() if ENABLE_JSON_LOGS else ColoredFormatter())
    logger.addHandler(console_handler)

    if ENABLE_FILE_LOGGING:
        try:
            LOG_DIR.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                LOG_DIR / "spotisearch.log",
                maxBytes=MAX_LOG_SIZE,
                backupCount=BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(_file_formatter())
            logger.addHandler(file_handler)
        except OSError:
            logger.warning("Log directory %s not writable; console logging only", LOG_DIR)

    return logger


def setup_logging(level: Any = None) -> logging.Logger:
    """Initialize every logger hierarchy used by the package.

    Returns:
        logging.Logger: The main application logger
    """
    for name in ("spotify", "service", "thread_safe_state", "spotisearch.config"):
        setup_logger(name, level)
    return setup_logger("spotisearch", level)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Log a message with structured context fields.

    In JSON mode, context fields appear as separate JSON keys; the console
    formatter appends them as key=value pairs.

    Example:
        >>> log_structured(logger, logging.INFO, "playback.started",
        ...                device_id="abc123", track_uri="spotify:track:xyz")
    """
    logger.log(level, message, extra=context)


__all__ = [
    "ColoredFormatter",
    "JSONFormatter",
    "LOG_DIR",
    "log_structured",
    "setup_logger",
    "setup_logging",
]
