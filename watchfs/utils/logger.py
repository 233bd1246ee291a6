# watchfs/utils/logger.py

"""
Logging setup for watchfs

Console output always goes to stderr; stdout belongs to the command being
run, so its output is never interleaved with log lines.
"""
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

# Environment variable selecting the log level when --verbose is not given
LOG_LEVEL_ENV = "WATCHFS_LOG"
DEFAULT_LOG_LEVEL = "WARNING"

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_LEVEL_ALIASES = {
    'trace': 'DEBUG',
    'warn': 'WARNING',
}


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers"""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            'timestamp': created.isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'thread': record.threadName,
            'message': record.getMessage(),
        }

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        # Structured fields passed as extra={'extra': {...}}
        fields = getattr(record, 'extra', None)
        if isinstance(fields, dict):
            entry.update(fields)

        return json.dumps(entry, default=str)


class ColorFormatter(logging.Formatter):
    """Colors the level name for interactive terminals"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[41m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        # Other handlers must still see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def resolve_log_level(verbose: bool = False, log_level: Optional[str] = None) -> str:
    """
    Pick the effective log level name

    An explicit level wins, then --verbose (INFO), then the WATCHFS_LOG
    environment variable, then WARNING.  Unknown names fall back to
    WARNING.
    """
    name = log_level
    if name is None and verbose:
        name = "INFO"
    if name is None:
        name = os.environ.get(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL

    name = name.strip().lower()
    name = _LEVEL_ALIASES.get(name, name).upper()
    if not isinstance(logging.getLevelName(name), int):
        return DEFAULT_LOG_LEVEL
    return name


def _console_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter()
    if log_format == "color":
        return ColorFormatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT)


def _file_handler(log_file: str, log_format: str, max_file_size: int,
                  backup_count: int) -> logging.Handler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        filename=log_path,
        maxBytes=max_file_size,
        backupCount=backup_count,
        encoding='utf-8'
    )
    # Colors make no sense in a file
    if log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(
    log_level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[str] = None,
    log_format: str = "text",  # text, json, or color
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> logging.Logger:
    """
    Configure the root logger, replacing any handlers already installed

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Also log to this file, rotated by size
        log_format: Format of logs (text, json, or color)
        max_file_size: Maximum size of log file before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The root logger
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    log_format = log_format.lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_console_formatter(log_format))
    handlers = [console]
    if log_file:
        handlers.append(_file_handler(log_file, log_format, max_file_size, backup_count))

    for handler in handlers:
        handler.setLevel(level)
        root_logger.addHandler(handler)

    # Observer internals are noisy below WARNING
    logging.getLogger('watchdog').setLevel(max(level, logging.WARNING))

    if log_file:
        root_logger.info(f"Logging to file: {log_file}")
    root_logger.debug(f"Logging configured. Level: {log_level}, Format: {log_format}")
    return root_logger


class PerformanceLogger:
    """
    Context manager timing a block and logging the result at DEBUG

    The timing is attached as structured fields, which the JSON formatter
    merges into its output.
    """

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None,
                 extra: Optional[Dict[str, Any]] = None):
        self.operation = operation
        self.logger = logger or logging.getLogger('watchfs.performance')
        self.extra = extra or {}
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.monotonic() - self.start_time

        fields = {'operation': self.operation, 'duration_seconds': self.duration, **self.extra}
        if exc_type is None:
            message = f"{self.operation} took {self.duration:.3f}s"
        else:
            fields['error'] = str(exc_val)
            message = f"{self.operation} failed after {self.duration:.3f}s"

        self.logger.debug(message, extra={'extra': fields})
        return False
