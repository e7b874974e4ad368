"""
Feed Reader Logging
===================

Console output goes through rich; log files always receive one JSON object
per line. Component loggers carry the feed and worker request they act on,
and those fields are lifted to the top of each JSON record so a single
refresh can be followed with ``grep``.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "feedreader"

# Fields every record carries, kept out of the "extra" block.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

# Context fields promoted to top-level keys of a JSON record.
_CONTEXT_KEYS = ("component", "feed_id", "request_id")

_QUIET_LIBRARIES = ("aiohttp", "asyncio", "feedparser", "urllib3")


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
            "thread": record.threadName,
        }

        extra: Dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _STANDARD_ATTRS:
                continue
            if key in _CONTEXT_KEYS:
                entry[key] = value
            else:
                extra[key] = value
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextConsoleFormatter(logging.Formatter):
    """Plain message followed by any feed/request context, for RichHandler."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        tags = [
            f"{key}={getattr(record, key)}"
            for key in ("feed_id", "request_id")
            if getattr(record, key, None)
        ]
        return f"{message} [{' '.join(tags)}]" if tags else message


def _console_handler(structured: bool) -> logging.Handler:
    if structured:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(StructuredFormatter())
        return handler

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(ContextConsoleFormatter("%(name)s: %(message)s"))
    return handler


def _file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(StructuredFormatter())
    return handler


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console and/or rotating file handlers to ``name``.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        name: Logger to configure
        level: Level name such as ``"DEBUG"`` or ``"warning"``
        log_file: Rotating JSON log file, skipped when None
        console: Whether to write to stderr
        structured: JSON on the console instead of rich output
        max_file_size: Rotation threshold in bytes
        backup_count: Rotated files to keep

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.getLevelName(level.upper()))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if console:
        logger.addHandler(_console_handler(structured))
    if log_file:
        logger.addHandler(_file_handler(log_file, max_file_size, backup_count))

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Merges the adapter's context with per-call ``extra`` fields."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    feed_id: Optional[str] = None,
    request_id: Optional[str] = None,
) -> LoggerAdapter:
    """Logger named ``feedreader.<component_name>`` carrying feed/request context."""
    context: Dict[str, Any] = {"component": component_name}
    if feed_id:
        context["feed_id"] = feed_id
    if request_id:
        context["request_id"] = request_id
    return LoggerAdapter(logging.getLogger(f"{ROOT_LOGGER_NAME}.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/feedreader.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Install the ``feedreader`` handlers and quiet noisy libraries."""
    setup_logger(
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )
    for library in _QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)


class PerformanceLogger:
    """Times a block and logs its outcome.

    Success is logged at DEBUG, failure at WARNING; the exception itself is
    never suppressed. ``duration`` holds the elapsed seconds after exit.
    """

    def __init__(self, logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        self.logger.debug("Starting %s", self.operation, extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.perf_counter() - self._started
        context = {**self.context, "duration_seconds": round(self.duration, 6), "success": exc_type is None}
        if exc_type is None:
            self.logger.debug("Completed %s in %.3fs", self.operation, self.duration, extra=context)
        else:
            self.logger.warning(
                "Failed %s in %.3fs: %s", self.operation, self.duration, exc_val, extra=context
            )
