"""
Zen Bridge Logging
==================

Handlers and formatters for the ``zenbridge`` logger tree:

- a JSON line per record in the rotating log file (read back by ``logs``),
- a colored one-line format on the console,
- an in-memory buffer of recent records, shown after a sync cycle.

Components log through ``get_logger_for_component`` so that every record
carries the component name and, where known, the article or feed it is about.
"""

import json
import logging
import logging.handlers
import sys
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional

ROOT_LOGGER = "zenbridge"

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Context keys promoted to the top level of a JSON log line.
_PROMOTED_KEYS = ("component", "article_id", "feed_url")


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRIBUTES
    }


def _utc_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        line = {
            "timestamp": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _PROMOTED_KEYS:
            if key in context:
                line[key] = context.pop(key)
        line["source"] = f"{record.module}:{record.funcName}:{record.lineno}"

        if context:
            line["context"] = context
        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)

        return json.dumps(line, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Short colored lines for interactive use."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        origin = getattr(record, "component", record.name)

        text = f"{clock} {color}{record.levelname:<8}{self.RESET} [{origin}] {record.getMessage()}"
        article_id = getattr(record, "article_id", None)
        if article_id:
            text += f" (article {article_id})"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


class RecentLogBuffer(logging.Handler):
    """Ring buffer of the latest records, as plain dicts."""

    def __init__(self, capacity: int = 100, level: int = logging.INFO):
        super().__init__(level)
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)
        self._guard = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": _utc_timestamp(record),
                "level": record.levelname.lower(),
                "message": record.getMessage(),
                "component": getattr(record, "component", record.name),
            }
            article_id = getattr(record, "article_id", None)
            if article_id:
                entry["article_id"] = article_id
        except Exception:
            self.handleError(record)
            return

        with self._guard:
            self._entries.append(entry)

    def get_entries(self) -> List[Dict[str, Any]]:
        """Buffered entries, oldest first."""
        with self._guard:
            return list(self._entries)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()


_recent_logs = RecentLogBuffer()


def get_recent_logs() -> List[Dict[str, Any]]:
    return _recent_logs.get_entries()


def clear_recent_logs() -> None:
    _recent_logs.clear()


def _file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(StructuredFormatter())
    return handler


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/zenbridge.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Install handlers on the ``zenbridge`` logger, replacing earlier ones.

    The log file is always JSON; ``structured_logging`` switches the console
    to JSON as well.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(log_level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler is not _recent_logs:
            handler.close()

    if enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(StructuredFormatter() if structured_logging else ColoredConsoleFormatter())
        root.addHandler(console)

    if log_file:
        root.addHandler(_file_handler(log_file, max_file_size, backup_count))

    root.addHandler(_recent_logs)

    for noisy in ("aiohttp", "feedparser", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root


class ComponentLogger(logging.LoggerAdapter):
    """Adapter that merges its context into each call's ``extra``."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**kwargs.get("extra", {}), **self.extra}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    article_id: Optional[str] = None,
    feed_url: Optional[str] = None,
) -> ComponentLogger:
    """Logger named ``zenbridge.<component_name>`` carrying that context.

    Args:
        component_name: Short component name, e.g. ``pipeline`` or ``sanitizer``
        article_id: Article the records are about, if any
        feed_url: Source feed the records are about, if any
    """
    context: Dict[str, Any] = {"component": component_name}
    if article_id:
        context["article_id"] = article_id
    if feed_url:
        context["feed_url"] = feed_url

    return ComponentLogger(logging.getLogger(f"{ROOT_LOGGER}.{component_name}"), context)


class PerformanceLogger:
    """Times a block and logs how long it took.

    Success is logged at INFO, failure at ERROR; the keyword arguments given
    at construction travel in ``extra`` together with ``duration_seconds``
    and ``success``. Exceptions are never suppressed.
    """

    def __init__(self, logger: logging.Logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self._started: Optional[datetime] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = datetime.now(timezone.utc)
        self.logger.debug(f"{self.operation} started", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._started is None:
            return
        elapsed = (datetime.now(timezone.utc) - self._started).total_seconds()
        extra = {**self.context, "duration_seconds": elapsed, "success": exc_type is None}

        if exc_type is None:
            self.logger.info(f"{self.operation} finished in {elapsed:.3f}s", extra=extra)
        else:
            self.logger.error(f"{self.operation} failed after {elapsed:.3f}s: {exc_val}", extra=extra)
