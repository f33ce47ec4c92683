"""
Feedo Logging Configuration
===========================

Console and rotating-file logging for the Feedo process. Console output is
colored for development; file output is always one JSON object per line.
Components log through a LoggerAdapter that stamps the component name and,
where known, the chat and feed the message concerns.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

# Chatty third-party loggers and the level they are capped at
LIBRARY_LOG_LEVELS = {
    "aiohttp": logging.WARNING,
    "httpx": logging.WARNING,
    "telegram": logging.INFO,
    "feedparser": logging.WARNING,
}


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields attached to a record through ``extra``."""
    return {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` fields are nested under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        extras = record_extras(record)
        if extras:
            entry["extra"] = extras
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        clock = time.strftime("%H:%M:%S", time.localtime(record.created))
        origin = getattr(record, "component", None) or f"{record.name}:{record.funcName}"

        line = f"{color}[{clock}] {record.levelname:<8}{self.RESET} {origin} - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logger(
    name: str = "feedo",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Replace the handlers of logger ``name`` with console and file handlers.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating JSON log file; no file logging if None
        console: Whether to log to stdout
        structured: Whether console output should be JSON too
        max_file_size: Bytes before the log file is rotated
        backup_count: Number of rotated files to keep

    Returns:
        Configured logger instance
    """
    handlers: List[logging.Handler] = []

    if console:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(StructuredFormatter() if structured else ColoredConsoleFormatter())
        handlers.append(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(StructuredFormatter())
        handlers.append(rotating)

    logger = logging.getLogger(name)
    logger.setLevel(level.upper())
    logger.handlers[:] = handlers
    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter merging fixed component context into every record."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    chat_id: Optional[int] = None,
    feed_id: Optional[int] = None,
) -> LoggerAdapter:
    """Logger named ``feedo.<component_name>`` carrying the given context."""
    context: Dict[str, Any] = {"component": component_name}
    if chat_id is not None:
        context["chat_id"] = chat_id
    if feed_id is not None:
        context["feed_id"] = feed_id

    return LoggerAdapter(logging.getLogger(f"feedo.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/feedo.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the ``feedo`` logger tree and cap library loggers."""
    setup_logger(
        name="feedo",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    for library, level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(library).setLevel(level)


def configure_logging_from_settings(settings, debug: bool = False) -> None:
    """Apply the ``logging`` section of FeedoSettings.

    Args:
        settings: Loaded FeedoSettings
        debug: Force DEBUG regardless of the configured level
    """
    section = settings.logging
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=section.file_path,
        enable_console=section.console_logging,
        structured_logging=section.structured_logging,
        max_file_size_mb=section.max_file_size_mb,
        backup_count=section.backup_count,
    )


class PerformanceLogger:
    """Context manager that logs how long an operation took.

    The elapsed time is kept in ``duration`` after the block exits.
    """

    def __init__(self, logger: logging.Logger, operation: str, **kwargs):
        self.logger = logger
        self.operation = operation
        self.context = kwargs
        self.started: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.started = time.monotonic()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.monotonic() - self.started
        extra = {**self.context, "duration_seconds": self.duration, "success": exc_type is None}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=extra)
        else:
            self.logger.error(f"Failed {self.operation} in {self.duration:.3f}s", extra=extra)
