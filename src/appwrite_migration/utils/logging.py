"""Logging configuration for Appwrite Bridge using structlog.

This module configures structured logging with JSON file output and
human-readable console output, and provides ``MigrationLog``, the stream
through which every migration step and failure is reported to the caller.
"""

import json
import logging
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler
from structlog.typing import EventDict, WrappedLogger

from appwrite_migration import __version__

_ANSI_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

# Field names whose values never reach a log sink (case-insensitive substring match)
SENSITIVE_FIELDS = {
    "api_key",
    "apikey",
    "sourcekey",
    "destkey",
    "secret",
    "password",
    "token",
    "authorization",
    "x-appwrite-key",
}


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to log entries.

    Args:
        logger: The wrapped logger instance
        method_name: The name of the logger method called
        event_dict: The event dictionary to be logged

    Returns:
        EventDict: Modified event dictionary with app context
    """
    event_dict["app"] = "appwrite-bridge"
    event_dict["version"] = __version__
    return event_dict


class JSONFileFormatter(logging.Formatter):
    """Formatter that writes one JSON object per line to the log file.

    The message arrives already rendered by structlog; ANSI escape codes are
    stripped before it is embedded.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_entry = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": _ANSI_PATTERN.sub("", record.getMessage()),
            "app": "appwrite-bridge",
            "version": __version__,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def configure_logging(
    level: str = "WARNING",
    log_format: str = "json",
    log_file: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: File output format ('json' or 'console'). Console output is
            always human-readable.
        log_file: Optional path to log file
        file_level: File log level (defaults to DEBUG)
    """
    console_level = getattr(logging, level.upper(), logging.WARNING)
    file_log_level = getattr(logging, (file_level or "DEBUG").upper(), logging.DEBUG)

    console = Console(stderr=True)
    rich_handler = RichHandler(
        console=console,
        show_time=False,  # structlog already adds timestamps
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(console_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers filter

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(rich_handler)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.dev.ConsoleRenderer(colors=False),  # RichHandler handles coloring
    ]

    # The filtering level must admit whatever the most verbose handler wants
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            min(console_level, file_log_level) if log_file else console_level
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(file_log_level)
        if log_format == "json":
            file_handler.setFormatter(JSONFileFormatter())
        else:
            file_handler.setFormatter(logging.Formatter("%(message)s"))

        root_logger.addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance
    """
    return structlog.get_logger(name)


def log_api_request(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    url: str,
    status_code: int | None = None,
    duration_ms: float | None = None,
    **extra: Any,
) -> None:
    """Log an API request with structured data.

    Args:
        logger: Logger instance
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
        **extra: Additional context to log
    """
    log_data = {"method": method, "url": url, **extra}

    if status_code is not None:
        log_data["status_code"] = status_code

    if duration_ms is not None:
        log_data["duration_ms"] = round(duration_ms, 2)

    # 404s are routine here: every idempotent create starts with a lookup
    if status_code is None or 200 <= status_code < 300 or status_code == 404:
        logger.debug("api_request_completed", **log_data)
    elif 400 <= status_code < 500:
        logger.info("api_request_client_error", **log_data)
    else:
        logger.warning("api_request_server_error", **log_data)


def sanitize_payload(payload: dict[str, Any] | list[Any] | Any, max_depth: int = 10) -> Any:
    """Redact sensitive fields in a payload before logging.

    Args:
        payload: The payload to sanitize (dict, list, or primitive)
        max_depth: Maximum recursion depth

    Returns:
        Sanitized copy of the payload with sensitive values replaced by "[REDACTED]"
    """
    if max_depth <= 0:
        return "[MAX_DEPTH_EXCEEDED]"

    if isinstance(payload, dict):
        sanitized = {}
        for key, value in payload.items():
            if any(sensitive in str(key).lower() for sensitive in SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, (dict, list)):
                sanitized[key] = sanitize_payload(value, max_depth - 1)
            else:
                sanitized[key] = value
        return sanitized

    if isinstance(payload, list):
        return [sanitize_payload(item, max_depth - 1) for item in payload]

    return payload


def truncate_payload(payload: Any, max_size: int = 10000) -> str:
    """Convert payload to string and truncate if too large.

    Args:
        payload: The payload to convert and truncate
        max_size: Maximum size in characters

    Returns:
        String representation of payload, truncated if necessary
    """
    try:
        payload_str = json.dumps(payload, indent=2, default=str)
    except (TypeError, ValueError):
        payload_str = str(payload)

    if len(payload_str) > max_size:
        return payload_str[:max_size] + f"\n... [TRUNCATED - {len(payload_str)} total chars]"

    return payload_str


class MigrationLog:
    """User-visible progress and failure stream for a migration run.

    Every call writes a structured event to the underlying structlog logger and
    a human-readable line to the optional callback. There is no other channel
    through which per-item failures reach the caller, so every failure must go
    through ``error`` or ``warning`` with enough context to identify the item.

    Usage:
        log = MigrationLog(get_logger(__name__), callback=print)
        log.info("Created database.", database_id="db1")
        log.error("creating document doc_1", exc)
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        callback: Callable[[str], None] | None = None,
    ):
        self._logger = logger or get_logger("appwrite_migration.migration")
        self._callback = callback

    def _emit(self, message: str) -> None:
        if self._callback is not None:
            self._callback(message)

    def info(self, message: str, **context: Any) -> None:
        """Report progress."""
        self._logger.info(message, **context)
        self._emit(message)

    def warning(self, message: str, **context: Any) -> None:
        """Report a degradation that does not stop the run."""
        self._logger.warning(message, **context)
        self._emit(f"WARNING {message}")

    def error(self, context: str, error: BaseException | str, **extra: Any) -> None:
        """Report a failure with the operation it happened in.

        Args:
            context: What was being attempted (e.g. "creating document doc_1")
            error: The exception or message describing the failure
            **extra: Structured identifiers for the log sink
        """
        message = str(error) if not isinstance(error, str) else error
        self._logger.error(
            "migration_error",
            context=context,
            error_type=type(error).__name__ if not isinstance(error, str) else None,
            error_message=message,
            **extra,
        )
        self._emit(f"ERROR {context}: {message}")
