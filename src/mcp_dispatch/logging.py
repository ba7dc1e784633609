"""
Logging for the MCP dispatch core.

Two kinds of logging live here:
- Process diagnostics: JSON-formatted records through the standard logging
  module, written to stderr because stdout carries protocol frames.
- Client log messages: the MCP severity levels and the formatting applied
  before a message is pushed to the connected peer.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp_dispatch.config import LoggingConfig

# Default log format for fallback
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# MCP client log levels, least to most severe
LOG_LEVELS: list[str] = [
    "debug",
    "info",
    "notice",
    "warning",
    "error",
    "critical",
    "alert",
    "emergency",
]

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JSONFormatter(logging.Formatter):
    """
    A logging formatter that outputs log records as JSON objects.

    Each log record is formatted as a JSON object with consistent fields:
    - timestamp: ISO 8601 formatted timestamp in UTC
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - logger: Logger name
    - message: Log message
    - Additional fields from the record's extra dict
    """

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            JSON-formatted string representation of the log record.
        """
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in set(record.__dict__.keys()) - _RESERVED_RECORD_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def setup_logging(
    config: LoggingConfig | None = None,
    *,
    level: str = "INFO",
    json_format: bool = True,
    log_to_stderr: bool = True,
) -> logging.Logger:
    """
    Configure the logging system for the dispatch core.

    Args:
        config: Optional LoggingConfig object with logging settings.
            If provided, overrides other parameters.
        level: Default log level if no config is provided.
        json_format: Whether to use JSON formatting (default: True).
        log_to_stderr: Whether to log to stderr (default: True).

    Returns:
        The root logger configured for the mcp_dispatch package.

    Example:
        >>> from mcp_dispatch.logging import setup_logging
        >>> logger = setup_logging(level="DEBUG")
        >>> logger.info("Server started", extra={"tools_count": 3})
    """
    if config is not None:
        log_level = config.level.upper()
        json_format = config.json_format
        log_to_stderr = config.log_to_stderr
    else:
        log_level = level.upper()

    logger = logging.getLogger("mcp_dispatch")
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    if log_to_stderr:
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(getattr(logging, log_level, logging.INFO))

        if json_format:
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))

        logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: The name for the logger, typically __name__ of the calling module.
            The "mcp_dispatch." prefix is added automatically if not present.

    Returns:
        A configured logger instance.
    """
    if not name.startswith("mcp_dispatch"):
        name = f"mcp_dispatch.{name}"

    return logging.getLogger(name)


# =============================================================================
# Client Log Messages
# =============================================================================


def is_valid_level(level: str) -> bool:
    """Check whether level is one of LOG_LEVELS."""
    return level in LOG_LEVELS


def level_rank(level: str) -> int:
    """
    Return the severity rank of a client log level (0 = debug).

    Raises:
        ValueError: If level is not a known client log level.
    """
    return LOG_LEVELS.index(level)


def format_log_message(level: str, message: str) -> str:
    """
    Format a client log message with its level prefix.

    Example:
        >>> format_log_message("warning", "disk almost full")
        '[WARNING] disk almost full'
    """
    return f"[{level.upper()}] {message}"
