"""
Logging configuration for the Orkestra executors.

Configures structlog on top of the standard logging module. Text output is
human readable and colored on a terminal; JSON output is meant for log
aggregation.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict

COLORS = {
    "debug": "\033[36m",
    "info": "\033[32m",
    "warning": "\033[33m",
    "error": "\033[31m",
    "critical": "\033[35m",
    "reset": "\033[0m",
}


def add_color(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Wrap the level name in ANSI color codes."""
    if "level" in event_dict and sys.stdout.isatty():
        color = COLORS.get(method_name, COLORS["reset"])
        event_dict["level"] = f"{color}{event_dict['level'].upper()}{COLORS['reset']}"
    return event_dict


def human_readable_renderer(
    logger: Any,
    method_name: str,
    event_dict: EventDict,
) -> str:
    """
    Render one log line.

    Format: [timestamp] [level] [logger] message key=value key2=value2
    Example: [2025-01-14 10:30:45] [INFO] [orkestra_executors.infrastructure.backends.command] Running command operation=cmd/run shell=sh
    """
    timestamp = event_dict.pop("timestamp", "")
    level = str(event_dict.pop("level", "INFO")).upper()
    logger_name = event_dict.pop("logger_name", event_dict.pop("logger", None))
    message = event_dict.pop("event", "")
    exc_info = event_dict.pop("exception", None)

    parts = []
    if timestamp:
        parts.append(f"[{timestamp}]")
    parts.append(f"[{level}]")
    if logger_name and logger_name != "root":
        parts.append(f"[{logger_name}]")
    parts.append(str(message))

    for key, value in sorted(event_dict.items()):
        if key == "stack_info":
            continue
        if isinstance(value, (str, int, float, bool)):
            parts.append(f"{key}={value}")
        else:
            parts.append(f"{key}={value!r}")

    line = " ".join(parts)
    if exc_info:
        line += "\n" + exc_info
    return line


def configure_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """
    Configure structlog for the executors.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "text" (default) or "json"
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )
    # paramiko is chatty at INFO about transport negotiation
    logging.getLogger("paramiko").setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(add_color)
        processors.append(human_readable_renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
