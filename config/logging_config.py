"""
Structured logging setup.

Console lines look like:

    [14:03:27] batch_submitted batch=3 created=100

Severity (info, success, warning, error) only changes presentation.
A success is an info event carrying status="success".
"""

import logging
import sys
from typing import Any

import structlog

_LEVEL_MARKERS = {
    "warning": "WARNING ",
    "error": "ERROR ",
    "critical": "ERROR ",
}


def render_console_line(logger: Any, method_name: str, event_dict: dict) -> str:
    """Render an event as "[HH:MM:SS] <message> key=value ..."."""
    timestamp = event_dict.pop("timestamp", "")
    level = event_dict.pop("level", method_name)
    event = event_dict.pop("event", "")
    event_dict.pop("logger", None)

    marker = _LEVEL_MARKERS.get(level, "")
    if event_dict.get("status") == "success":
        marker = "OK "
        event_dict.pop("status")

    context = " ".join(f"{key}={value}" for key, value in event_dict.items())
    line = f"[{timestamp}] {marker}{event}"
    return f"{line} {context}" if context else line


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Args:
        level: Minimum level name (DEBUG, INFO, ...)
        json_logs: Render JSON lines instead of console lines
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(
                fmt="iso" if json_logs else "%H:%M:%S",
                utc=False
            ),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer() if json_logs
                else render_console_line
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
