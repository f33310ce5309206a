"""
Structured logging setup.

Usage:
    from sqladapter.core.logging import configure_logging

    configure_logging()                     # from Settings
    configure_logging(level="DEBUG", fmt="text")
"""

import logging
import sys
from typing import Any

import structlog

from sqladapter.core.config import get_settings


def add_component(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Structlog processor tagging every event with the component name."""
    event_dict.setdefault("component", "sqladapter")
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to Settings.log_level
        fmt: "json" or "text", defaults to Settings.log_format
    """
    settings = get_settings()
    level = (level or settings.log_level).upper()
    fmt = fmt or settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_component,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level)
        ),
        cache_logger_on_first_use=True,
    )
