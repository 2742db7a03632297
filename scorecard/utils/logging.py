"""
Structured logging for the scorecard engine, built on structlog.

Request ids are bound through contextvars by the HTTP middleware; engine
code logs snake_case events with keyword context. Enum members and the
NO_DATA sentinel are flattened so JSON output stays plain.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from scorecard.config import get_settings

SERVICE_NAME = "scorecard-engine"


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for structured logging."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def add_service(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def flatten_domain_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Render enums by value and the empty-window sentinel as null."""
    from scorecard.models.results import is_no_data

    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif is_no_data(value):
            event_dict[key] = None
    return event_dict


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: Overrides settings.log_level
        log_format: Overrides settings.log_format ("json" or "console");
            console output is always used in dev mode
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    fmt = log_format or settings.log_format

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    if fmt == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=not settings.testing)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            add_severity,
            add_service,
            flatten_domain_values,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Structured logger for a module."""
    return structlog.get_logger(name)
