"""
Structured Logging

Features:
- JSON or console rendering
- Log levels
- Context propagation (connection, provider)
- PHI redaction of known demographic fields
"""

from enum import Enum
import logging
import sys

import structlog


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


# Keys that may carry patient identity; never emitted verbatim
PHI_KEYS = frozenset({
    "first_name",
    "last_name",
    "full_name",
    "date_of_birth",
    "phone",
    "email",
    "address",
    "patient_name",
})

REDACTED = "[REDACTED]"


def phi_redaction_processor(logger, method_name, event_dict):
    """Redact PHI-bearing fields from log events."""
    for key in PHI_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    json_output: bool = True,
) -> None:
    """
    Configure structlog for the process.

    Args:
        level: Minimum level to emit
        json_output: Render JSON lines instead of console output
    """
    level_name = level.value if isinstance(level, LogLevel) else str(level).lower()
    numeric_level = logging.getLevelName(level_name.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            phi_redaction_processor,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str | None = None):
    """Get a structured logger, optionally bound to a component."""
    logger = structlog.get_logger("medrecon")
    if component:
        return logger.bind(component=component)
    return logger
