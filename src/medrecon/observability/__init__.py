"""
Medrecon Observability Module

Structured logging configuration shared by the pipeline.
"""

from medrecon.observability.logging import (
    LogLevel,
    configure_logging,
    get_logger,
    phi_redaction_processor,
)

__all__ = [
    "LogLevel",
    "configure_logging",
    "get_logger",
    "phi_redaction_processor",
]
