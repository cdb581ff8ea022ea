"""Structured logging configuration for netlearning.

Provides JSON-formatted structured logging using structlog.
Supports both development (colored console) and production (JSON) modes.

The numeric core never writes to a global logger. Callers inject a bound
logger into ``fit``/``infer``; when they don't, ``null_logger()`` is used
and every event is discarded.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

    from netlearning.config import Settings

# Track if logging has been configured
_configured = False


def configure_logging(
    level: str = "INFO",
    format: str = "json",
) -> None:
    """Configure structured logging for netlearning.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format: Output format - "json" for production, "text" for development.

    Example:
        ```python
        from netlearning.logging import configure_logging, get_logger

        configure_logging(level="DEBUG", format="text")
        learner = NetworkLearner.fit(..., logger=get_logger("netlearning"))
        ```
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if format.lower() == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def configure_from_settings(settings: Settings | None = None) -> None:
    """Configure logging from ``NETLEARNING_LOG_LEVEL``/``NETLEARNING_LOG_FORMAT``."""
    from netlearning.config import get_settings

    settings = settings or get_settings()
    configure_logging(level=settings.log_level, format=settings.log_format)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Configures logging from the environment on first use if the caller
    hasn't.

    Args:
        name: Logger name.

    Returns:
        A bound structlog logger.
    """
    if not _configured:
        configure_from_settings()

    return structlog.get_logger(name)  # type: ignore[no-any-return]


def null_logger() -> Any:
    """Get a structlog logger that discards every event.

    Used as the default sink of the inference core so that it stays silent
    unless a logger is injected.
    """
    return structlog.wrap_logger(
        structlog.ReturnLogger(),
        processors=[],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
    )

