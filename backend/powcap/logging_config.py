"""
Structured logging configuration using structlog.

JSON lines when ``log_format`` is "json", pretty console output otherwise.
Logs go to stdout; the host process decides where they end up.
"""

import logging
import sys

import structlog

from powcap.config import Settings


def setup_logging(settings: Settings) -> None:
    """
    Configure structlog and stdlib logging integration.

    Call this once at process startup.
    """
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    level = getattr(logging, settings.log_level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # APScheduler logs through stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str | None = None):
    """
    Get a structlog logger instance.

    Args:
        name: Optional logger name for context

    Returns:
        Configured structlog logger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
