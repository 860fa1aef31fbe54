"""
Structured logging setup (structlog on top of stdlib logging).

Call setup_logging() once at process start (FastAPI lifespan, Celery
worker init, CLI).  Modules obtain loggers with get_logger(__name__)
and log key/value events:

    logger.info("Rows cleaned", input_rows=120, cleaned_rows=118)
"""

from __future__ import annotations

import logging
import sys

import structlog

from membersync.core.config import settings


def setup_logging(level: str | None = None, *, json_output: bool | None = None) -> None:
    """
    Configure structlog + stdlib logging.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL.
        json_output: Render JSON lines.  Defaults to True outside development.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    if json_output is None:
        json_output = settings.APP_ENV != "development"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to `name`."""
    return structlog.get_logger(name)
