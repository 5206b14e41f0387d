"""Structured logging for livetodo.

Events are structlog key/value records written to stderr, so they never
mix with the task list the terminal UI prints on stdout. The console
format is meant for people, the json format for log collection.

Example:
    configure_logging(settings)
    bind_context(store="memory:preview")
    Loggers.store().info("store_opened", objects=3)
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from livetodo.config import BaseSettings


def _renderer(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)]


def configure_logging(settings: "BaseSettings | None" = None) -> None:
    """Route structlog (and stdlib logging) to stderr at the configured level.

    Without settings, only warnings and errors are shown on the console.
    """
    level_name = settings.log_level if settings is not None else "warning"
    log_format = settings.log_format if settings is not None else "console"
    level = logging.getLevelName(level_name.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        *_renderer(log_format),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", level=level, stream=sys.stderr)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_context(**kwargs: object) -> None:
    """Attach key/values to every following event in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class Loggers:
    """Named loggers per component."""

    @staticmethod
    def store() -> structlog.stdlib.BoundLogger:
        """Opening, commits, rollbacks and refreshes."""
        return get_logger("livetodo.store")

    @staticmethod
    def query() -> structlog.stdlib.BoundLogger:
        """Live results and notification delivery."""
        return get_logger("livetodo.query")

    @staticmethod
    def todo() -> structlog.stdlib.BoundLogger:
        return get_logger("livetodo.todo")

    @staticmethod
    def cli() -> structlog.stdlib.BoundLogger:
        return get_logger("livetodo.cli")
