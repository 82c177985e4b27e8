import logging
import sys
from typing import Any

import structlog

from gym_tracker.config.settings import get_settings

settings = get_settings()


def configure_logging():
    """Configure structured logging with structlog.

    Logs go to stderr; stdout belongs to tool results when running from the CLI.
    """
    level = logging.DEBUG if settings.debug else logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    # SQL echo is controlled by the engine's own `echo` flag
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.log_format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger for a module; events carry the bound tool context."""
    return structlog.get_logger(name)


def add_log_context(**kwargs: Any) -> None:
    """Bind fields (user_id, tool) to every log entry of the current call."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_log_context() -> None:
    structlog.contextvars.clear_contextvars()
