"""structlog configuration shared by the web app and the CLI commands."""

from __future__ import annotations

import logging

import structlog


def renderer_for(env: str | None):
    """JSON lines in production, readable console output everywhere else."""
    if (env or "production").lower() == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def setup_logging(level: str = "INFO", env: str = "production") -> None:
    """Configure structlog filtered at ``level`` with the renderer for ``env``."""
    numeric_level = logging.getLevelName((level or "INFO").upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer_for(env),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        # Resolve sys.stdout per logger so test runners swapping streams keep working.
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
