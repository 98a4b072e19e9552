"""Structured logging configuration for CoolerWatch."""

from __future__ import annotations

import logging
import sys
from typing import Any, List, Literal

import structlog


def configure_logging(
    log_format: Literal["json", "text"] = "json",
    log_level: str = "INFO",
) -> None:
    """Configure structlog for the service.

    Args:
        log_format: "json" for production collectors, "text" for a terminal.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: List[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if log_format == "json":
        processors: List[structlog.typing.Processor] = [
            *shared_processors,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # APScheduler and tenacity log through stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)


def bind_sweep_context(**values: Any) -> None:
    """Attach key/value pairs to every log line emitted during a sweep."""
    structlog.contextvars.bind_contextvars(**values)


def clear_sweep_context() -> None:
    """Drop the context bound by bind_sweep_context()."""
    structlog.contextvars.clear_contextvars()


def get_logger() -> structlog.stdlib.BoundLogger:
    """Get a configured structlog logger instance."""
    return structlog.get_logger()
