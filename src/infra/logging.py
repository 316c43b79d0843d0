"""Structured logging configuration using structlog.

Call setup_logging() once at process startup (CLI entry point) before any log calls.
Logs go to stderr; stdout is reserved for command results.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog


def setup_logging(*, json_output: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog for reconciliation runs.

    Args:
        json_output: render JSON lines when True, console output otherwise.
        log_level: lowest level emitted (DEBUG, INFO, WARNING, ERROR).
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[log_level.upper()]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@contextmanager
def command_context(command: str, project_id: str | None = None) -> Iterator[None]:
    """Attach command and project id to every log event emitted inside the block."""
    with structlog.contextvars.bound_contextvars(command=command, project_id=project_id):
        yield
