"""Structured logging configuration using *structlog*.

Engine modules only call ``structlog.get_logger(__name__)``; the host
application calls :func:`setup_logging` once.  Per-subject context is bound
through contextvars so every event emitted while handling a subject carries
its ``subject_id`` without threading it through pure functions.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Iterator

import structlog


def setup_logging(level: str = "INFO", *, json: bool | None = None) -> None:
    """Configure *structlog* processors.

    ``json`` forces the renderer; by default a console renderer is used on a
    TTY and JSON lines otherwise.
    """
    use_json = (not sys.stderr.isatty()) if json is None else json
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def subject_context(subject_id: str, **extra: object) -> Iterator[None]:
    """Bind ``subject_id`` (and any extra keys) for the duration of a block."""
    tokens = structlog.contextvars.bind_contextvars(subject_id=subject_id, **extra)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
