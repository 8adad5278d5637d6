"""Structured logging for snmpmigrate.

Uses structlog's ProcessorFormatter so every ``logging.getLogger(__name__)``
call site renders through the same pipeline. Two output formats:

- ``text``: colored, human-readable console output (default)
- ``json``: JSON lines, for upgrade logs that are collected centrally

The name of the migration step being executed is injected into every event
from a ContextVar (see :func:`migration_step`).
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

import structlog

_migration_step: ContextVar[str | None] = ContextVar("migration_step", default=None)

_NOISE_LOGGERS = (
    "asyncio",
    "alembic.runtime.migration",
)


def get_migration_step() -> str | None:
    """Return the migration step active in the current context, if any."""
    return _migration_step.get()


@contextmanager
def migration_step(name: str) -> Iterator[None]:
    """Tag every log event emitted inside the block with ``step=name``."""
    token = _migration_step.set(name)
    try:
        yield
    finally:
        _migration_step.reset(token)


def add_migration_step(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Inject the ``step`` key from the ContextVar into the event dict."""
    event_dict["step"] = _migration_step.get()
    return event_dict


def _build_processors(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_migration_step,
        structlog.stdlib.ExtraAdder(),
    ]


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure structured logging for the process.

    Parameters
    ----------
    level:
        Root log level (e.g. "DEBUG", "INFO", "WARNING").
    fmt:
        Output format: ``"text"`` for colored console, ``"json"`` for JSON lines.
    """
    if fmt == "json":
        processors = _build_processors(time_fmt="iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        processors = _build_processors(time_fmt="%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=processors,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    # Remove existing handlers to avoid duplicate output on reconfiguration
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
