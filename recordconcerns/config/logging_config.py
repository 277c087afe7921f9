"""
Structured logging for record concerns.

Every concern logs through structlog with an event name and key/value
context, never formatted messages:

    concern_declared        a ``*_by`` declaration was applied (info)
    concern_misconfigured   a declaration named a missing column (error)
    record_write_rejected   the database refused a transition (warning, PER_001)
    hashid_collision        a hashid candidate was taken, retrying (debug)
    slug_generated          a slug was assigned during a flush (debug)
    positions_shifted       sortable rows moved to make or close a gap (debug)

The library never configures logging on import. Hosting applications that
already configure structlog need nothing from here; others call
``configure_logging`` or ``configure_from_settings`` once at startup.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

# Loggers that would drown concern events at DEBUG; SQL echo has its own setting
_CHATTY_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    stream: IO[str] | None = None,
) -> None:
    """
    Route concern events through the stdlib root logger.

    ``json_logs`` picks one JSON object per line; otherwise events are
    rendered for a terminal. Output goes to ``stream`` (stdout by default).
    """
    shared = _shared_processors()
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_from_settings() -> None:
    """Apply ``log_level`` and ``log_json`` from the library settings."""
    from recordconcerns.config.settings import get_settings

    settings = get_settings()
    configure_logging(log_level=settings.log_level.value, json_logs=settings.log_json)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
