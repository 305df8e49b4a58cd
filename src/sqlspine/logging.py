"""Structured logging for sqlspine.

Wraps structlog so every module logs event-style records
(``logger.info("schema.lock_acquired", process=...)``) and so the SQL and
result tables produced by statements can be written out line by line.

Manifesto:
    A database access layer is debugged from its logs. Every executed
    statement must be reproducible from the log alone, with its bound
    values, and every lock transition must say which process made it.

    - **Structured:** Event names plus key/value fields
    - **Scoped context:** The running transaction is bound into every record
    - **Readable SQL:** Multi-line SQL logged one line per record

Features:
    - **configure_logging():** JSON or console rendering, level filtering
    - **get_logger():** Module logger (structlog over stdlib loggers)
    - **LogContext:** Scoped key/value context (contextvars based)
    - **log_lines():** One record per line of a multi-line text

Examples:
    >>> from sqlspine.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("schema.upgraded", tables=3)

Guardrails:
    ❌ DON'T: Log SQL with values at INFO, it leaks data into production logs
    ✅ DO: Keep SQL at DEBUG, lifecycle events at INFO

Tags:
    logging, structlog, observability, sql-logging, sqlspine

Doc-Types:
    - API Reference
    - Observability Guide
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sqlspine.settings import get_settings

_SERVICE_NAME = "sqlspine"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str | None = None,
    json_format: bool | None = None,
    service: str = "sqlspine",
    add_timestamp: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); None reads
            ``DbSettings.log_level`` (env ``SQLSPINE_LOG_LEVEL``)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if level is None:
        level = get_settings().log_level

    if json_format is None:
        json_format = not sys.stdout.isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(tx="Tx3"):
            logger.debug("tx.sql", sql=...)
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())


def log_lines(logger: Any, text: str, prefix: str = "", level: str = "debug") -> None:
    """Log ``text`` one record per line, each line prefixed with ``prefix``."""
    emit = getattr(logger, level)
    for line in text.splitlines():
        emit(f"{prefix}{line}")


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
    "log_lines",
]
