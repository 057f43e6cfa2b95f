"""Structured logging configuration."""

import logging
import sys
from typing import TextIO

import structlog


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structlog for applications embedding the fetcher.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Emit JSON lines instead of the coloured console format.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger for library code.

    Once :func:`configure_logging` (or any ``structlog.configure``) has run,
    this is a regular structlog logger. Until then events are routed through
    the standard ``logging`` module under ``name``, so a host application that
    never configured logging sees nothing.
    """
    if structlog.is_configured():
        logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
        return logger
    return structlog.wrap_logger(
        logging.getLogger(name or "fetchlayer"),
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    )


logging.getLogger("fetchlayer").addHandler(logging.NullHandler())
