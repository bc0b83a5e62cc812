"""Structured logging configuration for gini-api.

The library itself only obtains loggers through :func:`get_logger`; an
application (or the ``gini`` CLI) calls :func:`configure_logging` once to
choose level and output format. Supported formats are colorized console
output, logfmt and JSON lines, all with ISO 8601 UTC timestamps.
"""

from __future__ import annotations

import logging
import sys
from enum import StrEnum

import structlog
from structlog.contextvars import merge_contextvars
from structlog.processors import TimeStamper, add_log_level


__all__ = [
    "LogFormat",
    "LogLevel",
    "configure_logging",
    "get_logger",
]


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_stdlib_level(self) -> int:
        """Return the corresponding :mod:`logging` level constant."""
        level: int = getattr(logging, self.name)
        return level


class LogFormat(StrEnum):
    """Log output format.

    Attributes:
        CONSOLE: Human-readable console output with colors.
        LOGFMT: ``key=value`` lines.
        JSON: One JSON object per line.
    """

    CONSOLE = "console"
    LOGFMT = "logfmt"
    JSON = "json"


def _create_renderer(log_format: LogFormat) -> structlog.typing.Processor:
    """Create the final renderer for ``log_format``."""
    if log_format is LogFormat.CONSOLE:
        return structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    if log_format is LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.processors.LogfmtRenderer(
        key_order=["timestamp", "level", "event"],
        drop_missing=True,
        bool_as_flag=False,
    )


def _stderr_is_tty() -> bool:
    return sys.stderr is not None and hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    *,
    log_format: LogFormat | str | None = None,
    force_colors: bool | None = None,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level, as enum or name ('debug', 'info', ...).
        log_format: Output format. If None, console output is used on a TTY
            and logfmt otherwise.
        force_colors: Only used when ``log_format`` is None; forces console
            (True) or logfmt (False) output instead of TTY detection.

    Example:
        >>> from gini_api.observability import configure_logging
        >>> configure_logging("debug", log_format="json")
    """
    if isinstance(level, str):
        level = LogLevel(level.lower())

    if log_format is not None:
        log_format = LogFormat(str(log_format).lower())
    else:
        use_colors = force_colors if force_colors is not None else _stderr_is_tty()
        log_format = LogFormat.CONSOLE if use_colors else LogFormat.LOGFMT

    processors: list[structlog.typing.Processor] = [
        merge_contextvars,
        add_log_level,
        TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if log_format is not LogFormat.CONSOLE:
        processors.append(structlog.processors.format_exc_info)
    processors.append(_create_renderer(log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level.to_stdlib_level()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # httpx logs through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level.to_stdlib_level(),
        force=True,
    )


def get_logger(
    name: str | None = None,
    **initial_context: object,
) -> structlog.BoundLogger:
    """Get a structured logger.

    Args:
        name: Logger name, typically ``__name__``.
        **initial_context: Key-value pairs to bind to the logger.

    Returns:
        A bound structlog logger.

    Example:
        >>> log = get_logger(__name__, component="oauth")
        >>> log.info("token_refreshed", expires_in=3600)
    """
    log: structlog.BoundLogger = structlog.get_logger(name)
    if initial_context:
        log = log.bind(**initial_context)
    return log
