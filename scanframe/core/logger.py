"""Structured logging using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import Processor


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: If True, output logs in JSON format
        log_file: Optional file path for logging output
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors: list[Processor] = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: Optional[str] = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a bound logger with optional initial context.

    Args:
        name: Logger name (optional)
        **initial_context: Initial context key-value pairs to bind

    Returns:
        A structlog bound logger instance
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


class LoggerMixin:
    """Mixin class that provides a logger property."""

    @property
    def logger(self) -> structlog.BoundLogger:
        """Get a logger bound with the class name."""
        return get_logger(self.__class__.__name__)


def log_status_change(old: str, new: str, **context: Any) -> None:
    """Log a scan status transition."""
    logger = get_logger("status")
    logger.info(
        f"Scan status: {old} -> {new}",
        old_status=old,
        new_status=new,
        action="status_change",
        **context,
    )


def log_module_error(module: str, error: BaseException, **context: Any) -> None:
    """Log an exception raised by an audit module at runtime."""
    logger = get_logger("modules")
    logger.error(
        f"Error in {module}: {error}",
        module=module,
        error=str(error),
        error_type=type(error).__name__,
        exc_info=error,
        **context,
    )


def log_issue(
    name: str,
    severity: str,
    url: str,
    **details: Any,
) -> None:
    """Log a confirmed issue."""
    logger = get_logger("issues")
    logger.warning(
        f"[{severity.upper()}] {name} at {url}",
        issue=name,
        severity=severity,
        url=url,
        **details,
    )
