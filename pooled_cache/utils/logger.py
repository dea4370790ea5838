"""
Structured logging configuration using structlog.

JSON output in production, colored console output when
ENVIRONMENT=development.
"""
import logging
import os
import sys
from typing import Any

import structlog


def setup_logging(level: str = "INFO", json_logs: bool | None = None) -> None:
    """
    Configure structlog for the cache and pool events.

    Pool and cache modules log through structlog.get_logger(__name__), so
    this only decides level and rendering; call it once at process start,
    or pass log_level to CacheManager.from_config().

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines. Defaults to True unless
            ENVIRONMENT=development, which selects the console renderer.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if json_logs is None:
        json_logs = os.getenv("ENVIRONMENT", "production") != "development"

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_logs:
        # exceptions from cache_*_error events end up as a string field
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("cache_get", key="user:1")
    """
    return structlog.get_logger(name)


def log_cache_operation(
    operation: str,
    duration_ms: float,
    status: str,
    error: str | None = None,
    **extra: Any,
) -> None:
    """
    Log one cache operation's outcome in structured format.

    Args:
        operation: Cache operation name (get, put, list_keys, ...)
        duration_ms: Time spent in the borrow/use/release cycle
        status: Result status (ok, not_found, failed)
        error: Error type name if the operation failed
        **extra: Additional context to log
    """
    logger = get_logger("cache_operation")

    log_data = {
        "operation": operation,
        "duration_ms": round(duration_ms, 2),
        "status": status,
        "error": error,
        **extra,
    }

    if error:
        logger.warning("cache_operation_failed", **log_data)
    else:
        logger.debug("cache_operation_completed", **log_data)
