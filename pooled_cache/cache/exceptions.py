"""
Custom exceptions for the pooled Redis cache.

Pool-level errors (exhaustion, shutdown) are raised to callers. Errors that
happen while a borrowed connection is in use are classified and converted to
fail-soft results by the cache manager.
"""

from typing import Any, Dict, Optional


class CacheError(Exception):
    """
    Base exception for all cache and pool errors.

    Attributes:
        message: Error description
        details: Structured context, safe to log
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PoolError(CacheError):
    """Base class for errors raised by the connection pool itself."""


class PoolExhaustedError(PoolError):
    """
    Raised when no connection becomes available before the acquire timeout.

    The pool is at max_connections and every connection is borrowed.

    Example:
        >>> raise PoolExhaustedError(max_connections=20, timeout_seconds=5.0)
    """

    def __init__(
        self,
        max_connections: int,
        timeout_seconds: float,
        message: str = "Connection pool exhausted",
    ) -> None:
        self.max_connections = max_connections
        self.timeout_seconds = timeout_seconds
        super().__init__(
            message,
            details={
                "max_connections": max_connections,
                "timeout_seconds": timeout_seconds,
            },
        )

    def __str__(self) -> str:
        """Return formatted error message with pool limits."""
        return (
            f"{self.message} (max_connections={self.max_connections}, "
            f"waited {self.timeout_seconds}s)"
        )


class PoolClosedError(PoolError):
    """Raised when acquiring from a pool that has been closed."""

    def __init__(self, message: str = "Connection pool is closed") -> None:
        super().__init__(message)


class ConnectionCreationError(PoolError):
    """
    Raised when the pool cannot open a new session to the store.

    The slot reserved for the new connection is given back before raising,
    so the pool's live count is unchanged.
    """

    def __init__(
        self,
        host: str,
        port: int,
        original_error: Optional[BaseException] = None,
        message: str = "Failed to open Redis connection",
    ) -> None:
        self.host = host
        self.port = port
        details: Dict[str, Any] = {"host": host, "port": port}
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__
        super().__init__(f"{message} to {host}:{port}", details=details)
        if original_error is not None:
            self.__cause__ = original_error


class DoubleReleaseError(PoolError):
    """
    Raised when releasing a connection that is not currently borrowed.

    This always indicates a bug in the borrowing code: the connection was
    already returned, already destroyed, or belongs to another pool.
    """

    def __init__(self, connection_id: int, state: str) -> None:
        self.connection_id = connection_id
        self.state = state
        super().__init__(
            f"Connection {connection_id} released while {state}",
            details={"connection_id": connection_id, "state": state},
        )


class SerializationError(CacheError):
    """
    Raised when the codec cannot serialize or deserialize a payload.

    Treated as transport-fatal: the failure happens on the borrowed
    connection's data path, so the connection is discarded.
    """

    def __init__(
        self,
        operation: str,
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.operation = operation
        details: Dict[str, Any] = {"operation": operation}
        if original_error is not None:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__
        super().__init__(f"Payload {operation} failed", details=details)
        if original_error is not None:
            self.__cause__ = original_error


class InvalidKeyError(CacheError):
    """Raised when a cache key is empty or not a string."""

    def __init__(self, key: Any) -> None:
        self.key = key
        super().__init__(
            f"Invalid cache key: {key!r}",
            details={"key_type": type(key).__name__},
        )
