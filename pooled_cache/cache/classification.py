"""Exception classification for borrowed connections.

Decides whether an exception raised while a connection was borrowed leaves
that connection in an unknown protocol state (TRANSPORT_FATAL, discard it)
or not (RECOVERABLE, return it to the pool).
"""

import asyncio
from enum import Enum

from redis import exceptions as redis_exceptions

from pooled_cache.cache.exceptions import SerializationError


class ExceptionClass(Enum):
    """Two-valued verdict on connection health after a failure."""

    TRANSPORT_FATAL = "transport_fatal"
    RECOVERABLE = "recoverable"


# redis.exceptions.TimeoutError and ConnectionError do not derive from the
# builtins of the same name, so both families are listed.
TRANSPORT_FATAL_EXCEPTIONS = (
    redis_exceptions.ConnectionError,
    redis_exceptions.TimeoutError,
    redis_exceptions.InvalidResponse,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
    SerializationError,
    asyncio.CancelledError,
)


def classify_exception(exc: BaseException) -> ExceptionClass:
    """
    Classify an exception raised during use of a borrowed connection.

    Args:
        exc: The exception raised between acquire and release

    Returns:
        ExceptionClass.TRANSPORT_FATAL for transport, protocol, timeout,
        serialization and cancellation failures; RECOVERABLE otherwise.

    Example:
        >>> classify_exception(redis.exceptions.ResponseError("WRONGTYPE"))
        <ExceptionClass.RECOVERABLE: 'recoverable'>
    """
    if isinstance(exc, TRANSPORT_FATAL_EXCEPTIONS):
        return ExceptionClass.TRANSPORT_FATAL
    return ExceptionClass.RECOVERABLE
