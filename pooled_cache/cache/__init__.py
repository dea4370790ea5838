"""Pooled Redis object cache.

This package provides:
- Bounded connection pooling with healthy/broken release (ConnectionPool)
- Exception classification for borrowed connections (classify_exception)
- Pluggable payload codecs (PickleCodec, JsonCodec)
- Cache operations with fail-soft results (CacheManager)
"""

from pooled_cache.cache.classification import ExceptionClass, classify_exception
from pooled_cache.cache.codec import Codec, JsonCodec, PickleCodec
from pooled_cache.cache.connection import (
    ConnectionState,
    PooledConnection,
    RedisConnectionFactory,
)
from pooled_cache.cache.exceptions import (
    CacheError,
    ConnectionCreationError,
    DoubleReleaseError,
    InvalidKeyError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
    SerializationError,
)
from pooled_cache.cache.keys import KeyCodec
from pooled_cache.cache.manager import CacheManager
from pooled_cache.cache.pool import ConnectionPool
from pooled_cache.cache.result import CacheResult, ResultStatus

__all__ = [
    # Pool
    "ConnectionPool",
    "PooledConnection",
    "ConnectionState",
    "RedisConnectionFactory",
    # Classification
    "ExceptionClass",
    "classify_exception",
    # Codecs
    "Codec",
    "PickleCodec",
    "JsonCodec",
    "KeyCodec",
    # Cache manager
    "CacheManager",
    "CacheResult",
    "ResultStatus",
    # Errors
    "CacheError",
    "PoolError",
    "PoolExhaustedError",
    "PoolClosedError",
    "ConnectionCreationError",
    "DoubleReleaseError",
    "SerializationError",
    "InvalidKeyError",
]
