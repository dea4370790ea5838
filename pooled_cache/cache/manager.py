"""Cache manager for pooled Redis operations with fail-soft error handling.

Every operation borrows one connection through ConnectionPool.lease(), makes
one remote call around a codec round-trip, and releases the connection
healthy or broken depending on how the call ended.

Two layers are exposed:
- a result API (fetch, store, delete, scan_keys, expire_keys, server_info)
  returning CacheResult, which tells "not found" apart from "failed";
- the fail-soft API (get, put, remove, list_keys, expire_all, info) that
  collapses failures to None.

Only pool exhaustion and pool shutdown are raised to callers.
"""

import time
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, List, Optional

import structlog

from pooled_cache.cache.classification import classify_exception
from pooled_cache.cache.codec import Codec, PickleCodec
from pooled_cache.cache.connection import PooledConnection
from pooled_cache.cache.exceptions import ConnectionCreationError, PoolError
from pooled_cache.cache.keys import WILDCARD_ALL, KeyCodec
from pooled_cache.cache.pool import ConnectionPool
from pooled_cache.cache.result import CacheResult
from pooled_cache.config import PoolConfig
from pooled_cache.utils.logger import log_cache_operation, setup_logging

logger = structlog.get_logger(__name__)

RemoteCall = Callable[[PooledConnection], Awaitable[CacheResult]]


class CacheManager:
    """
    Object cache on top of a shared ConnectionPool.

    Values are stored as opaque bytes produced by the codec; lists, maps and
    arbitrary objects share the same storage path. Nothing is cached
    locally, every call round-trips to Redis.

    Attributes:
        pool: Connection pool shared with other users of the same store
        codec: Payload serializer (PickleCodec by default)
        keys: Key validator/encoder

    Example:
        >>> async with CacheManager.from_config(PoolConfig()) as manager:
        ...     await manager.put("greeting", ["hello", "world"])
        ...     await manager.get("greeting")
        ['hello', 'world']
    """

    def __init__(
        self,
        pool: ConnectionPool,
        codec: Optional[Codec] = None,
        key_codec: Optional[KeyCodec] = None,
    ) -> None:
        self.pool = pool
        self.codec = codec or PickleCodec()
        self.keys = key_codec or KeyCodec(pool.config.key_encoding)

    @classmethod
    def from_config(
        cls,
        config: Optional[PoolConfig] = None,
        codec: Optional[Codec] = None,
        log_level: Optional[str] = None,
    ) -> "CacheManager":
        """
        Build a manager and its pool.

        Args:
            config: Pool settings; read from REDIS_* env vars when omitted
            codec: Payload codec, PickleCodec by default
            log_level: When given, configure structlog at this level first
        """
        if log_level is not None:
            setup_logging(log_level)
        return cls(ConnectionPool(config or PoolConfig.from_env()), codec=codec)

    async def initialize(self) -> bool:
        """
        Warm up the pool.

        Returns:
            True if the store is reachable. On failure the error is logged
            and False is returned; the cache stays usable and degrades to
            misses until the store comes back.
        """
        try:
            await self.pool.initialize()
            return True
        except ConnectionCreationError as e:
            logger.error(
                "cache_initialization_failed",
                error=str(e),
                error_type=type(e).__name__,
                **e.details,
            )
            return False

    async def close(self) -> None:
        await self.pool.close()

    async def __aenter__(self) -> "CacheManager":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def ping(self) -> bool:
        """Check Redis health over a pooled connection."""

        async def call(connection: PooledConnection) -> CacheResult[bool]:
            return CacheResult.ok(bool(await connection.ping()))

        result = await self._execute("ping", call)
        return bool(result.unwrap_or_none())

    # Result API

    async def fetch(self, key: str) -> CacheResult[Any]:
        """
        Read and deserialize the value stored at key.

        Returns:
            OK with the value, NOT_FOUND if the key is absent, FAILED on error
        """

        async def call(connection: PooledConnection) -> CacheResult[Any]:
            raw = await connection.get(self.keys.encode(key))
            if raw is None:
                return CacheResult.not_found()
            return CacheResult.ok(self.codec.deserialize(raw))

        return await self._execute("get", call, key=key)

    async def store(self, key: str, value: Any, ttl: Optional[int] = None) -> CacheResult[None]:
        """
        Serialize value and store it at key, optionally expiring after ttl seconds.
        """

        async def call(connection: PooledConnection) -> CacheResult[None]:
            await connection.set(self.keys.encode(key), self.codec.serialize(value), ttl)
            return CacheResult.ok()

        return await self._execute("put", call, key=key)

    async def delete(self, key: str) -> CacheResult[bool]:
        """Delete key. NOT_FOUND when nothing was stored there."""

        async def call(connection: PooledConnection) -> CacheResult[bool]:
            deleted = await connection.delete(self.keys.encode(key))
            if not deleted:
                return CacheResult.not_found()
            return CacheResult.ok(True)

        return await self._execute("remove", call, key=key)

    async def scan_keys(self, pattern: str = WILDCARD_ALL) -> CacheResult[List[str]]:
        """
        Enumerate keys matching pattern, in the order Redis returns them.

        An empty store gives OK with an empty list.
        """

        async def call(connection: PooledConnection) -> CacheResult[List[str]]:
            raw_keys = await connection.keys(self.keys.pattern(pattern))
            return CacheResult.ok([self.keys.decode(raw) for raw in raw_keys])

        return await self._execute("list_keys", call)

    async def expire_keys(self) -> CacheResult[int]:
        """
        Expire every key immediately (TTL 0) so Redis deletes them.

        Keys are enumerated on one borrowed connection and expired on a
        second one; a failure in the expire loop is classified against the
        second connection.

        Returns:
            OK with the number of keys expired, or the enumeration failure
        """
        listed = await self.scan_keys()
        if not listed.is_ok:
            logger.warning("cache_expire_all_skipped", reason="list_keys_failed")
            return CacheResult.failed(listed.error, listed.error_class)

        keys = listed.value or []

        async def call(connection: PooledConnection) -> CacheResult[int]:
            expired = 0
            for key in keys:
                if await connection.expire(self.keys.encode(key), 0):
                    expired += 1
            return CacheResult.ok(expired)

        return await self._execute("expire_all", call, key_count=len(keys))

    async def server_info(self) -> CacheResult[str]:
        """Read Redis INFO and render it as ``field:value`` lines."""

        async def call(connection: PooledConnection) -> CacheResult[str]:
            logger.info("cache_info_requested", connection_id=connection.connection_id)
            return CacheResult.ok(_render_info(await connection.info()))

        return await self._execute("info", call)

    # Fail-soft API

    async def info(self) -> Optional[str]:
        return (await self.server_info()).unwrap_or_none()

    async def get(self, key: str) -> Any:
        """
        Retrieve cached value by key.

        Returns:
            The cached object, or None if it is absent or could not be read

        Example:
            >>> await manager.get("user:42")
            {'name': 'Ada'}
        """
        return (await self.fetch(key)).unwrap_or_none()

    async def put(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store value at key. Failures are logged, never raised."""
        await self.store(key, value, ttl)

    async def remove(self, key: str) -> None:
        await self.delete(key)

    async def list_keys(self) -> Optional[List[str]]:
        """
        List every key in the store.

        Returns:
            Keys in store order, an empty list for an empty store, or None
            when the keys could not be enumerated
        """
        return (await self.scan_keys()).unwrap_or_none()

    async def expire_all(self) -> None:
        await self.expire_keys()

    # Typed wrappers over the same storage

    async def get_list(self, key: str) -> Optional[list]:
        return await self._get_typed(key, list, "get_list")

    async def put_list(self, key: str, value: list) -> None:
        await self._put_typed(key, value, list, "put_list")

    async def remove_list(self, key: str) -> None:
        await self.remove(key)

    async def get_map(self, key: str) -> Optional[Mapping[Any, Any]]:
        return await self._get_typed(key, Mapping, "get_map")

    async def put_map(self, key: str, value: Mapping[Any, Any]) -> None:
        await self._put_typed(key, value, Mapping, "put_map")

    async def remove_map(self, key: str) -> None:
        await self.remove(key)

    async def get_object(self, key: str) -> Any:
        return await self.get(key)

    async def put_object(self, key: str, value: Any) -> None:
        await self.put(key, value)

    async def remove_object(self, key: str) -> None:
        await self.remove(key)

    async def _get_typed(self, key: str, expected: type, operation: str) -> Any:
        async def call(connection: PooledConnection) -> CacheResult[Any]:
            raw = await connection.get(self.keys.encode(key))
            if raw is None:
                return CacheResult.not_found()
            value = self.codec.deserialize(raw)
            if not isinstance(value, expected):
                raise TypeError(
                    f"Cached value is {type(value).__name__}, expected {expected.__name__}"
                )
            return CacheResult.ok(value)

        return (await self._execute(operation, call, key=key)).unwrap_or_none()

    async def _put_typed(self, key: str, value: Any, expected: type, operation: str) -> None:
        async def call(connection: PooledConnection) -> CacheResult[None]:
            if not isinstance(value, expected):
                raise TypeError(
                    f"Value is {type(value).__name__}, expected {expected.__name__}"
                )
            await connection.set(self.keys.encode(key), self.codec.serialize(value))
            return CacheResult.ok()

        await self._execute(operation, call, key=key)

    async def _execute(
        self,
        operation: str,
        call: RemoteCall,
        key: Optional[str] = None,
        **context: Any,
    ) -> CacheResult:
        """
        Run one remote call inside a pool lease and convert errors to results.

        The lease classifies the exception and releases the connection
        exactly once; this method only logs and builds the FAILED result.
        PoolExhaustedError and PoolClosedError are re-raised.
        """
        started = time.perf_counter()
        try:
            async with self.pool.lease() as connection:
                result = await call(connection)

        except ConnectionCreationError as e:
            # No connection was borrowed, nothing to classify
            logger.error(
                f"cache_{operation}_unavailable",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            result = CacheResult.failed(e)

        except PoolError:
            raise

        except Exception as e:
            error_class = classify_exception(e)
            logger.error(
                f"cache_{operation}_error",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
                error_class=error_class.value,
            )
            result = CacheResult.failed(e, error_class)

        log_cache_operation(
            operation,
            (time.perf_counter() - started) * 1000,
            result.status.value,
            error=type(result.error).__name__ if result.error else None,
            key=key,
            **context,
        )
        return result


def _render_info(info: Mapping[str, Any]) -> str:
    lines = []
    for field, value in info.items():
        if isinstance(value, Mapping):
            value = ",".join(f"{k}={v}" for k, v in value.items())
        lines.append(f"{field}:{value}")
    return "\r\n".join(lines)
