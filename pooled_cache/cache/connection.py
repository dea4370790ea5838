"""Pooled Redis connection handles and the factory that opens them.

Each PooledConnection owns one dedicated Redis session (a single-connection
redis.asyncio client), so a borrower has the socket to itself for the whole
borrow cycle.
"""

import itertools
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import redis.asyncio as redis
import structlog

from pooled_cache.config import PoolConfig

logger = structlog.get_logger(__name__)

_connection_ids = itertools.count(1)


class ConnectionState(Enum):
    IDLE = "idle"
    BORROWED = "borrowed"
    DESTROYED = "destroyed"


class PooledConnection:
    """
    Handle to one live session with the Redis store.

    The pool owns the handle while it is idle and hands it to exactly one
    borrower at a time. Store commands take and return raw bytes.

    Attributes:
        connection_id: Process-unique identity, used for logging and equality
        state: Current lifecycle state, only changed by the owning pool
        borrow_count: Number of times the handle has been borrowed
    """

    def __init__(self, client: Any) -> None:
        self.client = client
        self.connection_id = next(_connection_ids)
        self.state = ConnectionState.IDLE
        self.created_at = datetime.now(timezone.utc)
        self.borrow_count = 0
        self.pool: Optional[Any] = None

    def __repr__(self) -> str:
        return f"<PooledConnection id={self.connection_id} state={self.state.value}>"

    async def get(self, key: bytes) -> Optional[bytes]:
        return await self.client.get(key)

    async def set(self, key: bytes, value: bytes, ttl: Optional[int] = None) -> None:
        await self.client.set(key, value, ex=ttl)

    async def delete(self, key: bytes) -> int:
        return await self.client.delete(key)

    async def keys(self, pattern: bytes) -> List[bytes]:
        return await self.client.keys(pattern)

    async def expire(self, key: bytes, seconds: int) -> bool:
        return await self.client.expire(key, seconds)

    async def info(self) -> Dict[str, Any]:
        return await self.client.info()

    async def ping(self) -> bool:
        return await self.client.ping()

    async def close(self) -> None:
        """Close the underlying session. Errors are logged, never raised."""
        try:
            await self.client.aclose()
        except Exception as e:
            logger.warning(
                "connection_close_error",
                connection_id=self.connection_id,
                error=str(e),
                error_type=type(e).__name__,
            )


class RedisConnectionFactory:
    """
    Open new PooledConnection handles from a PoolConfig.

    Example:
        >>> factory = RedisConnectionFactory(PoolConfig(host="localhost"))
        >>> conn = await factory.create()
        >>> await conn.ping()
        True
    """

    def __init__(self, config: PoolConfig) -> None:
        self.config = config

    async def create(self) -> PooledConnection:
        """
        Open one dedicated Redis session.

        The session is verified with PING so that an unreachable store fails
        here rather than on the borrower's first command.
        """
        client = redis.Redis(
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
            socket_timeout=self.config.socket_timeout,
            socket_connect_timeout=self.config.socket_connect_timeout,
            decode_responses=False,
            single_connection_client=True,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise

        connection = PooledConnection(client)
        logger.debug(
            "redis_connection_opened",
            connection_id=connection.connection_id,
            host=self.config.host,
            port=self.config.port,
            db=self.config.db,
        )
        return connection
