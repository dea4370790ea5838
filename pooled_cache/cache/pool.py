"""
Bounded asyncio connection pool with healthy/broken release.

Connections are created lazily up to max_connections. A borrower returns a
connection with release_healthy() when it is safe to reuse, or
release_broken() when its protocol state is unknown; broken connections are
closed and their slot is freed for a replacement.

Prefer lease(), which guarantees exactly one release on every exit path.
"""

import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Deque, Dict, List, Optional

import structlog

from pooled_cache.cache.classification import ExceptionClass, classify_exception
from pooled_cache.cache.connection import (
    ConnectionState,
    PooledConnection,
    RedisConnectionFactory,
)
from pooled_cache.cache.exceptions import (
    ConnectionCreationError,
    DoubleReleaseError,
    PoolClosedError,
    PoolExhaustedError,
)
from pooled_cache.config import PoolConfig

logger = structlog.get_logger(__name__)


class ConnectionPool:
    """
    Pool of PooledConnection handles shared by concurrent tasks.

    The idle set and the live count are only mutated while holding a single
    asyncio.Condition. A connection is in exactly one of three places: the
    idle deque, the borrowed map, or destroyed.

    Attributes:
        config: Pool settings (limits, timeouts, borrow validation)
        factory: Object with an async create() returning a PooledConnection

    Example:
        >>> pool = ConnectionPool(PoolConfig(max_connections=4))
        >>> async with pool.lease() as conn:
        ...     await conn.get(b"key")
    """

    def __init__(
        self,
        config: Optional[PoolConfig] = None,
        factory: Optional[Any] = None,
    ) -> None:
        self.config = config or PoolConfig()
        self.factory = factory or RedisConnectionFactory(self.config)

        self._condition = asyncio.Condition()
        self._idle: Deque[PooledConnection] = deque()
        self._borrowed: Dict[int, PooledConnection] = {}
        # idle + borrowed + connections being opened
        self._live = 0
        self._waiting = 0
        self._created = 0
        self._destroyed = 0
        self._closed = False

        logger.info(
            "connection_pool_created",
            max_connections=self.config.max_connections,
            acquire_timeout=self.config.acquire_timeout,
            host=self.config.host,
            port=self.config.port,
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def live_count(self) -> int:
        return self._live

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def borrowed_count(self) -> int:
        return len(self._borrowed)

    def is_idle(self, connection: PooledConnection) -> bool:
        return any(c is connection for c in self._idle)

    async def initialize(self) -> None:
        """
        Open min_idle connections up front and verify the store is reachable.

        When min_idle is 0 one connection is still opened and kept idle, so
        misconfiguration surfaces at startup.

        Raises:
            ConnectionCreationError: If the store cannot be reached
            PoolClosedError: If the pool was already closed
        """
        target = max(self.config.min_idle, 1)
        opened: List[PooledConnection] = []
        try:
            for _ in range(target):
                opened.append(await self.acquire())
        finally:
            for connection in opened:
                await self.release_healthy(connection)

        logger.info(
            "connection_pool_initialized",
            idle=self.idle_count,
            max_connections=self.config.max_connections,
        )

    async def acquire(self) -> PooledConnection:
        """
        Borrow a connection, creating one if the pool is below its maximum.

        Waits up to acquire_timeout seconds when every connection is
        borrowed, unless block_when_exhausted is False.

        Returns:
            A connection owned exclusively by the caller until released

        Raises:
            PoolExhaustedError: No connection became available in time
            PoolClosedError: The pool is closed
            ConnectionCreationError: A new connection could not be opened
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.acquire_timeout

        while True:
            connection = await self._take_or_reserve(deadline)
            if connection is None:
                return await self._open_reserved()

            if self.config.test_on_borrow:
                try:
                    valid = await self._validate(connection)
                except BaseException:
                    # cancelled mid-PING, the caller never receives the connection
                    await self.release_broken(connection)
                    raise
                if not valid:
                    await self.release_broken(connection)
                    continue

            logger.debug(
                "connection_acquired",
                connection_id=connection.connection_id,
                borrow_count=connection.borrow_count,
            )
            return connection

    async def release_healthy(self, connection: PooledConnection) -> None:
        """
        Return a borrowed connection to the idle set.

        If the pool has been closed meanwhile the connection is closed
        instead.

        Raises:
            DoubleReleaseError: If the connection is not currently borrowed
        """
        discard = False
        async with self._condition:
            self._check_borrowed(connection)
            del self._borrowed[connection.connection_id]

            if self._closed:
                connection.state = ConnectionState.DESTROYED
                self._live -= 1
                self._destroyed += 1
                discard = True
            else:
                connection.state = ConnectionState.IDLE
                self._idle.append(connection)
                self._condition.notify()

        if discard:
            await connection.close()

        logger.debug(
            "connection_released_healthy",
            connection_id=connection.connection_id,
            discarded=discard,
        )

    async def release_broken(self, connection: PooledConnection) -> None:
        """
        Destroy a borrowed connection whose protocol state is unknown.

        The connection never re-enters the idle set and its slot becomes
        available for a replacement.

        Raises:
            DoubleReleaseError: If the connection is not currently borrowed
        """
        async with self._condition:
            self._check_borrowed(connection)
            del self._borrowed[connection.connection_id]
            connection.state = ConnectionState.DESTROYED
            self._live -= 1
            self._destroyed += 1
            self._condition.notify()

        await connection.close()

        logger.warning(
            "connection_released_broken",
            connection_id=connection.connection_id,
            live=self._live,
        )

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[PooledConnection]:
        """
        Borrow a connection for the duration of an async with block.

        On normal exit the connection is released healthy. If the block
        raises, the exception is classified: transport-fatal errors release
        the connection broken, anything else releases it healthy. The
        exception is then re-raised. Acquisition errors propagate before any
        connection exists.
        """
        connection = await self.acquire()
        try:
            yield connection
        except BaseException as exc:
            if classify_exception(exc) is ExceptionClass.TRANSPORT_FATAL:
                await self.release_broken(connection)
            else:
                await self.release_healthy(connection)
            raise
        await self.release_healthy(connection)

    async def close(self) -> None:
        """
        Close all idle connections and reject further acquires.

        Tasks waiting in acquire() fail with PoolClosedError. Connections
        still borrowed are closed when they are released. Safe to call more
        than once.
        """
        async with self._condition:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            for connection in idle:
                connection.state = ConnectionState.DESTROYED
            self._live -= len(idle)
            self._destroyed += len(idle)
            self._condition.notify_all()

        for connection in idle:
            await connection.close()

        logger.info(
            "connection_pool_closed",
            closed_idle=len(idle),
            still_borrowed=self.borrowed_count,
        )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get current pool statistics.

        Example:
            >>> pool.get_stats()
            {'live': 3, 'idle': 2, 'borrowed': 1, 'waiting': 0, ...}
        """
        return {
            "live": self._live,
            "idle": len(self._idle),
            "borrowed": len(self._borrowed),
            "waiting": self._waiting,
            "created": self._created,
            "destroyed": self._destroyed,
            "max_connections": self.config.max_connections,
            "closed": self._closed,
        }

    async def __aenter__(self) -> "ConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _take_or_reserve(self, deadline: float) -> Optional[PooledConnection]:
        """
        Pop an idle connection, or reserve a slot for a new one.

        Returns the borrowed connection, or None when a slot was reserved and
        the caller must open the connection.
        """
        async with self._condition:
            if not self._can_proceed():
                if not self.config.block_when_exhausted:
                    self._raise_exhausted(0.0)
                await self._wait(deadline)

            if self._closed:
                raise PoolClosedError()

            if self._idle:
                connection = self._idle.pop()
                self._checkout(connection)
                return connection

            self._live += 1
            return None

    async def _wait(self, deadline: float) -> None:
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            self._raise_exhausted(self.config.acquire_timeout)

        self._waiting += 1
        try:
            await asyncio.wait_for(
                self._condition.wait_for(self._can_proceed), timeout=remaining
            )
        except asyncio.TimeoutError:
            self._raise_exhausted(self.config.acquire_timeout)
        finally:
            self._waiting -= 1

    def _can_proceed(self) -> bool:
        return (
            self._closed
            or bool(self._idle)
            or self._live < self.config.max_connections
        )

    def _raise_exhausted(self, waited: float) -> None:
        logger.warning(
            "connection_pool_exhausted",
            max_connections=self.config.max_connections,
            borrowed=len(self._borrowed),
            waited_seconds=waited,
        )
        raise PoolExhaustedError(self.config.max_connections, waited)

    async def _open_reserved(self) -> PooledConnection:
        """Open a connection into a slot already counted in _live."""
        try:
            connection = await self.factory.create()
        except asyncio.CancelledError:
            await self._give_back_slot()
            raise
        except Exception as e:
            await self._give_back_slot()
            logger.error(
                "connection_open_failed",
                host=self.config.host,
                port=self.config.port,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ConnectionCreationError(self.config.host, self.config.port, e) from e

        try:
            async with self._condition:
                if self._closed:
                    self._live -= 1
                    closed = True
                else:
                    connection.pool = self
                    self._created += 1
                    self._checkout(connection)
                    closed = False
        except BaseException:
            # cancelled while waiting for the lock, slot still reserved
            await connection.close()
            await self._give_back_slot()
            raise

        if closed:
            await connection.close()
            raise PoolClosedError()

        logger.debug(
            "connection_created",
            connection_id=connection.connection_id,
            live=self._live,
        )
        return connection

    async def _give_back_slot(self) -> None:
        async with self._condition:
            self._live -= 1
            self._condition.notify()

    async def _validate(self, connection: PooledConnection) -> bool:
        try:
            return bool(await connection.ping())
        except Exception as e:
            logger.warning(
                "connection_validation_failed",
                connection_id=connection.connection_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    def _checkout(self, connection: PooledConnection) -> None:
        connection.state = ConnectionState.BORROWED
        connection.borrow_count += 1
        self._borrowed[connection.connection_id] = connection

    def _check_borrowed(self, connection: PooledConnection) -> None:
        if (
            connection.pool is not self
            or connection.state is not ConnectionState.BORROWED
            or self._borrowed.get(connection.connection_id) is not connection
        ):
            logger.error(
                "connection_double_release",
                connection_id=connection.connection_id,
                state=connection.state.value,
            )
            raise DoubleReleaseError(connection.connection_id, connection.state.value)
