"""Shared fixtures: an in-memory stand-in for Redis behind the pool's factory."""

from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional

import pytest

from pooled_cache.cache.connection import PooledConnection
from pooled_cache.cache.manager import CacheManager
from pooled_cache.cache.pool import ConnectionPool
from pooled_cache.config import PoolConfig


class FailureInjector:
    """Queue exceptions to be raised by the next call of a given command."""

    def __init__(self) -> None:
        self._pending: Dict[str, Deque[BaseException]] = defaultdict(deque)
        self.calls: List[str] = []

    def fail_next(self, command: str, exc: BaseException, times: int = 1) -> None:
        for _ in range(times):
            self._pending[command].append(exc)

    def check(self, command: str) -> None:
        self.calls.append(command)
        if self._pending[command]:
            raise self._pending[command].popleft()


class FakeRedisClient:
    """Single-connection client working on a dict shared by all connections."""

    def __init__(self, store: Dict[bytes, bytes], ttls: Dict[bytes, Optional[int]], failures: FailureInjector) -> None:
        self.store = store
        self.ttls = ttls
        self.failures = failures
        self.closed = False

    async def get(self, key: bytes) -> Optional[bytes]:
        self.failures.check("get")
        return self.store.get(key)

    async def set(self, key: bytes, value: bytes, ex: Optional[int] = None) -> bool:
        self.failures.check("set")
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key: bytes) -> int:
        self.failures.check("delete")
        return 1 if self.store.pop(key, None) is not None else 0

    async def keys(self, pattern: bytes) -> List[bytes]:
        self.failures.check("keys")
        assert pattern == b"*"
        return list(self.store)

    async def expire(self, key: bytes, seconds: int) -> bool:
        self.failures.check("expire")
        if key not in self.store:
            return False
        if seconds <= 0:
            del self.store[key]
        else:
            self.ttls[key] = seconds
        return True

    async def info(self) -> Dict[str, Any]:
        self.failures.check("info")
        return {
            "redis_version": "7.2.0",
            "connected_clients": 1,
            "db0": {"keys": len(self.store), "expires": 0},
        }

    async def ping(self) -> bool:
        self.failures.check("ping")
        return True

    async def aclose(self) -> None:
        self.closed = True


class FakeConnectionFactory:
    """Connection factory handing out PooledConnections over FakeRedisClient."""

    def __init__(self) -> None:
        self.store: Dict[bytes, bytes] = {}
        self.ttls: Dict[bytes, Optional[int]] = {}
        self.failures = FailureInjector()
        self.created: List[PooledConnection] = []
        self.create_error: Optional[Exception] = None

    async def create(self) -> PooledConnection:
        if self.create_error is not None:
            raise self.create_error
        connection = PooledConnection(FakeRedisClient(self.store, self.ttls, self.failures))
        self.created.append(connection)
        return connection


@pytest.fixture
def factory():
    """Fake store and the factory opening connections to it."""
    return FakeConnectionFactory()


@pytest.fixture
def pool_config():
    """Small pool with a short acquire timeout."""
    return PoolConfig(max_connections=3, acquire_timeout=0.2)


@pytest.fixture
def pool(pool_config, factory):
    """ConnectionPool backed by the fake factory."""
    return ConnectionPool(pool_config, factory=factory)


@pytest.fixture
def manager(pool):
    """CacheManager with the default pickle codec."""
    return CacheManager(pool)
