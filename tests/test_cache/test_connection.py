"""Unit tests for PooledConnection and RedisConnectionFactory."""

from unittest.mock import AsyncMock, patch

import pytest

from pooled_cache.cache.connection import (
    ConnectionState,
    PooledConnection,
    RedisConnectionFactory,
)
from pooled_cache.config import PoolConfig


class TestPooledConnection:
    @pytest.fixture
    def mock_client(self):
        mock = AsyncMock()
        mock.get = AsyncMock(return_value=b"payload")
        mock.delete = AsyncMock(return_value=1)
        mock.keys = AsyncMock(return_value=[b"a"])
        mock.expire = AsyncMock(return_value=True)
        return mock

    def test_identity(self, mock_client):
        first = PooledConnection(mock_client)
        second = PooledConnection(mock_client)

        assert first.connection_id != second.connection_id
        assert first != second
        assert first.state is ConnectionState.IDLE
        assert f"id={first.connection_id}" in repr(first)

    @pytest.mark.asyncio
    async def test_commands_delegate_to_client(self, mock_client):
        connection = PooledConnection(mock_client)

        assert await connection.get(b"k") == b"payload"
        await connection.set(b"k", b"v", ttl=30)
        assert await connection.delete(b"k") == 1
        assert await connection.keys(b"*") == [b"a"]
        assert await connection.expire(b"k", 0) is True

        mock_client.get.assert_called_once_with(b"k")
        mock_client.set.assert_called_once_with(b"k", b"v", ex=30)
        mock_client.expire.assert_called_once_with(b"k", 0)

    @pytest.mark.asyncio
    async def test_close_logs_errors(self, mock_client):
        mock_client.aclose = AsyncMock(side_effect=OSError("already closed"))
        connection = PooledConnection(mock_client)

        await connection.close()

        mock_client.aclose.assert_called_once()


class TestRedisConnectionFactory:
    @pytest.mark.asyncio
    async def test_create_opens_single_connection_client(self):
        config = PoolConfig(host="redis.local", port=6380, db=2)

        with patch("pooled_cache.cache.connection.redis.Redis") as redis_cls:
            client = redis_cls.return_value
            client.ping = AsyncMock(return_value=True)

            connection = await RedisConnectionFactory(config).create()

        assert connection.client is client
        kwargs = redis_cls.call_args.kwargs
        assert kwargs["host"] == "redis.local"
        assert kwargs["port"] == 6380
        assert kwargs["db"] == 2
        assert kwargs["single_connection_client"] is True
        assert kwargs["decode_responses"] is False

    @pytest.mark.asyncio
    async def test_create_closes_client_when_ping_fails(self):
        with patch("pooled_cache.cache.connection.redis.Redis") as redis_cls:
            client = redis_cls.return_value
            client.ping = AsyncMock(side_effect=OSError("refused"))
            client.aclose = AsyncMock()

            with pytest.raises(OSError):
                await RedisConnectionFactory(PoolConfig()).create()

        client.aclose.assert_called_once()
