"""
Pool and connection configuration.

PoolConfig is a validated pydantic model. Values come from keyword arguments
or from REDIS_* environment variables via PoolConfig.from_env().
"""
import os
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, model_validator

# PoolConfig field -> environment variable
ENV_VARS = {
    "host": "REDIS_HOST",
    "port": "REDIS_PORT",
    "db": "REDIS_DB",
    "max_connections": "REDIS_MAX_CONNECTIONS",
    "min_idle": "REDIS_MIN_IDLE",
    "acquire_timeout": "REDIS_ACQUIRE_TIMEOUT",
    "block_when_exhausted": "REDIS_BLOCK_WHEN_EXHAUSTED",
    "test_on_borrow": "REDIS_TEST_ON_BORROW",
    "socket_timeout": "REDIS_SOCKET_TIMEOUT",
    "socket_connect_timeout": "REDIS_SOCKET_CONNECT_TIMEOUT",
    "key_encoding": "REDIS_KEY_ENCODING",
}


class PoolConfig(BaseModel):
    """
    Settings for the connection pool and the Redis sessions it opens.

    Example:
        >>> config = PoolConfig(host="redis", max_connections=10)
        >>> config.acquire_timeout
        5.0
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field("localhost", description="Redis server host")
    port: int = Field(6379, ge=1, le=65535, description="Redis server port")
    db: int = Field(0, ge=0, description="Redis logical database index")
    max_connections: int = Field(
        20,
        ge=1,
        description="Upper bound on live connections (idle + borrowed)",
    )
    min_idle: int = Field(
        0,
        ge=0,
        description="Connections opened up front by initialize()",
    )
    acquire_timeout: float = Field(
        5.0,
        ge=0,
        description="Seconds acquire() waits for a free connection",
    )
    block_when_exhausted: bool = Field(
        True,
        description="Wait for a connection when exhausted instead of failing fast",
    )
    test_on_borrow: bool = Field(
        False,
        description="PING idle connections before handing them out",
    )
    socket_timeout: float = Field(5.0, gt=0, description="Socket read/write timeout")
    socket_connect_timeout: float = Field(5.0, gt=0, description="Socket connect timeout")
    key_encoding: str = Field("utf-8", description="Text encoding applied to keys")

    @model_validator(mode="after")
    def _check_min_idle(self) -> "PoolConfig":
        if self.min_idle > self.max_connections:
            raise ValueError("min_idle cannot exceed max_connections")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "PoolConfig":
        """
        Build configuration from REDIS_* environment variables.

        Unset variables fall back to the field defaults. Raw strings are
        coerced by pydantic, so "6380", "0.5" and "false" are accepted.

        Args:
            **overrides: Values that take precedence over the environment

        Returns:
            Validated PoolConfig

        Raises:
            pydantic.ValidationError: If a variable cannot be coerced
        """
        values: Dict[str, Any] = {
            field: os.environ[name]
            for field, name in ENV_VARS.items()
            if name in os.environ
        }
        values.update(overrides)
        return cls(**values)
