"""Asyncio Redis object cache with a bounded, failure-aware connection pool."""

from pooled_cache.cache import CacheManager, ConnectionPool
from pooled_cache.config import PoolConfig

__version__ = "1.0.0"

__all__ = ["CacheManager", "ConnectionPool", "PoolConfig", "__version__"]
