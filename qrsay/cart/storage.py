"""Persistent store for cart data.

The cart engine only needs ``get(key)`` and ``set(key, value)``; anything
with that shape can back it. ``RedisCartStore`` is the production adapter.
"""
from typing import Optional, Protocol

from qrsay.db import get_redis, RedisKeys, TTL
from qrsay.logging import get_logger

logger = get_logger(__name__)


class PersistentStore(Protocol):
    """Durable key/value storage contract."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> bool:
        ...


class RedisCartStore:
    """Upstash Redis adapter for the cart store contract."""

    def __init__(self, redis=None, ttl: int = TTL.CART):
        self._redis = redis
        self.ttl = ttl

    @property
    def redis(self):
        """Get Redis client (lazy initialization)."""
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        data = await self.redis.get(key)
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return str(data)

    async def set(self, key: str, value: str) -> bool:
        result = await self.redis.set(key, value, ex=self.ttl)
        # Upstash returns True/"OK" on success, None when the write was refused
        return bool(result)


__all__ = ["PersistentStore", "RedisCartStore", "RedisKeys", "TTL"]
