"""
Database Module - Redis Client

Provides a singleton async Upstash Redis client used as the durable
key/value store behind the cart. Carts survive app restarts by being
written here after every mutation and read once at startup.
"""

import os
from typing import Optional

from upstash_redis.asyncio import Redis as AsyncRedis


# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")


_redis_client: Optional[AsyncRedis] = None


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Uses standard Upstash env var names:
    - UPSTASH_REDIS_REST_URL
    - UPSTASH_REDIS_REST_TOKEN
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class RedisKeys:
    """Redis key prefixes for cart data."""

    CART = "cart:"  # cart:{owner_id}:items / cart:{owner_id}:state

    @staticmethod
    def cart_items_key(owner_id: str) -> str:
        return f"{RedisKeys.CART}{owner_id}:items"

    @staticmethod
    def cart_state_key(owner_id: str) -> str:
        return f"{RedisKeys.CART}{owner_id}:state"


class TTL:
    """Time-to-live constants for Redis keys (seconds)."""

    CART = int(os.environ.get("CART_TTL_SECONDS", str(7 * 86400)))  # 7 days
