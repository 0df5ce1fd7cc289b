"""
Redis client initialization.
Provides the async Redis connection backing the aggregate cache.
"""

from typing import Optional

import redis.asyncio as aioredis

from shared_config import settings

# Async Redis client (for FastAPI)
async_redis: Optional[aioredis.Redis] = None


async def get_async_redis() -> aioredis.Redis:
    """Get or create async Redis client."""
    global async_redis
    if async_redis is None:
        async_redis = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=1.0,
            socket_connect_timeout=1.0,
        )
    return async_redis


async def close_async_redis() -> None:
    """Close the shared client on shutdown."""
    global async_redis
    if async_redis is not None:
        await async_redis.aclose()
        async_redis = None
