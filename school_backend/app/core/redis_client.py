"""
Redis client initialization.

Only used when rate-limit counters are shared through Redis
(RATE_LIMIT_STORAGE=redis). The client is created lazily so the default
in-memory setup never opens a connection.
"""

import redis.asyncio as redis
from school_backend.app.core.config import settings


def create_redis_client() -> redis.Redis:
    """Create an async Redis client from settings."""
    return redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )


async def ping_redis(client: redis.Redis) -> bool:
    """
    Test Redis connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return await client.ping()
    except redis.RedisError:
        return False
