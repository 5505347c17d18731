"""
Redis client for distributed seat-map locks.
Separated from business logic for clean architecture.
"""

from typing import Optional

import redis.asyncio as redis

from busreserve.core.config import get_settings
from busreserve.core.logging import get_logger
from busreserve.core.metrics import redis_connection_errors

logger = get_logger(__name__)


class RedisClient:
    """Process-wide async Redis client with connection pooling."""

    _instance: Optional[redis.Redis] = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        """Get or create Redis client instance."""
        if cls._instance is None:
            settings = get_settings()
            cls._instance = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        return cls._instance

    @classmethod
    async def close(cls):
        """Close Redis connection."""
        if cls._instance:
            await cls._instance.aclose()
            cls._instance = None


def get_redis() -> Optional[redis.Redis]:
    """Get Redis client instance. Returns None if Redis is disabled."""
    if not get_settings().REDIS_ENABLED:
        return None
    return RedisClient.get_client()


async def redis_status() -> dict:
    """Connection summary for the health endpoint."""
    client = get_redis()
    if client is None:
        return {"status": "disabled"}
    try:
        await client.ping()
        return {"status": "connected"}
    except redis.RedisError as e:
        redis_connection_errors.inc()
        logger.error("redis_ping_failed", error=str(e))
        return {"status": "error", "error": str(e)}
