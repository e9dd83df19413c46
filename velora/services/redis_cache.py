"""
Redis connection used for request rate limiting.

Connected in the application lifespan only when rate limiting is enabled.
"""

import logging

import redis.asyncio as aioredis

from velora.core.config import Settings

logger = logging.getLogger("velora.redis")


class RedisCache:
    """
    Async Redis client holder.

    Features:
    - Connection pooling for high concurrency
    - Graceful degradation if Redis unavailable
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: aioredis.Redis | None = None
        self._connected = False

    @property
    def is_available(self) -> bool:
        """Check if Redis is configured and connected."""
        return self._connected and self.client is not None

    async def connect(self) -> bool:
        """
        Establish connection to Redis.

        Returns:
            True if connection successful, False otherwise.
        """
        if not self.settings.REDIS_URL:
            logger.warning("REDIS_URL not configured - Redis disabled")
            return False

        try:
            self.client = aioredis.from_url(
                self.settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
            )
            await self.client.ping()
            self._connected = True
            logger.info("Connected to Redis at %s", self.settings.sanitize_url(self.settings.REDIS_URL))
            return True
        except Exception as e:
            logger.error("Failed to connect to Redis: %s", e)
            self.client = None
            self._connected = False
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.aclose()
            self._connected = False
            logger.info("Redis connection closed")
