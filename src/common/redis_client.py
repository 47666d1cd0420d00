"""Redis connection management for the job registry."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from common.config import settings

logger = logging.getLogger(__name__)

# Seconds between pings when the connection is believed healthy
HEALTH_CHECK_INTERVAL_SECONDS = 10


class RedisJobClient:
    """Async Redis client with reconnection for the translation job registry."""

    def __init__(self, redis_url: Optional[str] = None, client: Optional[Redis] = None):
        """
        Initialize the Redis client.

        Args:
            redis_url: Redis URL (defaults to settings.redis_url)
            client: Already-constructed client; skips connect() when given
        """
        self.redis_url = redis_url or settings.redis_url
        self.client: Optional[Redis] = client
        self.connected: bool = client is not None
        self._reconnect_lock: Optional[asyncio.Lock] = None
        self._last_health_check: Optional[datetime] = None

    @property
    def reconnect_lock(self) -> asyncio.Lock:
        """Lazy initialization of reconnect lock (must be created within event loop)."""
        if self._reconnect_lock is None:
            self._reconnect_lock = asyncio.Lock()
        return self._reconnect_lock

    async def connect(self) -> None:
        """Establish connection to Redis with retry logic."""
        for attempt in range(settings.redis_reconnect_max_retries):
            try:
                self.client = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=10,
                )
                # Test connection with timeout
                await asyncio.wait_for(self.client.ping(), timeout=5.0)
                self.connected = True
                self._last_health_check = datetime.now(timezone.utc)
                logger.info("✅ Connected to Redis successfully")
                return
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                if attempt < settings.redis_reconnect_max_retries - 1:
                    delay = min(
                        settings.redis_reconnect_initial_delay * (2**attempt),
                        settings.redis_reconnect_max_delay,
                    )
                    logger.warning(
                        f"Failed to connect to Redis (attempt {attempt + 1}/{settings.redis_reconnect_max_retries}): {e}. "
                        f"Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        f"Failed to connect to Redis after {settings.redis_reconnect_max_retries} attempts: {e}"
                    )
                    logger.warning(
                        "Job registry degraded - duplicate jobs will not be detected"
                    )
                    self.connected = False

    async def disconnect(self) -> None:
        """Close connection to Redis."""
        if self.client:
            try:
                await self.client.aclose()
            except RedisError as e:
                logger.warning(f"Error closing Redis client: {e}")
            finally:
                self.connected = False
                logger.info("Disconnected from Redis")

    async def _reconnect_with_backoff(self) -> None:
        """Reconnect to Redis with exponential backoff."""
        logger.info("🔄 Starting Redis reconnection process...")

        if self.client:
            try:
                await self.client.aclose()
            except RedisError as e:
                logger.debug(f"Ignoring error while closing stale Redis client: {e}")
            self.client = None

        await self.connect()

        if self.connected:
            logger.info("✅ Redis reconnection successful! Connection restored.")
        else:
            logger.error("❌ Redis reconnection failed after all retry attempts")

    async def ensure_connected(self) -> bool:
        """
        Ensure Redis connection is healthy, reconnect if needed.

        Returns:
            True if connected, False otherwise
        """
        if self.connected and self.client:
            if self._last_health_check:
                seconds_since_check = (
                    datetime.now(timezone.utc) - self._last_health_check
                ).total_seconds()
                if seconds_since_check < HEALTH_CHECK_INTERVAL_SECONDS:
                    return True

            try:
                await asyncio.wait_for(self.client.ping(), timeout=5.0)
                self._last_health_check = datetime.now(timezone.utc)
                return True
            except (RedisError, OSError, asyncio.TimeoutError) as e:
                logger.warning(f"⚠️ Redis connection lost: {e}")
                logger.info("🔄 Attempting Redis reconnection...")
                self.connected = False

        # Not connected, try to reconnect with lock to prevent concurrent attempts
        async with self.reconnect_lock:
            if self.connected and self.client:
                return True

            await self._reconnect_with_backoff()

        return self.connected

    async def health_check(self) -> Dict[str, Any]:
        """
        Check Redis connection health.

        Returns:
            Dictionary with health status information
        """
        if not self.client:
            return {
                "connected": False,
                "status": "disconnected",
                "error": "Client not initialized",
            }

        try:
            await self.client.ping()
            return {"connected": True, "status": "healthy"}
        except (RedisError, OSError) as e:
            return {"connected": False, "status": "unhealthy", "error": str(e)}
