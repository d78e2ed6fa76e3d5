# pickleclub/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from pickleclub.config import settings
from pickleclub.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RedisCache:
    """
    Pooled Redis client with fail-soft operations.

    Cache misses and Redis outages look the same to callers: reads return
    None, writes return False. Nothing here raises after initialization.
    """

    def __init__(self, url: str | None = None):
        self._url = url
        self.pool: ConnectionPool | None = None
        self.client: redis.Redis | None = None
        self._initialized = False

    @property
    def enabled(self) -> bool:
        return bool(self._url or settings.redis_url())

    async def initialize(self) -> None:
        """Initialize the connection pool on startup."""
        if self._initialized:
            return

        url = self._url or settings.redis_url()
        if not url:
            logger.info("Redis not configured, profile cache disabled")
            return

        try:
            self.pool = ConnectionPool.from_url(
                url,
                max_connections=10,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)
            await self.client.ping()
            self._initialized = True
            logger.info("Redis cache initialized")

        except Exception as e:
            logger.error("Failed to initialize Redis cache", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
        if self.pool:
            await self.pool.disconnect()
        self._initialized = False
        logger.info("Redis cache closed")

    async def ping(self) -> bool:
        if not self._initialized:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def get(self, key: str) -> str | None:
        if not self._initialized:
            return None
        try:
            return await self.client.get(key) or None
        except Exception as e:
            logger.error("Redis GET failed", key=key[:40], error=str(e))
            return None

    async def set_with_ttl(self, key: str, value: str, ttl_s: int | None = None) -> bool:
        if not self._initialized:
            return False
        try:
            if ttl_s:
                return bool(await self.client.setex(key, ttl_s, value))
            return bool(await self.client.set(key, value))
        except Exception as e:
            logger.error("Redis SET failed", key=key[:40], error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        if not self._initialized:
            return False
        try:
            return bool(await self.client.delete(key))
        except Exception as e:
            logger.error("Redis DELETE failed", key=key[:40], error=str(e))
            return False


# Global cache instance
redis_cache = RedisCache()
