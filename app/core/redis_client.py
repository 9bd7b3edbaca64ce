"""Redis client configuration and the report cache."""

import json
from typing import Any, cast

import redis
import structlog

from app.config import settings

logger = structlog.get_logger()

# Global Redis client instance
_redis_client: redis.Redis | None = None

REPORT_KEY_PREFIX = "report:"


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client instance.

    Returns:
        Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            username=settings.redis_username,
            password=settings.redis_password,
            decode_responses=settings.redis_decode_responses,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )

    return _redis_client


def close_redis_connection() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None


class CacheManager:
    """
    Redis-backed JSON cache.

    Every operation fails open: a Redis error is logged and treated as a miss
    (or a no-op for writes), so reporting keeps working without Redis.
    """

    def __init__(self, redis_client: redis.Redis):
        """Initialize cache manager with Redis client."""
        self.redis = redis_client

    def ping(self) -> bool:
        """Check the Redis server answers."""
        try:
            return bool(self.redis.ping())
        except Exception:
            return False

    def get_json(self, key: str) -> Any | None:
        """
        Get JSON value from cache and deserialize.

        Args:
            key: Cache key

        Returns:
            Deserialized object or None
        """
        try:
            value = cast(str | None, self.redis.get(key))
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

    def set_json(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Serialize and set JSON value in cache.

        Args:
            key: Cache key
            value: Value to serialize and cache
            ttl: Time to live in seconds

        Returns:
            True if successful, False otherwise
        """
        try:
            json_value = json.dumps(value, default=str)
            if ttl:
                self.redis.setex(key, ttl, json_value)
            else:
                self.redis.set(key, json_value)
            return True
        except Exception as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
            return False

    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Redis key pattern (e.g., 'report:*')

        Returns:
            Number of keys deleted
        """
        try:
            keys = list(self.redis.scan_iter(match=pattern))
            if keys:
                return cast(int, self.redis.delete(*keys))
            return 0
        except Exception as e:
            logger.warning("cache_invalidation_failed", pattern=pattern, error=str(e))
            return 0

    def invalidate_reports(self) -> int:
        """Drop every cached report."""
        return self.delete_pattern(f"{REPORT_KEY_PREFIX}*")
