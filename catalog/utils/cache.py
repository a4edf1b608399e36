import json
import logging
import redis
from typing import Optional, Any

from catalog.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Create Redis client (connections are opened lazily)
redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)


class CacheService:
    """
    Redis cache service for product details and the top-rated listing.

    Every operation degrades to a cache miss when Redis is unreachable,
    so callers always fall back to the database.
    """

    def __init__(self, client: redis.Redis = None, ttl: int = None, enabled: bool = None):
        self.client = client or redis_client
        self.ttl = ttl or settings.CACHE_TTL
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled

    def _make_key(self, prefix: str, key: str) -> str:
        """Create a namespaced cache key."""
        return f"{prefix}:{key}"

    def get(self, prefix: str, key: str) -> Optional[Any]:
        """
        Get a value from cache.

        Args:
            prefix: Cache key prefix (e.g., 'product')
            key: Unique identifier

        Returns:
            Cached value or None if not found
        """
        if not self.enabled:
            return None
        cache_key = self._make_key(prefix, key)
        try:
            value = self.client.get(cache_key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, json.JSONDecodeError) as e:
            logger.warning(f"Cache read failed for {cache_key}: {e}")
            return None

    def set(self, prefix: str, key: str, value: Any, ttl: int = None) -> bool:
        """
        Set a value in cache with TTL.

        Returns:
            True if successful, False otherwise
        """
        if not self.enabled:
            return False
        cache_key = self._make_key(prefix, key)
        ttl = ttl or self.ttl
        try:
            serialized = json.dumps(value, default=str)
            self.client.setex(cache_key, ttl, serialized)
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Cache write failed for {cache_key}: {e}")
            return False

    def delete(self, prefix: str, *keys: str) -> bool:
        """
        Delete one or more values from cache.

        Returns:
            True if deleted, False otherwise
        """
        if not self.enabled or not keys:
            return False
        cache_keys = [self._make_key(prefix, key) for key in keys]
        try:
            self.client.delete(*cache_keys)
            return True
        except redis.RedisError as e:
            logger.warning(f"Cache invalidation failed for {cache_keys}: {e}")
            return False

    def ping(self) -> bool:
        """Return True when Redis answers, raising on connection errors."""
        return bool(self.client.ping())


# Singleton cache service instance
cache_service = CacheService()
