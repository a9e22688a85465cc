import logging
import redis
from redis.connection import ConnectionPool
from typing import Optional
from passwordless.core.config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client used for request rate limiting"""

    _client: Optional[redis.Redis] = None
    _pool: Optional[ConnectionPool] = None
    _is_available: bool = False

    @classmethod
    def get_client(cls) -> Optional[redis.Redis]:
        """Get or create Redis client instance with connection pooling"""
        if cls._client is None:
            try:
                cls._pool = ConnectionPool(
                    host=settings.REDIS_HOST,
                    port=settings.REDIS_PORT,
                    password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                    db=settings.REDIS_DB,
                    decode_responses=True,
                    socket_connect_timeout=2,
                    socket_timeout=2,
                    retry_on_timeout=True,
                    max_connections=20,
                    health_check_interval=15,
                )

                cls._client = redis.Redis(connection_pool=cls._pool)

                # Test connection
                cls._client.ping()
                cls._is_available = True
                logger.info("Redis connected (%s:%s)", settings.REDIS_HOST, settings.REDIS_PORT)
            except redis.RedisError as e:
                logger.warning("Redis connection failed: %s", str(e))
                cls._client = None
                cls._pool = None
                cls._is_available = False
                raise

        return cls._client

    @classmethod
    def is_available(cls) -> bool:
        """Check if Redis is available"""
        return cls._is_available

    @classmethod
    def close(cls):
        """Close Redis connection"""
        if cls._client:
            cls._client.close()
            cls._client = None
        if cls._pool:
            cls._pool.disconnect()
            cls._pool = None
        cls._is_available = False


def get_redis() -> Optional[redis.Redis]:
    """Redis client, or None when Redis is down"""
    try:
        return RedisClient.get_client()
    except redis.RedisError:
        return None


class CacheKeys:
    """Redis key patterns"""

    @staticmethod
    def rate_limit(identifier: str, action: str) -> str:
        return f"rate_limit:{action}:{identifier}"


class RateLimiter:
    """Rate limiting using Redis"""

    @staticmethod
    def check_rate_limit(
        identifier: str,
        action: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, int]:
        """
        Check if request is within rate limit.

        Returns:
            (is_allowed, remaining_requests)
            - is_allowed: True if request should be allowed
            - remaining_requests: How many requests left in window
        """
        if not RedisClient.is_available():
            # If Redis not available, allow request (fallback)
            return True, max_requests

        key = CacheKeys.rate_limit(identifier, action)
        client = get_redis()

        if not client:
            return True, max_requests

        try:
            pipe = client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window_seconds)
            results = pipe.execute()

            current = results[0]
            remaining = max(0, max_requests - current)
            is_allowed = current <= max_requests

            return is_allowed, remaining
        except redis.RedisError as e:
            logger.warning("Rate limit check failed, allowing request: %s", str(e))
            return True, max_requests

    @staticmethod
    def get_remaining_time(identifier: str, action: str) -> int:
        """Get seconds until rate limit resets"""
        client = get_redis()
        if not client:
            return 0
        try:
            return max(0, client.ttl(CacheKeys.rate_limit(identifier, action)))
        except redis.RedisError:
            return 0
