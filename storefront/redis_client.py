"""
Redis client wrapper with connection pooling, retry logic, and error handling.
"""
import logging
import random
import time
from typing import Any, Callable, List, Optional

import redis
from redis.exceptions import (
    AuthenticationError,
    ConnectionError,
    RedisError,
    TimeoutError,
)

from storefront.config import Config
from storefront.exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client with connection pooling and retry logic"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = client
        if client is None:
            self._connect()

    def _connect(self):
        """Initialize Redis connection pool"""
        try:
            options = dict(
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=Config.REDIS_RETRY_ON_TIMEOUT,
                decode_responses=True,
            )
            if Config.REDIS_SSL:
                # ElastiCache with encryption-in-transit uses self-signed certs
                options["ssl_cert_reqs"] = None

            self.pool = redis.ConnectionPool.from_url(Config.redis_url(), **options)
            self.client = redis.Redis(connection_pool=self.pool)

            # Test connection
            self.client.ping()

        except (ConnectionError, AuthenticationError) as e:
            raise StorageError(f"Failed to connect to Redis: {e}")

    def _retry_with_backoff(
        self,
        func: Callable,
        max_retries: int = 3,
        initial_backoff: float = 0.1,
        max_backoff: float = 2.0
    ) -> Any:
        """
        Execute function with exponential backoff retry.

        Args:
            func: Function to execute
            max_retries: Maximum number of retry attempts
            initial_backoff: Initial backoff delay in seconds
            max_backoff: Maximum backoff delay in seconds

        Returns:
            Result of function execution

        Raises:
            StorageError: If all retries fail
        """
        backoff = initial_backoff

        for attempt in range(max_retries):
            try:
                return func()
            except (ConnectionError, TimeoutError) as e:
                if attempt == max_retries - 1:
                    raise StorageError(f"Redis operation failed after {max_retries} retries: {e}")

                # Exponential backoff with jitter
                jitter = random.uniform(0, backoff * 0.1)
                time.sleep(backoff + jitter)
                backoff = min(backoff * 2, max_backoff)

                if self.pool is not None:
                    try:
                        self._connect()
                    except StorageError as reconnect_error:
                        logger.warning(f"Redis reconnect failed: {reconnect_error}")

            except RedisError as e:
                # Non-retryable errors
                raise StorageError(f"Redis error: {e}")

    def get(self, key: str) -> Optional[str]:
        """Get value from Redis"""
        return self._retry_with_backoff(lambda: self.client.get(key))

    def mget(self, keys: List[str]) -> List[Optional[str]]:
        """Get several values in one round trip"""
        if not keys:
            return []
        return self._retry_with_backoff(lambda: self.client.mget(keys))

    def set(self, key: str, value: Any, ex: Optional[int] = None) -> bool:
        """Set value in Redis with optional TTL"""
        return self._retry_with_backoff(lambda: self.client.set(key, value, ex=ex))

    def delete(self, *keys: str) -> int:
        """Delete one or more keys"""
        return self._retry_with_backoff(lambda: self.client.delete(*keys))

    def exists(self, *keys: str) -> int:
        """Check if keys exist"""
        return self._retry_with_backoff(lambda: self.client.exists(*keys))

    def lrange(self, key: str, start: int = 0, end: int = -1) -> List[str]:
        """Get a slice of a list"""
        return self._retry_with_backoff(lambda: self.client.lrange(key, start, end))

    def zcard(self, key: str) -> int:
        """Get number of members in a sorted set"""
        return self._retry_with_backoff(lambda: self.client.zcard(key))

    def zrevrange(self, key: str, start: int, end: int) -> List[str]:
        """Get members of a sorted set, highest score first"""
        return self._retry_with_backoff(lambda: self.client.zrevrange(key, start, end))

    def pipeline(self, transaction: bool = True):
        """Create a pipeline on the underlying client"""
        return self.client.pipeline(transaction=transaction)

    def ping(self) -> bool:
        """Test Redis connection"""
        try:
            return self.client.ping()
        except RedisError:
            return False

    def close(self):
        """Close connection pool"""
        if self.pool:
            self.pool.disconnect()


# Global Redis client instance
_redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """Get or create Redis client instance (singleton)"""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client
