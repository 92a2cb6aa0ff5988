"""
Redis client wrapper with connection pooling, read retries, and error handling.
"""
import redis
import time
import random
import logging
from typing import Optional, Any, Callable, Dict, List
from redis.exceptions import (
    ConnectionError,
    TimeoutError,
    RedisError,
    AuthenticationError
)

from storefront.config import Config
from storefront.exceptions import RedisConnectionError

logger = logging.getLogger(__name__)


class RedisClient:
    """Redis client with connection pooling and error translation"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.pool: Optional[redis.ConnectionPool] = None
        self.client: Optional[redis.Redis] = client
        if self.client is None:
            self._connect()

    def _connect(self):
        """Initialize Redis connection pool"""
        try:
            self.pool = redis.ConnectionPool.from_url(
                Config.redis_url(),
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=Config.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                decode_responses=True
            )

            self.client = redis.Redis(connection_pool=self.pool)

            # Test connection
            self.client.ping()

        except (ConnectionError, TimeoutError, AuthenticationError) as e:
            raise RedisConnectionError(f"Failed to connect to Redis: {e}")

    def _retry_with_backoff(
        self,
        func: Callable,
        max_retries: int = 1,
        initial_backoff: float = 0.1,
        max_backoff: float = 2.0
    ) -> Any:
        """
        Execute function, retrying connection failures with exponential backoff.

        Only idempotent reads pass max_retries > 1. Writes and scripts run
        exactly once so a timeout after the server applied them can never
        be replayed.

        Args:
            func: Function to execute
            max_retries: Maximum number of attempts
            initial_backoff: Initial backoff delay in seconds
            max_backoff: Maximum backoff delay in seconds

        Returns:
            Result of function execution

        Raises:
            RedisConnectionError: If every attempt fails
        """
        backoff = initial_backoff
        attempts = max(1, max_retries)

        for attempt in range(attempts):
            try:
                return func()
            except (ConnectionError, TimeoutError) as e:
                if attempt == attempts - 1:
                    raise RedisConnectionError(f"Redis operation failed after {attempts} attempt(s): {e}")

                logger.warning(f"Redis read failed (attempt {attempt + 1}/{attempts}): {e}")

                # Exponential backoff with jitter
                jitter = random.uniform(0, backoff * 0.1)
                time.sleep(backoff + jitter)
                backoff = min(backoff * 2, max_backoff)

            except RedisError as e:
                # Non-retryable errors
                raise RedisConnectionError(f"Redis error: {e}")

    def _read(self, func: Callable) -> Any:
        return self._retry_with_backoff(func, max_retries=Config.REDIS_READ_RETRIES)

    def _write(self, func: Callable) -> Any:
        return self._retry_with_backoff(func, max_retries=1)

    def delete(self, *keys: str) -> int:
        """Delete one or more keys in a single command"""
        return self._write(lambda: self.client.delete(*keys))

    def incr(self, key: str, amount: int = 1) -> int:
        """Increment a counter"""
        return self._write(lambda: self.client.incr(key, amount))

    def hget(self, key: str, field: str) -> Optional[str]:
        """Get field from hash"""
        return self._read(lambda: self.client.hget(key, field))

    def hset(self, key: str, field: Optional[str] = None, value: Any = None,
             mapping: Optional[Dict[str, Any]] = None) -> int:
        """Set one field, or a mapping of fields, in a hash"""
        return self._write(lambda: self.client.hset(key, field, value, mapping=mapping))

    def hgetall(self, key: str) -> dict:
        """Get all fields from hash"""
        return self._read(lambda: self.client.hgetall(key))

    def hgetall_many(self, *keys: str) -> List[dict]:
        """Get several hashes in one MULTI/EXEC so they are read consistently"""
        def _hgetall_many():
            pipe = self.client.pipeline(transaction=True)
            for key in keys:
                pipe.hgetall(key)
            return pipe.execute()
        return self._read(_hgetall_many)

    def hmget(self, key: str, fields: List[str]) -> List[Optional[str]]:
        """Get several fields from hash"""
        return self._read(lambda: self.client.hmget(key, fields))

    def hlen(self, key: str) -> int:
        """Get number of fields in hash"""
        return self._read(lambda: self.client.hlen(key))

    def eval(self, script: str, num_keys: int, *keys_and_args) -> Any:
        """Execute Lua script"""
        return self._write(lambda: self.client.eval(script, num_keys, *keys_and_args))

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

def set_redis_client(client: Optional[RedisClient]) -> None:
    """Replace the shared Redis client instance"""
    global _redis_client
    _redis_client = client
