"""Redis client wrapper used as a backing store for peer entries"""

import json
from typing import Any, Optional

import redis
from redis.exceptions import RedisError

from src.infrastructure.config.read_config import StorageConfigSchema
from src.infrastructure.logging.logging_config import get_logger
from src.shared.resilience.exceptions import StorageError

logger = get_logger("redis_cache")


class RedisCache:
    """Redis operations needed by the entry store.

    Unlike a best-effort cache, every failure here surfaces as a
    ``StorageError``: the registry has no other copy of its state, so callers
    must learn that an operation did not happen.
    """

    def __init__(self, client: redis.Redis):
        self.redis_client = client

    @classmethod
    def from_config(cls, storage_config: StorageConfigSchema) -> "RedisCache":
        """Build a cache connected to the Redis server named in the config."""
        client = redis.Redis(
            host=storage_config.host,
            port=storage_config.port,
            db=storage_config.db,
            password=storage_config.password,
            decode_responses=True,
            socket_connect_timeout=storage_config.socket_timeout,
            socket_timeout=storage_config.socket_timeout,
        )
        logger.info(
            f"Redis store configured at {storage_config.host}:{storage_config.port}"
            f"/{storage_config.db}"
        )
        return cls(client)

    def ping(self) -> bool:
        """Check connectivity without raising"""
        try:
            return bool(self.redis_client.ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    def get(self, key: str) -> Optional[str]:
        """Get value by key"""
        try:
            return self.redis_client.get(key)
        except RedisError as e:
            logger.error(f"Redis get error for key {key}: {e}")
            raise StorageError(
                f"Redis get failed for key {key}: {e}", context={"key": key}, cause=e
            ) from e

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Set key-value with optional TTL in seconds"""
        try:
            if ttl:
                self.redis_client.setex(key, ttl, value)
            else:
                self.redis_client.set(key, value)
        except RedisError as e:
            logger.error(f"Redis set error for key {key}: {e}")
            raise StorageError(
                f"Redis set failed for key {key}: {e}", context={"key": key}, cause=e
            ) from e

    def delete(self, *keys: str) -> int:
        """Delete one or more keys"""
        try:
            return self.redis_client.delete(*keys)
        except RedisError as e:
            logger.error(f"Redis delete error for keys {keys}: {e}")
            raise StorageError(
                f"Redis delete failed for keys {keys}: {e}",
                context={"keys": list(keys)},
                cause=e,
            ) from e

    def get_json(self, key: str) -> Optional[Any]:
        """Get and deserialize a JSON value"""
        value = self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            logger.error(f"JSON decode error for key {key}: {e}")
            raise StorageError(
                f"Corrupt value stored at {key}: {e}", context={"key": key}, cause=e
            ) from e

    def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Serialize and set a JSON value"""
        try:
            json_str = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"JSON encode error for key {key}: {e}")
            raise StorageError(
                f"Cannot encode value for {key}: {e}", context={"key": key}, cause=e
            ) from e
        self.set(key, json_str, ttl)
