"""Redis-backed key-value store for credentials and link configurations.

Provides the KeyValueStore contract on top of redis.asyncio so callers
never need to handle redis.exceptions directly. Throttling errors are
re-raised as StorageRateLimitError (retried by the stores), everything
else as StorageError.
"""

import json
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.asyncio import from_url as redis_from_url
from redis.exceptions import RedisError

from ticket_bridge.core.exceptions import StorageError, StorageRateLimitError
from ticket_bridge.db.kv import KeyValueStore, is_rate_limit_message

logger = structlog.get_logger(__name__)


def create_redis(redis_url: str) -> Redis:
    """Build a lazily-connecting client; no I/O happens until first command."""
    return redis_from_url(redis_url, decode_responses=True, encoding="utf-8")


def _translate(operation: str, key: str, error: RedisError) -> StorageError:
    message = str(error)
    if is_rate_limit_message(message):
        logger.warning("redis_rate_limited", operation=operation, key=key, error=message)
        return StorageRateLimitError(f"Redis {operation} throttled: {message}")
    logger.error("redis_command_failed", operation=operation, key=key, error=message)
    return StorageError(f"Redis {operation} failed: {message}")


class RedisKeyValueStore(KeyValueStore):
    """Thin wrapper over redis.asyncio.Redis storing JSON strings."""

    def __init__(self, client: Redis) -> None:
        self._r = client

    @property
    def raw(self) -> Redis:
        """Escape hatch for advanced operations not covered by helpers."""
        return self._r

    async def get(self, key: str) -> Any | None:
        """GET a key and deserialize from JSON. Returns None if key missing."""
        try:
            raw = await self._r.get(name=key)
        except RedisError as e:
            raise _translate("GET", key, e) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            # Tokens written by older tooling were stored as bare strings.
            logger.warning("redis_json_decode_failed", key=key)
            return raw

    async def set(self, key: str, value: Any) -> None:
        """Serialize value to JSON string and SET."""
        payload = json.dumps(value)
        try:
            await self._r.set(name=key, value=payload)
        except RedisError as e:
            raise _translate("SET", key, e) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._r.delete(key))
        except RedisError as e:
            raise _translate("DELETE", key, e) from e

    async def close(self) -> None:
        """Gracefully close the Redis connection pool."""
        logger.info("redis_shutdown")
        await self._r.aclose()
