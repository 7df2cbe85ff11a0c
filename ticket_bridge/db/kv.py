"""Keyed get/set/delete storage abstraction.

The credential and link configuration stores only ever talk to a
KeyValueStore. Values are JSON-compatible Python objects; what comes back
from get() may be wrapped in a ``{"value": ...}`` envelope depending on who
wrote it, so callers decode through services.storage.codec.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any

import structlog

from ticket_bridge.core.exceptions import StorageError, StorageRateLimitError

logger = structlog.get_logger(__name__)

_RATE_LIMIT_MARKERS = (
    "rate limit",
    "request limit exceeded",
    "too many requests",
    "max number of clients",
    "429",
)


def is_rate_limit_message(error_text: str) -> bool:
    text = error_text.lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


class KeyValueStore(ABC):
    """Abstract keyed JSON store."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if the key does not exist.

        Raises:
            StorageRateLimitError: backend throttled the request.
            StorageError: backend unavailable.
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value under key (overwrites)."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if something was removed."""
        ...

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store for development, tests and as a fallback."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def raw(self, key: str) -> Any | None:
        """Peek at the stored value without going through the async API."""
        return self._data.get(key)

    def __len__(self) -> int:
        return len(self._data)


class FallbackKeyValueStore(KeyValueStore):
    """Primary store with a sticky in-memory fallback.

    The first StorageError from the primary (other than rate limiting, which
    callers retry) flips the store into fallback mode for the rest of the
    process lifetime. Reads that miss on the primary also consult the
    fallback so values written while degraded stay visible.
    """

    def __init__(
        self,
        primary: KeyValueStore,
        fallback: KeyValueStore | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback if fallback is not None else InMemoryKeyValueStore()
        self._use_fallback = False

    @property
    def degraded(self) -> bool:
        return self._use_fallback

    def _switch_to_fallback(self, operation: str, key: str, error: Exception) -> None:
        if not self._use_fallback:
            logger.warning(
                "kv_primary_failed_switching_to_fallback",
                operation=operation,
                key=key,
                error=str(error),
            )
        self._use_fallback = True

    async def get(self, key: str) -> Any | None:
        if self._use_fallback:
            return await self._fallback.get(key)
        try:
            value = await self._primary.get(key)
        except StorageRateLimitError:
            raise
        except StorageError as e:
            self._switch_to_fallback("get", key, e)
            return await self._fallback.get(key)
        if value is None:
            return await self._fallback.get(key)
        return value

    async def set(self, key: str, value: Any) -> None:
        if self._use_fallback:
            await self._fallback.set(key, value)
            return
        try:
            await self._primary.set(key, value)
        except StorageRateLimitError:
            raise
        except StorageError as e:
            self._switch_to_fallback("set", key, e)
            await self._fallback.set(key, value)

    async def delete(self, key: str) -> bool:
        deleted_fallback = await self._fallback.delete(key)
        if self._use_fallback:
            return deleted_fallback
        try:
            deleted_primary = await self._primary.delete(key)
        except StorageRateLimitError:
            raise
        except StorageError as e:
            self._switch_to_fallback("delete", key, e)
            return deleted_fallback
        return deleted_primary or deleted_fallback

    async def close(self) -> None:
        await self._primary.close()
        await self._fallback.close()
