# SPDX-License-Identifier: MIT
# Copyright (c) 2026 MCPLookup Contributors

"""Storage backends for named collections of JSON records.

The trust engine treats storage as an opaque collaborator: every
operation returns a :class:`StorageResult` rather than raising, and the
caller decides which failures are fatal. Default is in-memory; a Redis
backend is available where challenges must survive a restart.

Configure via environment variables:
    MCPLOOKUP_STORAGE=memory|redis  (default: memory)
    MCPLOOKUP_REDIS_URL=redis://localhost:6379  (default)
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

try:
    import redis
    from redis import asyncio as aioredis
except ImportError:  # pragma: no cover
    redis = None  # type: ignore[assignment]
    aioredis = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

# Key prefix for Redis to avoid collisions with other applications
_REDIS_KEY_PREFIX = "mcplookup:"


@dataclass
class StorageResult:
    """Outcome of a storage operation."""

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> StorageResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> StorageResult:
        return cls(success=False, error=error)


class Storage(ABC):
    """Abstract key-value storage over named collections.

    ``get`` of a missing key succeeds with ``data=None``; ``delete`` of a
    missing key succeeds. Only backend faults produce ``success=False``.
    """

    @abstractmethod
    async def get(self, collection: str, key: str) -> StorageResult:
        """Fetch one record."""
        ...

    @abstractmethod
    async def set(self, collection: str, key: str, value: dict[str, Any]) -> StorageResult:
        """Create or replace one record."""
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> StorageResult:
        """Remove one record."""
        ...

    @abstractmethod
    async def get_all(self, collection: str) -> StorageResult:
        """Fetch every record in a collection as a ``{key: value}`` dict."""
        ...


class MemoryStorage(Storage):
    """In-memory storage.

    Suitable for development, tests and single-process deployments.
    Values are copied through JSON on write so callers cannot mutate
    stored records and non-serialisable values fail the same way they
    would against Redis.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, str]] = {}

    async def get(self, collection: str, key: str) -> StorageResult:
        raw = self._collections.get(collection, {}).get(key)
        return StorageResult.ok(json.loads(raw) if raw is not None else None)

    async def set(self, collection: str, key: str, value: dict[str, Any]) -> StorageResult:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            return StorageResult.fail(f"Value is not JSON-serializable: {e}")
        self._collections.setdefault(collection, {})[key] = raw
        return StorageResult.ok()

    async def delete(self, collection: str, key: str) -> StorageResult:
        self._collections.get(collection, {}).pop(key, None)
        return StorageResult.ok()

    async def get_all(self, collection: str) -> StorageResult:
        items = self._collections.get(collection, {})
        return StorageResult.ok({key: json.loads(raw) for key, raw in items.items()})

    def clear(self) -> None:
        """Drop all collections (useful for testing)."""
        self._collections.clear()


class RedisStorage(Storage):
    """Redis-backed storage.

    Records live under ``mcplookup:<collection>:<key>`` as JSON strings.
    Uses the asyncio client, so no call blocks the event loop. The
    connection is opened lazily on first use.
    Requires redis-py: ``pip install mcplookup-trust[redis]``
    """

    def __init__(self, redis_url: str | None = None) -> None:
        if aioredis is None:
            raise ImportError("redis package is required for RedisStorage. Install with: pip install mcplookup-trust[redis]")

        from ..core.config import get_config

        self._client = aioredis.Redis.from_url(redis_url or get_config().redis_url, decode_responses=True)

    def _key(self, collection: str, key: str) -> str:
        return f"{_REDIS_KEY_PREFIX}{collection}:{key}"

    async def ping(self) -> bool:
        """True if the server answers; never raises."""
        try:
            return bool(await self._client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def get(self, collection: str, key: str) -> StorageResult:
        try:
            raw = await self._client.get(self._key(collection, key))
            return StorageResult.ok(json.loads(raw) if raw is not None else None)
        except redis.RedisError as e:
            logger.error(f"Redis get failed for {collection}/{key}: {e}")
            return StorageResult.fail(str(e))
        except ValueError as e:
            logger.error(f"Corrupt record at {collection}/{key}: {e}")
            return StorageResult.fail(f"Stored value is not valid JSON: {e}")

    async def set(self, collection: str, key: str, value: dict[str, Any]) -> StorageResult:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            return StorageResult.fail(f"Value is not JSON-serializable: {e}")
        try:
            await self._client.set(self._key(collection, key), raw)
        except redis.RedisError as e:
            logger.error(f"Redis set failed for {collection}/{key}: {e}")
            return StorageResult.fail(str(e))
        return StorageResult.ok()

    async def delete(self, collection: str, key: str) -> StorageResult:
        try:
            await self._client.delete(self._key(collection, key))
        except redis.RedisError as e:
            logger.error(f"Redis delete failed for {collection}/{key}: {e}")
            return StorageResult.fail(str(e))
        return StorageResult.ok()

    async def get_all(self, collection: str) -> StorageResult:
        prefix = self._key(collection, "")
        items: dict[str, Any] = {}
        try:
            cursor = 0
            while True:
                cursor, keys = await self._client.scan(cursor, match=f"{prefix}*", count=100)
                if keys:
                    values = await self._client.mget(keys)
                    for full_key, raw in zip(keys, values, strict=True):
                        if raw is not None:
                            items[full_key[len(prefix) :]] = json.loads(raw)
                if cursor == 0:
                    break
        except redis.RedisError as e:
            logger.error(f"Redis scan failed for {collection}: {e}")
            return StorageResult.fail(str(e))
        except ValueError as e:
            logger.error(f"Corrupt record in {collection}: {e}")
            return StorageResult.fail(f"Stored value is not valid JSON: {e}")
        return StorageResult.ok(items)


# =============================================================================
# FACTORY
# =============================================================================

_storage_instance: Storage | None = None


def get_storage() -> Storage:
    """Get or create the global storage backend.

    Reads the ``storage_backend`` setting:
        - "memory" (default): In-memory storage
        - "redis": Redis-backed storage
    """
    global _storage_instance
    if _storage_instance is not None:
        return _storage_instance

    from ..core.config import get_config

    backend = get_config().storage_backend.lower()

    if backend == "redis":
        logger.info("Using Redis storage backend")
        _storage_instance = RedisStorage()
    elif backend == "memory":
        logger.info("Using in-memory storage backend")
        _storage_instance = MemoryStorage()
    else:
        logger.warning(f"Unknown storage backend '{backend}', falling back to memory")
        _storage_instance = MemoryStorage()

    return _storage_instance


def reset_storage() -> None:
    """Reset the global storage instance (for testing)."""
    global _storage_instance
    _storage_instance = None
