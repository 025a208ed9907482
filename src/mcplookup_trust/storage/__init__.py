"""Storage collaborator: named collections of JSON records."""

from .backends import (
    MemoryStorage,
    RedisStorage,
    Storage,
    StorageResult,
    get_storage,
    reset_storage,
)

__all__ = [
    "MemoryStorage",
    "RedisStorage",
    "Storage",
    "StorageResult",
    "get_storage",
    "reset_storage",
]
