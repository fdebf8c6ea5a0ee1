"""Persistence backends for GrowthGarden."""

from .base import StorageBackend, StorageUnavailableError, level_after_reward
from .memory import MemoryStore
from .postgres import PostgresStore

__all__ = [
    "MemoryStore",
    "PostgresStore",
    "StorageBackend",
    "StorageUnavailableError",
    "level_after_reward",
]
