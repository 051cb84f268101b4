"""Tiered local key-value storage: secure → persistent → memory."""

from src.storage.backends import (
    BackendError,
    KeyValueBackend,
    MemoryBackend,
    PersistentBackend,
    SecureBackend,
)
from src.storage.service import (
    StorageError,
    StorageService,
    StorageStatus,
    get_storage,
    reset_storage,
)

__all__ = [
    "BackendError",
    "KeyValueBackend",
    "MemoryBackend",
    "PersistentBackend",
    "SecureBackend",
    "StorageError",
    "StorageService",
    "StorageStatus",
    "get_storage",
    "reset_storage",
]
