"""Tiered key-value storage with automatic fallback.

Writes go to the first tier that is ready and accepts them.  Reads return
the first non-None value found walking the tiers in order.  A tier that
raises is logged and skipped, so a broken keystore never takes the app
down while the in-memory tier is still available.

Usage::

    from src.storage import get_storage

    storage = get_storage()
    storage.set("session:abc", "token")
    storage.get("session:abc")       # "token"
    storage.status().preferred       # "secure" | "persistent" | "memory"
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from src.config import Settings, get_settings
from src.storage.backends import (
    KeyValueBackend,
    MemoryBackend,
    PersistentBackend,
    SecureBackend,
)

logger = logging.getLogger("healthpath.storage")

BackendFactory = Callable[[], KeyValueBackend]


class StorageError(RuntimeError):
    """Raised when no storage tier could complete an operation."""


@dataclass
class StorageStatus:
    """Snapshot of tier availability.

    Attributes:
        initialized: Tiers have been constructed.
        secure:      Encrypted tier is ready.
        persistent:  Plain file tier is ready.
        memory:      In-memory tier is ready.
        preferred:   Name of the first ready tier (where writes will land).
    """

    initialized: bool
    secure: bool
    persistent: bool
    memory: bool
    preferred: str | None


def default_factories(settings: Settings) -> list[BackendFactory]:
    return [
        lambda: SecureBackend(settings.secure_store_path, settings.storage_encryption_key),
        lambda: PersistentBackend(settings.persistent_store_path),
        MemoryBackend,
    ]


class StorageService:
    """Fallback chain over key-value tiers, most protected first."""

    def __init__(self, factories: Sequence[BackendFactory] | None = None) -> None:
        self._factories = list(factories) if factories is not None else None
        self._tiers: list[KeyValueBackend] = []
        self._initialized = False
        self._init_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Construct the tiers once; later calls are no-ops."""
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            factories = self._factories
            if factories is None:
                factories = default_factories(get_settings())
            tiers: list[KeyValueBackend] = []
            for factory in factories:
                try:
                    tiers.append(factory())
                except Exception as exc:
                    logger.warning("Storage tier unavailable, skipping: %s", exc)
            if not any(isinstance(t, MemoryBackend) for t in tiers):
                tiers.append(MemoryBackend())
            self._tiers = tiers
            self._initialized = True
            logger.info("Storage initialized with tiers: %s", [t.name for t in tiers])

    @property
    def tiers(self) -> list[KeyValueBackend]:
        self.initialize()
        return list(self._tiers)

    def _ready_tiers(self) -> list[KeyValueBackend]:
        ready = []
        for tier in self.tiers:
            try:
                if tier.is_ready():
                    ready.append(tier)
            except Exception as exc:
                logger.warning("Readiness check for %s failed: %s", tier.name, exc)
        return ready

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_key(key: str) -> None:
        if not isinstance(key, str) or not key.strip():
            raise ValueError("Storage key must be a non-empty string")

    def set(self, key: str, value: str) -> str:
        """Store ``value`` in the first tier that accepts it.

        Returns:
            Name of the tier that stored the value.

        Raises:
            ValueError:   Empty key or None value.
            StorageError: Every tier failed.
        """
        self._validate_key(key)
        if value is None:
            raise ValueError("Storage value must not be None")

        failures: list[str] = []
        skipped: list[KeyValueBackend] = []
        for tier in self._ready_tiers():
            try:
                tier.set(key, value)
            except Exception as exc:
                logger.warning("Storage set via %s failed for %s: %s", tier.name, key, exc)
                failures.append(f"{tier.name}: {exc}")
                skipped.append(tier)
                continue
            logger.debug("Stored %s in %s tier", key, tier.name)
            self._drop_stale(key, skipped)
            return tier.name

        logger.error("All storage tiers failed to set %s", key)
        raise StorageError(f"All storage tiers failed: {'; '.join(failures) or 'no tier ready'}")

    @staticmethod
    def _drop_stale(key: str, tiers: list[KeyValueBackend]) -> None:
        # a copy left above the tier that took the write would shadow it on read
        for tier in tiers:
            try:
                tier.delete(key)
            except Exception as exc:
                logger.warning(
                    "Could not clear stale %s from %s tier: %s", key, tier.name, exc
                )

    def get(self, key: str) -> str | None:
        """Return the first non-None value for ``key`` across tiers."""
        self._validate_key(key)
        for tier in self._ready_tiers():
            try:
                value = tier.get(key)
            except Exception as exc:
                logger.warning("Storage get via %s failed for %s: %s", tier.name, key, exc)
                continue
            if value is not None:
                return value
        return None

    def delete(self, key: str) -> None:
        """Remove ``key`` from every ready tier.

        Raises:
            StorageError: No tier managed to delete the key.
        """
        self._validate_key(key)
        failures: list[str] = []
        succeeded = 0
        for tier in self._ready_tiers():
            try:
                tier.delete(key)
                succeeded += 1
            except Exception as exc:
                logger.warning("Storage delete via %s failed for %s: %s", tier.name, key, exc)
                failures.append(f"{tier.name}: {exc}")
        if not succeeded:
            logger.error("All storage tiers failed to delete %s", key)
            raise StorageError(
                f"All storage tiers failed: {'; '.join(failures) or 'no tier ready'}"
            )

    def keys(self, prefix: str = "") -> list[str]:
        found: set[str] = set()
        for tier in self._ready_tiers():
            try:
                found.update(tier.keys(prefix))
            except Exception as exc:
                logger.warning("Key scan via %s failed: %s", tier.name, exc)
        return sorted(found)

    def get_json(self, key: str) -> Any:
        raw = self.get(key)
        return json.loads(raw) if raw is not None else None

    def set_json(self, key: str, value: Any) -> str:
        return self.set(key, json.dumps(value, default=str))

    def status(self) -> StorageStatus:
        ready = {t.name for t in self._ready_tiers()}
        preferred = next((t.name for t in self.tiers if t.name in ready), None)
        return StorageStatus(
            initialized=self._initialized,
            secure="secure" in ready,
            persistent="persistent" in ready,
            memory="memory" in ready,
            preferred=preferred,
        )


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_storage: StorageService | None = None
_storage_lock = threading.Lock()


def get_storage() -> StorageService:
    """Return the shared StorageService, creating it on first call."""
    global _storage
    if _storage is None:
        with _storage_lock:
            if _storage is None:
                _storage = StorageService()
    return _storage


def reset_storage(service: StorageService | None = None) -> None:
    """Replace (or drop) the shared instance. Used by tests and app startup."""
    global _storage
    with _storage_lock:
        _storage = service
