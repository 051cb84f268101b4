"""Key-value backends used as storage tiers.

Three tiers, most protected first:

    SecureBackend      Fernet-encrypted values in a SQLite file
    PersistentBackend  plain SQLite file
    MemoryBackend      process-local dict, lost on restart

All of them store ``str`` values.  Callers serialise structured data to JSON.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger("healthpath.storage.backends")


class BackendError(RuntimeError):
    """A single tier failed to complete an operation."""


class KeyValueBackend(ABC):
    """One tier of the storage fallback chain."""

    name: str = "base"

    @abstractmethod
    def is_ready(self) -> bool:
        """Return True if the tier can currently serve reads and writes."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]: ...


class MemoryBackend(KeyValueBackend):
    name = "memory"

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def is_ready(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class PersistentBackend(KeyValueBackend):
    """Values kept in a single-table SQLite file."""

    name = "persistent"

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._path)
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def is_ready(self) -> bool:
        try:
            with self._conn() as conn:
                conn.execute("SELECT 1 FROM kv_store LIMIT 1")
        except sqlite3.Error as exc:
            logger.warning("%s store at %s not ready: %s", self.name, self._path, exc)
            return False
        return True

    def _encode(self, value: str) -> str:
        return value

    def _decode(self, stored: str) -> str:
        return stored

    def get(self, key: str) -> str | None:
        try:
            with self._conn() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise BackendError(f"read failed: {exc}") from exc
        return self._decode(row[0]) if row else None

    def set(self, key: str, value: str) -> None:
        encoded = self._encode(value)
        try:
            with self._conn() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                   updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, encoded),
                )
        except sqlite3.Error as exc:
            raise BackendError(f"write failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._conn() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise BackendError(f"delete failed: {exc}") from exc

    def keys(self, prefix: str = "") -> list[str]:
        # LIKE treats % and _ as wildcards, so filter the prefix in Python
        try:
            with self._conn() as conn:
                rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as exc:
            raise BackendError(f"key scan failed: {exc}") from exc
        return [r[0] for r in rows if r[0].startswith(prefix)]


def derive_fernet_key(secret: str) -> bytes:
    """Turn an arbitrary secret string into a valid Fernet key."""
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class SecureBackend(PersistentBackend):
    """Like PersistentBackend, but every value is Fernet-encrypted at rest."""

    name = "secure"

    def __init__(self, path: Path, secret: str) -> None:
        if not secret:
            raise ValueError("secure storage requires an encryption key")
        self._fernet = Fernet(derive_fernet_key(secret))
        super().__init__(path)

    def _encode(self, value: str) -> str:
        return self._fernet.encrypt(value.encode("utf-8")).decode("ascii")

    def _decode(self, stored: str) -> str:
        try:
            return self._fernet.decrypt(stored.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise BackendError("stored value could not be decrypted") from exc
