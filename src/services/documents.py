"""Document store: per-collection JSON documents with simple queries.

Collections are addressed by path, e.g. ``profiles`` or
``users/{user_id}/tracker_periods``.  Each document is a flat JSON object
identified by ``(collection, doc_id)``.  Reads return the stored fields
plus ``id``.

Two implementations:

    PostgresDocumentStore  asyncpg pool over a single ``documents`` table
    MemoryDocumentStore    process-local dicts, for development and tests

Usage::

    store = get_document_store()
    doc_id = await store.add(user_collection(uid, "tracker_moods"), {"mood": "calm"})
    rows = await store.query(
        user_collection(uid, "tracker_moods"),
        filters=[Filter("date", ">=", "2026-01-01")],
        order_by="date",
        descending=True,
    )
"""

from __future__ import annotations

import copy
import json
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import asyncpg

from src.config import Settings, get_settings

logger = logging.getLogger("healthpath.db")

OPERATORS = ("==", ">=", "<=", ">", "<")

PROFILES = "profiles"


def user_collection(user_id: str, name: str) -> str:
    return f"users/{user_id}/{name}"


@dataclass(frozen=True)
class Filter:
    """A single ``field op value`` condition."""

    field: str
    op: str
    value: Any

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator {self.op!r}")

    def matches(self, doc: dict[str, Any]) -> bool:
        if self.field not in doc:
            return False
        current = doc[self.field]
        try:
            if self.op == "==":
                return current == self.value
            if self.op == ">=":
                return current >= self.value
            if self.op == "<=":
                return current <= self.value
            if self.op == ">":
                return current > self.value
            return current < self.value
        except TypeError:
            return False


class DocumentStore(ABC):
    """Async read / write / query interface over document collections."""

    @abstractmethod
    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Insert a document under a generated id and return the id."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> dict[str, Any]:
        """Create or replace a document (or update its fields when ``merge``)."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Documents matching every filter.

        When ``order_by`` is given, documents lacking that field are excluded.
        """

    async def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class MemoryDocumentStore(DocumentStore):
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    @staticmethod
    def _with_id(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
        return {**copy.deepcopy(data), "id": doc_id}

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        return self._with_id(doc_id, doc) if doc is not None else None

    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> dict[str, Any]:
        docs = self._collections.setdefault(collection, {})
        body = {k: v for k, v in data.items() if k != "id"}
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(body))
        else:
            docs[doc_id] = copy.deepcopy(body)
        return self._with_id(doc_id, docs[doc_id])

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collections.get(collection, {}).pop(doc_id, None) is not None

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = [
            self._with_id(doc_id, doc)
            for doc_id, doc in self._collections.get(collection, {}).items()
            if all(f.matches(doc) for f in filters)
        ]
        if order_by:
            rows = [r for r in rows if r.get(order_by) is not None]
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        return rows[:limit] if limit is not None else rows


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

# Module-level connection pool, initialized once at app startup
_pool: asyncpg.Pool | None = None

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (collection, doc_id)
);
"""


async def init_pool(settings: Settings | None = None) -> asyncpg.Pool:
    """Create the asyncpg connection pool and ensure the schema. Call once at startup."""
    global _pool
    s = settings or get_settings()
    if not s.database_url:
        raise RuntimeError("DATABASE_URL must be set when DOCUMENT_STORE=postgres")
    _pool = await asyncpg.create_pool(
        s.database_url,
        min_size=s.db_pool_min_size,
        max_size=s.db_pool_max_size,
        command_timeout=s.db_command_timeout,
    )
    async with _pool.acquire() as conn:
        await conn.execute(SCHEMA)
    logger.info(
        "Database pool initialized (min=%d, max=%d)", s.db_pool_min_size, s.db_pool_max_size
    )
    return _pool


async def close_pool() -> None:
    """Drain the pool. Call at app shutdown."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database pool not initialized, call init_pool() first")
    return _pool


def _as_text(value: Any) -> str:
    """Render a filter value the way ``data ->> field`` renders stored JSON."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _row_to_doc(record: asyncpg.Record) -> dict[str, Any]:
    data = record["data"]
    doc = json.loads(data) if isinstance(data, str) else dict(data)
    doc["id"] = record["doc_id"]
    return doc


class PostgresDocumentStore(DocumentStore):
    """Documents as JSONB rows; field names and values are always bound parameters."""

    def __init__(self, pool: asyncpg.Pool | None = None) -> None:
        self._pool = pool

    @property
    def pool(self) -> asyncpg.Pool:
        return self._pool or get_pool()

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self.set(collection, doc_id, data)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        row = await self.pool.fetchrow(
            "SELECT doc_id, data FROM documents WHERE collection = $1 AND doc_id = $2",
            collection,
            doc_id,
        )
        return _row_to_doc(row) if row else None

    async def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False
    ) -> dict[str, Any]:
        body = json.dumps({k: v for k, v in data.items() if k != "id"}, default=str)
        update = "documents.data || EXCLUDED.data" if merge else "EXCLUDED.data"
        row = await self.pool.fetchrow(
            f"""
            INSERT INTO documents (collection, doc_id, data)
            VALUES ($1, $2, $3::jsonb)
            ON CONFLICT (collection, doc_id)
            DO UPDATE SET data = {update}, updated_at = NOW()
            RETURNING doc_id, data
            """,
            collection,
            doc_id,
            body,
        )
        return _row_to_doc(row)

    async def delete(self, collection: str, doc_id: str) -> bool:
        status = await self.pool.execute(
            "DELETE FROM documents WHERE collection = $1 AND doc_id = $2",
            collection,
            doc_id,
        )
        return status.endswith(" 1")

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        clauses = ["collection = $1"]
        args: list[Any] = [collection]
        for f in filters:
            sql_op = "=" if f.op == "==" else f.op
            args.extend([f.field, _as_text(f.value)])
            clauses.append(f"(data ->> ${len(args) - 1}) {sql_op} ${len(args)}")

        sql = f"SELECT doc_id, data FROM documents WHERE {' AND '.join(clauses)}"
        if order_by:
            args.append(order_by)
            sql += f" AND (data ->> ${len(args)}) IS NOT NULL"
            sql += f" ORDER BY data ->> ${len(args)} {'DESC' if descending else 'ASC'}"
        if limit is not None:
            args.append(limit)
            sql += f" LIMIT ${len(args)}"

        rows = await self.pool.fetch(sql, *args)
        return [_row_to_doc(r) for r in rows]

    async def ping(self) -> bool:
        return await self.pool.fetchval("SELECT 1") == 1


# ---------------------------------------------------------------------------
# Process-wide store
# ---------------------------------------------------------------------------

_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """Return the configured store. Used directly and as a FastAPI dependency."""
    global _store
    if _store is None:
        backend = get_settings().document_store
        if backend == "postgres":
            _store = PostgresDocumentStore()
        elif backend == "memory":
            _store = MemoryDocumentStore()
        else:
            raise RuntimeError(f"Unknown DOCUMENT_STORE {backend!r} (expected postgres|memory)")
        logger.info("Using %s document store", backend)
    return _store


def set_document_store(store: DocumentStore | None) -> None:
    global _store
    _store = store
