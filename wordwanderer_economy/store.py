"""Persistence for economy records.

``EconomyStore`` is the repository interface the service depends on. Two
implementations exist and one is chosen at construction time:

* ``SqliteEconomyStore`` — each public method is async and wraps a
  synchronous inner function via asyncio.run_in_executor(None, _sync).
  A new connection is created per call (WAL mode, 30s busy timeout,
  Row factory).
* ``MemoryEconomyStore`` — an explicit in-process map for development and
  tests.

Writes are compare-and-swap on a per-record revision so two writers can
never silently overwrite each other.
"""

from __future__ import annotations

import abc
import asyncio
import json
import logging
import sqlite3
from typing import Any

from .errors import InternalError

StoredRecord = tuple[dict[str, Any], int]


class EconomyStore(abc.ABC):
    """Keyed load/save of whole economy records."""

    async def initialize(self) -> None:
        """Prepare the backing storage. Idempotent."""

    async def close(self) -> None:
        """Release backing resources."""

    @abc.abstractmethod
    async def create(self, user_id: str, record: dict[str, Any]) -> bool:
        """Insert a record if none exists. Returns True if inserted."""

    @abc.abstractmethod
    async def load(self, user_id: str) -> StoredRecord | None:
        """Return ``(record, revision)`` or None if the user has no record."""

    @abc.abstractmethod
    async def save(self, user_id: str, record: dict[str, Any], expected_revision: int) -> bool:
        """Write *record* only if the stored revision still matches.

        Returns False on a revision conflict (or a missing record).
        """

    @abc.abstractmethod
    async def count_accounts(self) -> int:
        """Number of stored records."""


# ═══════════════════════════════════════════════════════════════
#  SQLite
# ═══════════════════════════════════════════════════════════════


class SqliteEconomyStore(EconomyStore):
    """SQLite-backed persistence for economy records."""

    def __init__(self, db_path: str, logger: logging.Logger) -> None:
        self._db_path = db_path
        self._logger = logger

    def _get_connection(self) -> sqlite3.Connection:
        """Create a new SQLite connection with standard settings."""
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.row_factory = sqlite3.Row
        return conn

    async def _run(self, fn, description: str):
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except sqlite3.Error as e:
            self._logger.exception("Database error during %s", description)
            raise InternalError(f"Persistence failure during {description}") from e

    async def initialize(self) -> None:
        """Create the records table. Idempotent."""
        await self._run(self._create_tables, "initialize")

    def _create_tables(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS economy_records (
                    user_id TEXT PRIMARY KEY,
                    record TEXT NOT NULL,
                    revision INTEGER NOT NULL DEFAULT 0,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()
        finally:
            conn.close()

    async def create(self, user_id: str, record: dict[str, Any]) -> bool:
        payload = json.dumps(record)

        def _sync() -> bool:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO economy_records (user_id, record) VALUES (?, ?)",
                    (user_id, payload),
                )
                conn.commit()
                return cursor.rowcount > 0
            finally:
                conn.close()

        return await self._run(_sync, "create")

    async def load(self, user_id: str) -> StoredRecord | None:
        def _sync() -> StoredRecord | None:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT record, revision FROM economy_records WHERE user_id = ?",
                    (user_id,),
                ).fetchone()
                if not row:
                    return None
                return json.loads(row["record"]), row["revision"]
            finally:
                conn.close()

        return await self._run(_sync, "load")

    async def save(self, user_id: str, record: dict[str, Any], expected_revision: int) -> bool:
        payload = json.dumps(record)

        def _sync() -> bool:
            conn = self._get_connection()
            try:
                cursor = conn.execute(
                    "UPDATE economy_records SET record = ?, revision = revision + 1, "
                    "updated_at = CURRENT_TIMESTAMP "
                    "WHERE user_id = ? AND revision = ?",
                    (payload, user_id, expected_revision),
                )
                if cursor.rowcount == 0:
                    conn.rollback()
                    return False
                conn.commit()
                return True
            finally:
                conn.close()

        return await self._run(_sync, "save")

    async def count_accounts(self) -> int:
        def _sync() -> int:
            conn = self._get_connection()
            try:
                row = conn.execute("SELECT COUNT(*) AS cnt FROM economy_records").fetchone()
                return row["cnt"]
            finally:
                conn.close()

        return await self._run(_sync, "count_accounts")


# ═══════════════════════════════════════════════════════════════
#  In-memory
# ═══════════════════════════════════════════════════════════════


class MemoryEconomyStore(EconomyStore):
    """Process-local store. Records are kept as JSON text so callers never share objects."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("economy.store")
        self._records: dict[str, tuple[str, int]] = {}

    async def create(self, user_id: str, record: dict[str, Any]) -> bool:
        if user_id in self._records:
            return False
        self._records[user_id] = (json.dumps(record), 0)
        return True

    async def load(self, user_id: str) -> StoredRecord | None:
        entry = self._records.get(user_id)
        if entry is None:
            return None
        payload, revision = entry
        return json.loads(payload), revision

    async def save(self, user_id: str, record: dict[str, Any], expected_revision: int) -> bool:
        entry = self._records.get(user_id)
        if entry is None or entry[1] != expected_revision:
            return False
        self._records[user_id] = (json.dumps(record), expected_revision + 1)
        return True

    async def count_accounts(self) -> int:
        return len(self._records)

    def raw(self, user_id: str) -> str | None:
        """Stored JSON text for *user_id* (for inspection and tests)."""
        entry = self._records.get(user_id)
        return entry[0] if entry else None


def create_store(backend: str, path: str, logger: logging.Logger) -> EconomyStore:
    """Build the configured store implementation."""
    if backend == "memory":
        return MemoryEconomyStore(logger)
    if backend == "sqlite":
        return SqliteEconomyStore(path, logger)
    raise ValueError(f"Unknown database backend: {backend}")
