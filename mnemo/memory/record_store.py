"""
SQLite Record Store.

The durable source of truth for memories. Every utterance is stored here
first; the vector index only ever mirrors what this store already holds.
Chronological history is served from here, which is why a memory whose
index write failed is still visible to the user.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Optional

from ..errors import RecordStoreError
from .base import Entities, MemoryRecord, RecordStore

logger = logging.getLogger("mnemo.memory.record_store")

# Keeps IN (...) lists under SQLite's bound-parameter limit
_LOOKUP_CHUNK = 500


def format_timestamp(value: datetime) -> str:
    """
    Fixed-width UTC timestamp so that string order equals time order.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f+00:00")


class SQLiteRecordStore(RecordStore):
    """
    SQLite-backed storage for memory records.

    Each call opens its own connection, so concurrent coroutines never
    share cursor state.
    """

    def __init__(self, db_path: str = "mnemo.db"):
        self.db_path = db_path
        self._initialized = False
        logger.info(f"SQLiteRecordStore configured with database: {db_path}")

    async def initialize(self) -> None:
        """Initialize the database schema."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS memories (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        owner_id TEXT NOT NULL,
                        raw_text TEXT NOT NULL,
                        people TEXT NOT NULL DEFAULT '[]',
                        activities TEXT NOT NULL DEFAULT '[]',
                        correlation_id TEXT NOT NULL UNIQUE,
                        created_at TIMESTAMP NOT NULL
                    )
                """)

                # Index for chronological history per owner
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_memories_owner_created
                    ON memories(owner_id, created_at DESC)
                """)

                conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to initialize record store: {e}") from e

        self._initialized = True
        count = await self.count()
        logger.info(f"SQLiteRecordStore initialized with {count} existing memories")

    def _ensure_initialized(self) -> None:
        """Ensure the store is initialized."""
        if not self._initialized:
            raise RuntimeError("SQLiteRecordStore not initialized. Call initialize() first.")

    def _row_to_record(self, row: sqlite3.Row) -> MemoryRecord:
        """Convert a database row to a MemoryRecord."""
        return MemoryRecord(
            id=str(row["id"]),
            owner_id=row["owner_id"],
            raw_text=row["raw_text"],
            entities=Entities.from_lists(
                people=json.loads(row["people"]),
                activities=json.loads(row["activities"]),
            ),
            correlation_id=row["correlation_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    async def insert(self, record: MemoryRecord) -> str:
        """Store a new memory record and return its ID."""
        self._ensure_initialized()

        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO memories
                    (owner_id, raw_text, people, activities, correlation_id, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.owner_id,
                        record.raw_text,
                        json.dumps(sorted(record.entities.people)),
                        json.dumps(sorted(record.entities.activities)),
                        record.correlation_id,
                        format_timestamp(record.created_at),
                    )
                )
                record_id = cursor.lastrowid
                conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Failed to insert memory {record.correlation_id}: {e}")
            raise RecordStoreError(f"Failed to insert memory: {e}") from e

        logger.info(f"Stored memory #{record_id} (correlation {record.correlation_id})")
        return str(record_id)

    async def find_by_correlation_ids(self, correlation_ids: set[str]) -> dict[str, MemoryRecord]:
        """Fetch all records for the given correlation IDs."""
        self._ensure_initialized()

        if not correlation_ids:
            return {}

        ids = sorted(correlation_ids)
        found: dict[str, MemoryRecord] = {}

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                for start in range(0, len(ids), _LOOKUP_CHUNK):
                    chunk = ids[start:start + _LOOKUP_CHUNK]
                    placeholders = ", ".join("?" for _ in chunk)
                    rows = conn.execute(
                        f"SELECT * FROM memories WHERE correlation_id IN ({placeholders})",
                        chunk,
                    ).fetchall()
                    for row in rows:
                        record = self._row_to_record(row)
                        found[record.correlation_id] = record
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to look up memories: {e}") from e

        return found

    async def list_by_owner(
        self,
        owner_id: str,
        newest_first: bool = True,
        limit: int = 20,
    ) -> list[MemoryRecord]:
        """Get one owner's memories in chronological order."""
        self._ensure_initialized()

        direction = "DESC" if newest_first else "ASC"

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    f"""
                    SELECT * FROM memories
                    WHERE owner_id = ?
                    ORDER BY created_at {direction}, id {direction}
                    LIMIT ?
                    """,
                    (owner_id, limit)
                ).fetchall()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to list memories: {e}") from e

        return [self._row_to_record(row) for row in rows]

    async def get(self, owner_id: str, record_id: str) -> Optional[MemoryRecord]:
        """Get a specific memory, only if it belongs to the owner."""
        self._ensure_initialized()

        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                row = conn.execute(
                    "SELECT * FROM memories WHERE id = ? AND owner_id = ?",
                    (record_id, owner_id)
                ).fetchone()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to get memory: {e}") from e

        if row:
            return self._row_to_record(row)
        return None

    async def delete(self, owner_id: str, record_id: str) -> bool:
        """Delete a memory. Returns False if the owner has no such memory."""
        self._ensure_initialized()

        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    "DELETE FROM memories WHERE id = ? AND owner_id = ?",
                    (record_id, owner_id)
                )
                conn.commit()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to delete memory: {e}") from e

        return cursor.rowcount > 0

    async def count(self, owner_id: Optional[str] = None) -> int:
        """Get number of stored memories."""
        self._ensure_initialized()

        try:
            with sqlite3.connect(self.db_path) as conn:
                if owner_id is None:
                    row = conn.execute("SELECT COUNT(*) FROM memories").fetchone()
                else:
                    row = conn.execute(
                        "SELECT COUNT(*) FROM memories WHERE owner_id = ?",
                        (owner_id,)
                    ).fetchone()
        except sqlite3.Error as e:
            raise RecordStoreError(f"Failed to count memories: {e}") from e

        return row[0]

    async def close(self) -> None:
        """Nothing to release; connections are per call."""
        self._initialized = False
        logger.info("SQLiteRecordStore closed")
