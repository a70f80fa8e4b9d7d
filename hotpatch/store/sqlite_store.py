"""
SQLite artifact storage.

All artifacts live in a single table:

    code_store(key TEXT PRIMARY KEY, code BLOB, created_at INTEGER)

store() is an upsert; each write runs in its own transaction so a failed
write never leaves a half-written row behind.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from ..errors import StorageIOError
from .base import ArtifactStore, compress, decompress

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "codevault.db"

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS code_store (
    key TEXT PRIMARY KEY,
    code BLOB NOT NULL,
    created_at INTEGER NOT NULL
)
"""


class SqliteArtifactStore(ArtifactStore):
    """Compressed blobs in one SQLite table."""

    backend = "sqlite"

    def __init__(self, base_dir: Path | str, db_name: str = DEFAULT_DB_NAME):
        """
        Open (and create if needed) the artifact database.

        Args:
            base_dir: Directory holding the database file
            db_name: Database file name inside base_dir
        """
        self.base_dir = Path(base_dir)
        self.db_path = self.base_dir / db_name
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            # The shell's background watcher reloads from its own thread.
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                self.db_path, check_same_thread=False
            )
            with self._conn:
                self._conn.execute(_SCHEMA_SQL)
        except (OSError, sqlite3.Error) as e:
            raise StorageIOError(f"Cannot open artifact database {self.db_path}: {e}") from e
        logger.debug("Artifact database ready: %s", self.db_path)

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageIOError(f"Artifact database is closed: {self.db_path}")
        return self._conn

    def store(self, key: str, payload: bytes | str) -> None:
        blob = compress(payload)
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO code_store (key, code, created_at) VALUES (?, ?, ?)",
                    (key, blob, int(time.time() * 1000)),
                )
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to write artifact {key}: {e}") from e
        logger.debug("Stored %s (%d compressed bytes)", key, len(blob))

    def load(self, key: str) -> bytes | None:
        try:
            row = self.conn.execute(
                "SELECT code FROM code_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to read artifact {key}: {e}") from e
        if row is None:
            return None
        return decompress(row[0])

    def exists(self, key: str) -> bool:
        try:
            row = self.conn.execute(
                "SELECT 1 FROM code_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to query artifact {key}: {e}") from e
        return row is not None

    def remove(self, key: str) -> None:
        try:
            with self.conn:
                self.conn.execute("DELETE FROM code_store WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to remove artifact {key}: {e}") from e

    def keys(self) -> list[str]:
        try:
            rows = self.conn.execute("SELECT key FROM code_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to list artifacts: {e}") from e
        return [r[0] for r in rows]

    def created_at(self, key: str) -> int | None:
        """Millisecond timestamp of the last write to key, or None."""
        try:
            row = self.conn.execute(
                "SELECT created_at FROM code_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageIOError(f"Failed to query artifact {key}: {e}") from e
        return row[0] if row else None

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
