"""
SQLite-backed session storage.

Lets a dry run in one CLI invocation be applied by a later invocation of the
same session. Entries are namespaced by session id and dropped together by
end_session().
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .storage import KeyValueStorage


class SqliteSessionStorage(KeyValueStorage):
    """
    Key/value storage in a SQLite table, scoped to one session id.

    Thread-safe for single-writer scenarios.
    """

    def __init__(self, db_path: Path | str, session_id: str = "default"):
        """
        Initialize session storage.

        Args:
            db_path: Path to SQLite database file
            session_id: Session whose entries this instance reads and writes
        """
        self.db_path = Path(db_path)
        self.session_id = session_id
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session_storage (
                    session_id TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (session_id, key)
                )
            """
            )

    def set_item(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO session_storage (session_id, key, value, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(session_id, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """,
                (self.session_id, key, value, now),
            )

    def get_item(self, key: str) -> Optional[str]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT value FROM session_storage WHERE session_id = ? AND key = ?",
                (self.session_id, key),
            ).fetchone()
        return row["value"] if row else None

    def remove_item(self, key: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "DELETE FROM session_storage WHERE session_id = ? AND key = ?",
                (self.session_id, key),
            )

    def end_session(self) -> int:
        """Drop every entry of this session. Returns the number removed."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM session_storage WHERE session_id = ?", (self.session_id,)
            )
            return cursor.rowcount
