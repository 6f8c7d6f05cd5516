"""Durable key-value storage for the local store's state."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from ..config import Config

__all__ = ["StateStorage"]

logger = logging.getLogger(__name__)


class StateStorage:
    """JSON documents keyed by namespace, persisted to SQLite.

    The local store writes its whole state under one fixed key after every
    mutation and reads it back once at startup.

    Usage:
        storage = StateStorage()
        storage.save("beam-storage", {"tasks": []})
        state = storage.load("beam-storage")
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the storage.

        Args:
            db_path: Path to SQLite database file. Defaults to data dir.
        """
        if db_path is None:
            db_path = Config.get_data_dir() / "beam_state.db"

        self._db_path = db_path
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._generation = 0
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection.

        Every connection is also registered so that ``close()`` can reach
        the ones opened by worker threads. A thread whose connection was
        closed that way reconnects on its next call.
        """
        if getattr(self._local, "generation", None) != self._generation:
            conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            with self._connections_lock:
                self._connections.append(conn)
            self._local.connection = conn
            self._local.generation = self._generation
        return self._local.connection

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Context manager for database cursor."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_db(self) -> None:
        """Initialize the database schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def load(self, key: str) -> Optional[Any]:
        """Return the decoded document stored under ``key``, or None.

        A document that fails to decode is logged and treated as absent.
        """
        with self._cursor() as cursor:
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()

        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.error(f"Discarding corrupt state under '{key}': {e}")
            return None

    def save(self, key: str, value: Any) -> None:
        """Store ``value`` (JSON-serializable) under ``key``."""
        now = datetime.now(timezone.utc).isoformat()
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), now),
            )

    def delete(self, key: str) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            return cursor.rowcount > 0

    def close(self) -> None:
        """Close every connection opened by any thread."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
            self._generation += 1
        for conn in connections:
            conn.close()
        logger.debug(f"Closed {len(connections)} state storage connection(s)")
