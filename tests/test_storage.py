"""Tests for the SQLite state storage."""

import sqlite3
import tempfile
import threading
from pathlib import Path

import pytest

from beam.sync.storage import StateStorage


class TestStateStorage:
    """Tests for StateStorage."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "nested" / "state.db"
        self.storage = StateStorage(db_path=self.db_path)

    def teardown_method(self):
        """Clean up."""
        self.storage.close()

    def test_creates_parent_directory(self):
        assert self.db_path.exists()

    def test_missing_key(self):
        assert self.storage.load("beam-storage") is None

    def test_save_and_load(self):
        self.storage.save("beam-storage", {"tasks": [{"id": "t-1"}], "version": 1})

        assert self.storage.load("beam-storage") == {"tasks": [{"id": "t-1"}], "version": 1}

    def test_save_overwrites(self):
        self.storage.save("beam-storage", {"tasks": []})
        self.storage.save("beam-storage", {"tasks": [1]})

        assert self.storage.load("beam-storage") == {"tasks": [1]}

    def test_delete(self):
        self.storage.save("beam-storage", {})

        assert self.storage.delete("beam-storage") is True
        assert self.storage.delete("beam-storage") is False
        assert self.storage.load("beam-storage") is None

    def test_corrupt_value_is_ignored(self):
        with self.storage._cursor() as cursor:
            cursor.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                ("beam-storage", "{not json", "2026-03-01T00:00:00+00:00"),
            )

        assert self.storage.load("beam-storage") is None

    def test_survives_reopen(self):
        self.storage.save("beam-storage", {"tasks": ["kept"]})
        self.storage.close()

        reopened = StateStorage(db_path=self.db_path)
        try:
            assert reopened.load("beam-storage") == {"tasks": ["kept"]}
        finally:
            reopened.close()

    def test_writes_from_other_threads(self):
        def writer():
            self.storage.save("from-thread", {"ok": True})
            self.storage.close()

        thread = threading.Thread(target=writer)
        thread.start()
        thread.join()

        assert self.storage.load("from-thread") == {"ok": True}

    def test_close_reaches_worker_thread_connections(self):
        opened = []

        def worker():
            self.storage.save("from-worker", {"ok": True})
            opened.append(self.storage._get_connection())

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        self.storage.close()

        assert self.storage._connections == []
        with pytest.raises(sqlite3.ProgrammingError):
            opened[0].execute("SELECT 1")

    def test_usable_after_close(self):
        self.storage.save("beam-storage", {"tasks": []})
        self.storage.close()

        self.storage.save("beam-storage", {"tasks": ["again"]})

        assert self.storage.load("beam-storage") == {"tasks": ["again"]}
