"""SQLite connection layer with sqlite-vec extension."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import sqlite_vec


class Database:
    """Knowledge-base SQLite database with sqlite-vec vector search support.

    Connections are not shared between threads: the reconciler and each
    retrieval call open their own via :meth:`session`. WAL mode lets readers
    proceed while a reconciliation pass is writing.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Store the database path. Call connect() or session() to open it.

        Args:
            db_path: Path to the SQLite database file (created if missing).
        """
        self.db_path = Path(db_path)

    def connect(self) -> sqlite3.Connection:
        """Open a connection, load sqlite-vec, and return the connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Yield a fresh connection and close it afterwards."""
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()
