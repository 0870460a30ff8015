"""SQLite connection layer for the herdsafe store (documents, chunks, herd records).

Connections load sqlite-vec for chunk embeddings, enforce foreign keys
(animal deletes cascade to logs and products) and run in WAL mode with a
busy timeout so the CLI and a scheduled sweep can share one database file.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

DEFAULT_BUSY_TIMEOUT_MS = 5_000


class Database:
    """Opens connections to one herdsafe database file.

    Args:
        db_path: SQLite file; it and its parent directory are created on connect.
        busy_timeout_ms: How long a writer waits for a competing lock.
    """

    def __init__(self, db_path: Path | str, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_ms / 1000)
        conn.row_factory = sqlite3.Row

        conn.enable_load_extension(True)
        try:
            sqlite_vec.load(conn)
        finally:
            conn.enable_load_extension(False)

        for pragma in (
            "foreign_keys = ON",
            "journal_mode = WAL",
            f"busy_timeout = {int(self.busy_timeout_ms)}",
        ):
            conn.execute(f"PRAGMA {pragma}")
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.connect()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
