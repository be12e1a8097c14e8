"""SQLite connection management for the mod cache."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from typing import Dict

SCHEMA_VERSION = "1"


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        """Return the shared connection for an existing cache file."""

        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
            return self._connections[path]

    def create(self, path: Path) -> sqlite3.Connection:
        """Open a private connection used to build a new cache generation."""

        path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        self._ensure_schema(conn)
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS mods (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                category TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                source_url TEXT,
                wiki_url TEXT,
                author TEXT,
                version TEXT,
                tags TEXT NOT NULL DEFAULT '[]',
                last_seen TEXT
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT
            )
            """
        )
        conn.execute(
            "INSERT OR REPLACE INTO meta(key, value) VALUES ('schema_version', ?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()

    def release(self, path: Path) -> None:
        """Drop the cached connection so the next read opens the current file."""

        with self._lock:
            conn = self._connections.pop(path, None)
        if conn is not None:
            conn.close()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


__all__ = ["SCHEMA_VERSION", "SQLiteManager"]
