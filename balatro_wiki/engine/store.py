"""On-disk snapshot of mod records with atomic generation swaps."""

from __future__ import annotations

import json
import os
import sqlite3
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from threading import Lock
from typing import Iterable

import structlog

from ..errors import StoreError
from ..infra.storage import SQLiteManager
from .records import ModRecord, utcnow
from .text import normalize_id

_COLUMNS = (
    "id",
    "name",
    "category",
    "description",
    "source_url",
    "wiki_url",
    "author",
    "version",
    "tags",
    "last_seen",
)


def _row_to_record(row: sqlite3.Row) -> ModRecord:
    last_seen = row["last_seen"]
    return ModRecord(
        id=row["id"],
        name=row["name"],
        category=row["category"],
        description=row["description"] or "",
        source_url=row["source_url"],
        wiki_url=row["wiki_url"],
        author=row["author"],
        version=row["version"],
        tags=tuple(json.loads(row["tags"] or "[]")),
        last_seen=datetime.fromisoformat(last_seen) if last_seen else None,
    )


def _record_to_row(record: ModRecord) -> tuple:
    return (
        record.id,
        record.name,
        record.category,
        record.description,
        record.source_url,
        record.wiki_url,
        record.author,
        record.version,
        json.dumps(list(record.tags), ensure_ascii=False),
        record.last_seen.isoformat() if record.last_seen else None,
    )


class ModStore:
    """Read-many, write-rare cache of ``ModRecord`` keyed by id.

    Writers never touch the live file: a complete new generation is written
    beside it and renamed over it, so readers observe either the previous or
    the new record set.
    """

    def __init__(
        self,
        path: Path,
        manager: SQLiteManager | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.path = path
        self.manager = manager or SQLiteManager()
        self.logger = logger or structlog.get_logger("balatro_wiki.store")
        self._lock = Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def replace_all(self, records: Iterable[ModRecord], updated_at: datetime | None = None) -> None:
        updated_at = updated_at or utcnow()
        rows = [_record_to_row(record) for record in records]
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f"{self.path.name}.", suffix=".tmp", dir=self.path.parent
                )
                os.close(fd)
            except OSError as exc:
                raise StoreError(f"Cannot prepare cache directory {self.path.parent}: {exc}") from exc
            tmp_path = Path(tmp_name)
            try:
                conn = self.manager.create(tmp_path)
                try:
                    placeholders = ", ".join("?" for _ in _COLUMNS)
                    conn.executemany(
                        f"INSERT OR REPLACE INTO mods({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                        rows,
                    )
                    conn.execute(
                        "INSERT OR REPLACE INTO meta(key, value) VALUES ('updated_at', ?)",
                        (updated_at.isoformat(),),
                    )
                    conn.commit()
                finally:
                    conn.close()
                with tmp_path.open("rb+") as stream:
                    os.fsync(stream.fileno())
                os.replace(tmp_path, self.path)
            except (OSError, sqlite3.Error) as exc:
                tmp_path.unlink(missing_ok=True)
                self.logger.error("cache_write_failed", path=str(self.path), error=str(exc))
                raise StoreError(f"Cannot write cache {self.path}: {exc}") from exc
            self.manager.release(self.path)
        self.logger.info("cache_replaced", path=str(self.path), records=len(rows))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, record_id: str) -> ModRecord | None:
        rows = self._query("SELECT * FROM mods WHERE id = ?", (normalize_id(record_id),))
        return _row_to_record(rows[0]) if rows else None

    def list(self) -> list[ModRecord]:
        return [_row_to_record(row) for row in self._query("SELECT * FROM mods ORDER BY id")]

    def count(self) -> int:
        rows = self._query("SELECT count(*) AS total FROM mods")
        return int(rows[0]["total"]) if rows else 0

    def freshness(self) -> datetime | None:
        rows = self._query("SELECT value FROM meta WHERE key = 'updated_at'")
        if not rows or not rows[0]["value"]:
            return None
        return datetime.fromisoformat(rows[0]["value"])

    def age(self, now: datetime | None = None) -> timedelta | None:
        stamp = self.freshness()
        if stamp is None:
            return None
        return (now or utcnow()) - stamp

    def _query(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        if not self.path.exists():
            return []
        with self._lock:
            try:
                conn = self.manager.connect(self.path)
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                self.manager.release(self.path)
                raise StoreError(f"Cannot read cache {self.path}: {exc}") from exc


__all__ = ["ModStore"]
