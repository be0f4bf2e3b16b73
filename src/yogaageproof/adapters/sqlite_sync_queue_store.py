"""Durable SQLite table backing the photo sync queue."""

import sqlite3
import threading
from datetime import datetime
from pathlib import Path

from yogaageproof.domain.photos import SyncQueueItem
from yogaageproof.services.sync_queue import SyncQueueStore


class SqliteSyncQueueStore(SyncQueueStore):
    """Pending uploads kept in a local SQLite file so they survive restarts."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self.init_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def init_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute("PRAGMA user_version")
            version = int(cur.fetchone()[0])
            if version < 1:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sync_queue (
                      photo_id TEXT PRIMARY KEY,
                      user_id TEXT NOT NULL,
                      local_reference TEXT NOT NULL,
                      enqueued_at TEXT NOT NULL,
                      retry_count INTEGER NOT NULL DEFAULT 0
                    )
                    """
                )
                cur.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
            self._conn.commit()

    def load(self) -> list[SyncQueueItem]:
        """Return queued items in insertion order."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT photo_id, user_id, local_reference, enqueued_at, retry_count "
                "FROM sync_queue ORDER BY rowid"
            ).fetchall()
        return [
            SyncQueueItem(
                photo_id=row["photo_id"],
                user_id=row["user_id"],
                local_reference=row["local_reference"],
                enqueued_at=datetime.fromisoformat(row["enqueued_at"]),
                retry_count=int(row["retry_count"]),
            )
            for row in rows
        ]

    def add(self, item: SyncQueueItem) -> bool:
        """Insert an item; returns False when the photo is already queued."""
        with self._lock:
            cur = self._conn.execute(
                "INSERT OR IGNORE INTO sync_queue "
                "(photo_id, user_id, local_reference, enqueued_at, retry_count) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    item.photo_id,
                    item.user_id,
                    item.local_reference,
                    item.enqueued_at.isoformat(),
                    item.retry_count,
                ),
            )
            self._conn.commit()
            return cur.rowcount == 1

    def remove(self, photo_id: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM sync_queue WHERE photo_id = ?", (photo_id,))
            self._conn.commit()

    def update_retry(self, photo_id: str, retry_count: int) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE sync_queue SET retry_count = ? WHERE photo_id = ?",
                (retry_count, photo_id),
            )
            self._conn.commit()

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM sync_queue")
            self._conn.commit()
