"""
cache/store.py -- Keyed-expiry stores for short-lived server-side state.

Password-reset codes live here. Two interchangeable backends share the
ExpiringStore interface:

  MemoryExpiringStore  -- process-local dict. Lost on restart and invisible
                          to other worker processes. Fine for a single
                          uvicorn worker.
  SQLiteExpiringStore  -- a small SQLite file. Survives restarts and is
                          shared by every worker on the same host.

Usage:
    store = MemoryExpiringStore()
    store.set("reset:ana@x.com", {"code": "123456"}, ttl=300)
    store.get("reset:ana@x.com")     # returns dict or None once expired
    store.purge_expired()            # call periodically to trim old entries
"""

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional

_DDL = """
CREATE TABLE IF NOT EXISTS expiring_entries (
    key         TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class ExpiringStore:
    """Interface for a key -> JSON-able dict store with per-entry expiry."""

    def get(self, key: str) -> Optional[dict]:
        raise NotImplementedError

    def set(self, key: str, data: dict, ttl: float) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def purge_expired(self) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MemoryExpiringStore(ExpiringStore):
    def __init__(self) -> None:
        self._entries: dict[str, tuple[dict, float]] = {}
        # Route handlers run in a thread pool; guard the dict.
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        """Return data for key if it exists and hasn't expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            data, expires_at = entry
            if time.time() >= expires_at:
                del self._entries[key]
                return None
            return dict(data)

    def set(self, key: str, data: dict, ttl: float) -> None:
        """Store data for key, replacing any existing entry."""
        with self._lock:
            self._entries[key] = (dict(data), time.time() + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of entries removed."""
        now = time.time()
        with self._lock:
            stale = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
            for k in stale:
                del self._entries[k]
        return len(stale)


class SQLiteExpiringStore(ExpiringStore):
    def __init__(self, db_path: Path) -> None:
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DDL)
        self._conn.commit()
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[dict]:
        """Return data for key if it exists and hasn't expired."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data, expires_at FROM expiring_entries WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        data, expires_at = row
        if time.time() >= expires_at:
            self.delete(key)
            return None
        return json.loads(data)

    def set(self, key: str, data: dict, ttl: float) -> None:
        """Store data for key, replacing any existing entry."""
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO expiring_entries (key, data, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(data), time.time() + ttl),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM expiring_entries WHERE key = ?", (key,))
            self._conn.commit()

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM expiring_entries WHERE expires_at <= ?", (time.time(),))
            self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()


def build_expiring_store(path: str) -> ExpiringStore:
    """Return a SQLite-backed store for a non-empty path, else a memory store."""
    if path:
        return SQLiteExpiringStore(Path(path))
    return MemoryExpiringStore()
