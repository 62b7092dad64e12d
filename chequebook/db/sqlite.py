from __future__ import annotations

"""
SQLite-backed KV store
======================

Embedded KV on SQLite (BLOB keys & values) implementing the `KV` / `Batch`
protocols from `chequebook.db.kv`.

- Table schema: kv(k BLOB PRIMARY KEY, v BLOB NOT NULL)
- Ordering is lexicographic (memcmp) on keys.
- Prefix scans use a bounded range [prefix, prefix_hi) plus a
  `substr(k, 1, len(prefix)) = prefix` guard so they stay correct when no
  upper bound exists.

Pragmas: WAL journal, NORMAL sync. The ledger is tiny; no cache tuning.

Threading: one connection shared by all threads (`check_same_thread=False`),
guarded by an RLock. A batch holds that lock from BEGIN IMMEDIATE until
COMMIT/ROLLBACK, so its writes land together.
"""

import os
import sqlite3
import threading
from typing import Iterator, List, Optional, Tuple, Union

from .kv import KV, Batch, prefix_upper_bound

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "temp_store": "MEMORY",
}


def _apply_pragmas(conn: sqlite3.Connection, pragmas: Optional[dict] = None) -> None:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    cur = conn.cursor()
    for name, value in p.items():
        cur.execute(f"PRAGMA {name}={value}")
    cur.close()


def _migrate(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS kv (
            k BLOB PRIMARY KEY,
            v BLOB NOT NULL
        )
        """
    )


class SQLiteBatch(Batch):
    __slots__ = ("_conn", "_lock", "_open")

    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock) -> None:
        self._conn = conn
        self._lock = lock
        self._open = False

    def __enter__(self) -> "SQLiteBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._lock.acquire()
        try:
            self._conn.execute("BEGIN IMMEDIATE")
        except BaseException:
            self._lock.release()
            raise
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._conn.execute(
            "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
            (memoryview(key), memoryview(value)),
        )

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def commit(self) -> None:
        if not self._open:
            return
        self._conn.execute("COMMIT")
        self._open = False

    def rollback(self) -> None:
        if not self._open:
            return
        self._conn.execute("ROLLBACK")
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            if self._open:
                # COMMIT itself failed; leave no dangling transaction behind
                try:
                    self._conn.execute("ROLLBACK")
                finally:
                    self._open = False
            self._lock.release()
        return None


def _resolve_path(path: Union[str, "os.PathLike[str]"]) -> str:
    path_str = str(path)
    if path_str.startswith("sqlite:///"):
        # "sqlite:///rel.db" → "rel.db"; "sqlite:////abs/x.db" → "/abs/x.db"
        path_str = path_str[len("sqlite:///") :]
    return path_str or ":memory:"


class SQLiteKV(KV):
    """
    SQLite-backed KV. Use `open_sqlite_kv(path)` to construct.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    # --- ReadOnlyKV ---

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            cur = self._conn.execute("SELECT v FROM kv WHERE k = ?", (memoryview(key),))
            row = cur.fetchone()
            cur.close()
        return bytes(row[0]) if row is not None else None

    def has(self, key: bytes) -> bool:
        with self._lock:
            cur = self._conn.execute("SELECT 1 FROM kv WHERE k = ? LIMIT 1", (memoryview(key),))
            row = cur.fetchone()
            cur.close()
        return row is not None

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        hi = prefix_upper_bound(prefix)
        if hi is not None:
            sql = (
                "SELECT k, v FROM kv "
                "WHERE k >= ? AND k < ? AND substr(k,1,?) = ? "
                "ORDER BY k"
            )
            args: tuple = (memoryview(prefix), memoryview(hi), len(prefix), memoryview(prefix))
        else:
            sql = "SELECT k, v FROM kv WHERE substr(k,1,?) = ? ORDER BY k"
            args = (len(prefix), memoryview(prefix))

        # Materialize under the lock so a concurrent batch cannot interleave.
        with self._lock:
            cur = self._conn.execute(sql, args)
            try:
                rows: List[Tuple[bytes, bytes]] = [(bytes(k), bytes(v)) for k, v in cur]
            finally:
                cur.close()
        return iter(rows)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # --- KV ---

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv(k, v) VALUES(?, ?) ON CONFLICT(k) DO UPDATE SET v=excluded.v",
                (memoryview(key), memoryview(value)),
            )

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv WHERE k = ?", (memoryview(key),))

    def batch(self) -> Batch:
        return SQLiteBatch(self._conn, self._lock)


def open_sqlite_kv(
    path: Union[str, "os.PathLike[str]"],
    *,
    pragmas: Optional[dict] = None,
    create: bool = True,
) -> SQLiteKV:
    """
    Open (or create) a SQLite KV at `path` (plain path, ":memory:" or
    "sqlite:///..." URI). `create=False` raises if the file does not exist.
    """
    path_str = _resolve_path(path)
    if not create and path_str != ":memory:" and not os.path.exists(path_str):
        raise FileNotFoundError(f"SQLite KV not found at {path_str}")

    conn = sqlite3.connect(
        path_str,
        isolation_level=None,  # autocommit; batches BEGIN explicitly
        check_same_thread=False,
    )
    try:
        _apply_pragmas(conn, pragmas)
        _migrate(conn)
    except sqlite3.Error:
        # e.g. "file is not a database"
        conn.close()
        raise
    return SQLiteKV(conn)


__all__ = ["SQLiteKV", "SQLiteBatch", "open_sqlite_kv"]
