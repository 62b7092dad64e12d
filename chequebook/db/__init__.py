from __future__ import annotations

"""
chequebook.db
=============

Backend selection for the ledger KV store.

URIs
----
- "sqlite:///path/to/chequebook.db" → SQLite file
- "sqlite:///:memory:"              → in-memory SQLite
- "memory://"                       → in-process dict store (MemoryKV)
- bare path ending in ".db"         → SQLite file

Example
-------
>>> from chequebook.db import open_kv
>>> kv = open_kv("memory://")
>>> with kv.batch() as b:
...     b.put(b"k", b"hello")
>>> kv.get(b"k")
b'hello'
"""

from typing import Tuple

from .kv import KV, Batch, ReadOnlyKV, put_many
from .memory import MemoryKV
from .sqlite import SQLiteKV, open_sqlite_kv


def _parse_uri(uri: str) -> Tuple[str, str]:
    u = uri.strip()
    if u.startswith("memory://"):
        return ("memory", "")
    if u.startswith("sqlite:///"):
        return ("sqlite", u[len("sqlite:///") :])
    if u.endswith(".db") and "://" not in u:
        return ("sqlite", u)
    raise ValueError(f"Unsupported DB URI: {uri!r}")


def open_kv(uri: str, create: bool = True) -> KV:
    """
    Open a KV store by URI. See module docstring for supported forms.

    Raises ValueError for unsupported URIs; FileNotFoundError when
    `create=False` and the SQLite file is missing.
    """
    backend, target = _parse_uri(uri)
    if backend == "memory":
        return MemoryKV()
    return open_sqlite_kv(target or ":memory:", create=create)


__all__ = [
    "KV",
    "ReadOnlyKV",
    "Batch",
    "put_many",
    "MemoryKV",
    "SQLiteKV",
    "open_sqlite_kv",
    "open_kv",
]
