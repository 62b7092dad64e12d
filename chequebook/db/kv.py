from __future__ import annotations

"""
KV interface
============

Backend-agnostic key–value surface the chequebook persists its ledger into.
Keys and values are raw bytes; iteration is in lexicographic key order.

Batching
--------
`KV.batch()` returns a context manager. Writes made through it become
visible together when the block exits cleanly and are discarded if an
exception escapes:

>>> with kv.batch() as b:
...     b.put(b"chequebook_last_issued_cheque_..", blob)
...     b.put(b"chequebook_total_issued_", b"42")

Backends (sqlite, memory) implement these protocols; this file does no I/O.
"""

from typing import Iterable, Iterator, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class ReadOnlyKV(Protocol):
    """Minimal read-only KV surface."""

    def get(self, key: bytes) -> Optional[bytes]:
        """Fetch value or None if missing."""
        ...

    def has(self, key: bytes) -> bool:
        ...

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        """
        Iterate over (key, value) pairs whose key begins with `prefix`, in
        lexicographic byte order of keys.
        """
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Batch(Protocol):
    """Atomic write batch; rolled back if an exception escapes the context."""

    def put(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...

    def __enter__(self) -> "Batch": ...
    def __exit__(self, exc_type, exc, tb) -> Optional[bool]: ...


@runtime_checkable
class KV(ReadOnlyKV, Protocol):
    """Full RW KV surface."""

    def put(self, key: bytes, value: bytes) -> None:
        """Persist (key, value). Overwrites if exists."""
        ...

    def delete(self, key: bytes) -> None:
        """Remove key if present (idempotent)."""
        ...

    def batch(self) -> Batch:
        ...


def put_many(kv: KV, items: Iterable[Tuple[bytes, bytes]]) -> None:
    """Write many keys using a single batch."""
    with kv.batch() as b:
        for k, v in items:
            b.put(k, v)


def prefix_upper_bound(prefix: bytes) -> Optional[bytes]:
    """
    Smallest byte string strictly greater than every key starting with
    `prefix`, or None if there is none (empty or all-0xFF prefix).

    b"ab\\x01" -> b"ab\\x02"; b"\\xff\\xff" -> None
    """
    p = bytearray(prefix)
    for i in range(len(p) - 1, -1, -1):
        if p[i] != 0xFF:
            p[i] += 1
            del p[i + 1 :]
            return bytes(p)
    return None


__all__ = ["ReadOnlyKV", "KV", "Batch", "put_many", "prefix_upper_bound"]
