from __future__ import annotations

"""
In-process KV store
===================

Dict-backed implementation of the `KV` protocol for tests and ephemeral
deployments. A single RLock guards the map; batches buffer their writes and
apply them under the lock on commit, so readers never see half a batch.
"""

import threading
from typing import Dict, Iterator, List, Optional, Tuple

from .kv import Batch, KV

_DELETED = object()


class MemoryBatch(Batch):
    __slots__ = ("_kv", "_ops", "_open")

    def __init__(self, kv: "MemoryKV") -> None:
        self._kv = kv
        self._ops: List[Tuple[bytes, object]] = []
        self._open = False

    def __enter__(self) -> "MemoryBatch":
        if self._open:
            raise RuntimeError("batch already open (nested batches not supported)")
        self._open = True
        return self

    def put(self, key: bytes, value: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((bytes(key), bytes(value)))

    def delete(self, key: bytes) -> None:
        if not self._open:
            raise RuntimeError("batch not open")
        self._ops.append((bytes(key), _DELETED))

    def commit(self) -> None:
        if not self._open:
            return
        self._kv._apply(self._ops)
        self._ops = []
        self._open = False

    def rollback(self) -> None:
        self._ops = []
        self._open = False

    def __exit__(self, exc_type, exc, tb) -> Optional[bool]:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return None


class MemoryKV(KV):
    """Thread-safe in-memory KV."""

    def __init__(self) -> None:
        self._data: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._data.get(bytes(key))

    def has(self, key: bytes) -> bool:
        with self._lock:
            return bytes(key) in self._data

    def iter_prefix(self, prefix: bytes) -> Iterator[Tuple[bytes, bytes]]:
        # Snapshot under the lock; iteration itself runs unlocked.
        with self._lock:
            items = sorted((k, v) for k, v in self._data.items() if k.startswith(prefix))
        return iter(items)

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._data[bytes(key)] = bytes(value)

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._data.pop(bytes(key), None)

    def batch(self) -> Batch:
        return MemoryBatch(self)

    def close(self) -> None:
        pass

    def _apply(self, ops: List[Tuple[bytes, object]]) -> None:
        with self._lock:
            for k, v in ops:
                if v is _DELETED:
                    self._data.pop(k, None)
                else:
                    self._data[k] = v  # type: ignore[assignment]


__all__ = ["MemoryKV", "MemoryBatch"]
