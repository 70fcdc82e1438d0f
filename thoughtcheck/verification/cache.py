"""Size-bounded LRU cache and content fingerprints used as cache keys."""

import hashlib
import threading
from collections import OrderedDict
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")


class BoundedRecencyCache(Generic[K, V]):
    """Fixed-capacity cache that evicts the least recently used entry.

    ``get`` on a hit promotes the entry. There is no expiry and no eviction
    callback. A per-instance lock keeps lookup-then-promote atomic when a
    pipeline is shared across threads.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: K) -> V | None:
        with self._lock:
            if key not in self._entries:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]

    def put(self, key: K, value: V) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.capacity:
                self._entries.popitem(last=False)
            self._entries[key] = value

    def has(self, key: K) -> bool:
        """Membership test without promotion."""
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]


def fingerprint(text: str, session_id: str | None = None) -> str:
    """Deterministic cache key for a text, optionally scoped to a session."""
    payload = text if session_id is None else f"{session_id}\x00{text}"
    return hashlib.md5(payload.encode("utf-8")).hexdigest()
