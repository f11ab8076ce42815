"""Size-bounded in-memory stores for process-local history.

Services receive these through their constructors instead of holding
module-level lists or dicts, so the owner decides the size and lifetime.

Usage:
    from app.utils.bounded_store import BoundedHistory, TTLStore

    history = BoundedHistory(max_items=100)
    history.extend(recommendations)
    history.recent(5)

    patterns = TTLStore(max_entries=500, default_ttl=3600)
    patterns.set("viral_123", {"score": 42})
"""
import threading
import time
from collections import deque
from typing import Any, Iterable, List


class BoundedHistory:
    """Thread-safe ring buffer; the oldest items drop off once full."""

    def __init__(self, max_items: int = 100):
        if max_items < 1:
            raise ValueError("max_items must be at least 1")
        self._items: deque = deque(maxlen=max_items)
        self._lock = threading.Lock()

    @property
    def max_items(self) -> int:
        return self._items.maxlen

    def append(self, item: Any) -> None:
        with self._lock:
            self._items.append(item)

    def extend(self, items: Iterable[Any]) -> None:
        with self._lock:
            self._items.extend(items)

    def recent(self, n: int) -> List[Any]:
        """Return up to the last n items, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._items)[-n:]

    def snapshot(self) -> List[Any]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class TTLStore:
    """Thread-safe in-memory store with TTL expiry and max-entry limit."""

    def __init__(self, max_entries: int = 500, default_ttl: int = 3600):
        self._store: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()
        self._max_entries = max_entries
        self._default_ttl = default_ttl

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if time.time() > expires_at:
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            if key not in self._store and len(self._store) >= self._max_entries:
                now = time.time()
                expired = [k for k, (exp, _) in self._store.items() if now > exp]
                for k in expired:
                    del self._store[k]
            # Still full: evict the entry closest to expiry
            if key not in self._store and len(self._store) >= self._max_entries:
                oldest_key = min(self._store, key=lambda k: self._store[k][0])
                del self._store[oldest_key]
            self._store[key] = (time.time() + ttl, value)

    def items(self) -> List[tuple[str, Any]]:
        """Live (non-expired) entries."""
        now = time.time()
        with self._lock:
            return [(k, v) for k, (exp, v) in self._store.items() if now <= exp]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self.items())
