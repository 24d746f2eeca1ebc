"""Process-local cache for CMS responses.

The cache is best-effort and non-durable: entries are projections of
upstream truth, lost on restart, and never consulted as a source of truth.
Concurrent writers of the same key resolve by last write wins; staleness is
bounded by the TTL.
"""

import threading
import time
from typing import Any, Callable, Protocol


class ListingCache(Protocol):
    """Cache interface used by the content store client."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class TTLCache:
    """In-memory cache with a fixed time-to-live per entry.

    Usage:
        cache = TTLCache(ttl_seconds=300)
        cache.set("item:coll:123", {...})
        cache.get("item:coll:123")
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self._ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NullCache:
    """Cache that never stores anything. Useful for tests and debugging."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any) -> None:
        return None

    def delete(self, key: str) -> None:
        return None

    def clear(self) -> None:
        return None
