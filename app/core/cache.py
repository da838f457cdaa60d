"""
Small in-process read caches.

Each slot has its own TTL and lock. There is no automatic invalidation: the
admin handler that writes the underlying rows calls ``invalidate`` itself.
"""

import threading
import time
from typing import Any, Callable, Optional

_MISSING = object()


class TTLCache:
    """Single-slot cache with an injectable clock."""

    def __init__(self, name: str, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._value: Any = _MISSING
        self._stored_at = 0.0

    def _lookup(self) -> Any:
        with self._lock:
            if self._value is not _MISSING and self._clock() - self._stored_at >= self.ttl_seconds:
                self._value = _MISSING
            return self._value

    def get(self) -> Optional[Any]:
        value = self._lookup()
        return None if value is _MISSING else value

    def set(self, value: Any) -> None:
        with self._lock:
            self._value = value
            self._stored_at = self._clock()

    def invalidate(self) -> None:
        with self._lock:
            self._value = _MISSING

    def get_or_load(self, loader: Callable[[], Any]) -> Any:
        value = self._lookup()
        if value is _MISSING:
            value = loader()
            self.set(value)
        return value


class NullCache(TTLCache):
    """Never stores anything."""

    def __init__(self, name: str = "null"):
        super().__init__(name, 0)

    def _lookup(self):
        return _MISSING

    def set(self, value) -> None:
        return None
