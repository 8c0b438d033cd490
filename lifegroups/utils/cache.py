from __future__ import annotations
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """In-memory TTL cache for Planning Center responses."""

    def __init__(self, ttl_minutes: float = 60, clock: Callable[[], float] = time.time):
        self.ttl_s = ttl_minutes * 60
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        v = self._store.get(key)
        if not v:
            return None
        ts, obj = v
        if self._clock() - ts > self.ttl_s:
            self._store.pop(key, None)
            return None
        return obj

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (self._clock(), value)

    def get_timestamp(self, key: str) -> Optional[float]:
        """Epoch seconds when `key` was last stored, if still cached."""
        if self.get(key) is None:
            return None
        return self._store[key][0]

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._store), "keys": sorted(self._store)}
