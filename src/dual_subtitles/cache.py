from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class TTLCache:
    """Very small in-memory cache with TTL semantics.

    Optionally bounds the number of items via ``max_size``; when exceeded on
    set(), entries closest to expiry are dropped first.
    """

    def __init__(
        self,
        default_ttl: float = 600.0,
        max_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._lock = threading.Lock()
        self._store: Dict[Any, Tuple[float, Any]] = {}

    def get(self, key: Any) -> Optional[Any]:
        with self._lock:
            item = self._store.get(key)
            if not item:
                return None
            expiry, value = item
            if expiry < self._clock():
                del self._store[key]
                return None
            return value

    def set(self, key: Any, value: Any, ttl: Optional[float] = None) -> None:
        ttl_value = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._store[key] = (self._clock() + ttl_value, value)
            if self._max_size is not None and len(self._store) > self._max_size:
                now = self._clock()
                for k in [k for k, (exp, _v) in self._store.items() if exp < now]:
                    self._store.pop(k, None)
                if len(self._store) > self._max_size:
                    by_expiry = sorted(self._store.items(), key=lambda kv: kv[1][0])
                    for k, _ in by_expiry[: len(self._store) - self._max_size]:
                        self._store.pop(k, None)
