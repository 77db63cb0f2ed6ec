"""Cache implementations for infrastructure.

Usage example:
    from profile_lookup.infrastructure.cache import TtlCache

    cache = TtlCache(ttl_seconds=300)
    cache.set("user_jack", {"data": {"id": "12"}})
    cached = cache.get("user_jack")
"""

from __future__ import annotations

import threading
import time
from typing_extensions import override

from ..protocols import ResponseCache
from ..types import CacheEntry, Clock

DEFAULT_TTL_SECONDS = 300.0


class TtlCache(ResponseCache):
    """In-memory cache whose entries expire a fixed time after insertion.

    Expiry is checked on read; `sweep()` physically drops stale entries.
    """

    def __init__(
        self, *, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Clock = time.time
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @override
    def get(self, key: str) -> dict[str, object] | None:
        entry = self.get_entry(key)
        return None if entry is None else entry.value

    @override
    def get_entry(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                return None
            return entry

    @override
    def set(self, key: str, value: dict[str, object]) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, stored_at=self._clock())

    @override
    def has(self, key: str) -> bool:
        return self.get_entry(key) is not None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if self._is_expired(entry, now)]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds
