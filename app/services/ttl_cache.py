"""Process-local keyed cache with a per-key time to live."""

from __future__ import annotations

import heapq
import threading
from datetime import datetime, timedelta
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

from app.utils.time import Clock, utcnow

V = TypeVar("V")

_COMPACT_SLACK = 64


class TTLCache(Generic[V]):
    """
    Thread-safe dictionary whose entries expire individually.

    Expiry times are also kept in a min-heap. Every ``set`` first drains the
    entries whose time has passed, so keys that are never read again do not
    linger. ``max_entries`` caps the live size on top of that.
    """

    def __init__(self, *, clock: Clock = utcnow, max_entries: int | None = None) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._clock = clock
        self._max_entries = max_entries
        self._entries: Dict[str, Tuple[V, datetime]] = {}
        # May hold stale pairs for overwritten or deleted keys; _drain skips them.
        self._expiries: List[Tuple[datetime, str]] = []
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int | None:
        return self._max_entries

    def _live(self, key: str, now: datetime) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if now >= expires_at:
            del self._entries[key]
            return None
        return value

    def _drain(self, now: datetime) -> int:
        removed = 0
        while self._expiries and now >= self._expiries[0][0]:
            expires_at, key = heapq.heappop(self._expiries)
            entry = self._entries.get(key)
            if entry is not None and entry[1] == expires_at:
                del self._entries[key]
                removed += 1
        return removed

    def _compact(self) -> None:
        self._expiries = [(expires_at, key) for key, (_, expires_at) in self._entries.items()]
        heapq.heapify(self._expiries)

    def set(self, key: str, value: V, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds)
        with self._lock:
            self._drain(now)
            if (
                self._max_entries is not None
                and key not in self._entries
                and len(self._entries) >= self._max_entries
            ):
                soonest = min(self._entries, key=lambda k: self._entries[k][1])
                del self._entries[soonest]
            self._entries[key] = (value, expires_at)
            heapq.heappush(self._expiries, (expires_at, key))
            if len(self._expiries) > 2 * len(self._entries) + _COMPACT_SLACK:
                self._compact()

    def get(self, key: str) -> Optional[V]:
        now = self._clock()
        with self._lock:
            return self._live(key, now)

    def pop(self, key: str) -> Optional[V]:
        """Remove and return a live entry in one step."""
        now = self._clock()
        with self._lock:
            value = self._live(key, now)
            self._entries.pop(key, None)
            return value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        return self.get(key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            return self._drain(now)


__all__ = ["TTLCache"]
