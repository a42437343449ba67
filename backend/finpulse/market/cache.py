"""In-memory key/value cache with per-entry expiry."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

DEFAULT_TTL = 60.0  # seconds


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A stored value and when it was stored. Never handed out to callers."""

    value: Any
    stored_at: int  # Unix milliseconds
    ttl: float  # seconds


class TTLCache:
    """Key/value store whose entries silently go stale after a TTL.

    Stale entries are not evicted; they read as absent until the next set()
    for the same key overwrites them. The key space is bounded (one entry per
    symbol or category), so overwrite-on-refresh is the only cleanup needed.

    Writers: provider adapters (one key namespace each) and the aggregator.
    Readers: the same. Consumers never touch the cache directly.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = Lock()

    @property
    def ttl(self) -> float:
        return self._ttl

    def now_ms(self) -> int:
        """Current time in Unix milliseconds according to the cache clock."""
        return int(self._clock() * 1000)

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value. ``ttl`` overrides the cache default for this entry."""
        entry = CacheEntry(
            value=value,
            stored_at=self.now_ms(),
            ttl=self._ttl if ttl is None else ttl,
        )
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str) -> Any | None:
        """Return the stored value if still fresh, else None."""
        with self._lock:
            entry = self._entries.get(key)
        if entry is None:
            return None
        if self.now_ms() - entry.stored_at < entry.ttl * 1000:
            return entry.value
        return None

    def __len__(self) -> int:
        """Number of stored entries, fresh or stale."""
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
