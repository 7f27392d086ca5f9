"""Key-value cache with per-entry TTL used by the weather gateway."""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Protocol

from .models.cache import CacheEntry

logger = logging.getLogger(__name__)

_DEFAULT_MAX_ENTRIES = 1000


class CacheStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_s: float) -> None: ...

    async def delete(self, *keys: str) -> int: ...


class MemoryCache:
    """In-process TTL cache.

    Concurrent writers are last-write-wins; entries are independent so no
    locking is needed inside a single event loop.
    """

    def __init__(
        self,
        max_entries: int = _DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if not entry:
            return None
        if self._clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    async def set(self, key: str, value: str, ttl_s: float) -> None:
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            expires_at=self._clock() + max(0.0, ttl_s), value=value
        )
        self._prune()

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._entries.pop(key, None) is not None:
                removed += 1
        return removed

    def _prune(self) -> None:
        now = self._clock()
        stale_keys = [
            key for key, entry in self._entries.items() if now >= entry.expires_at
        ]
        for key in stale_keys:
            self._entries.pop(key, None)
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry %s", key)
