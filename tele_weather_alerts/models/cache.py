"""Cache-related dataclasses."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class CacheEntry:
    """Cached blob with its absolute monotonic expiry."""

    expires_at: float
    value: str
