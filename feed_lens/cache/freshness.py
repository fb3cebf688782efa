"""Staleness check for cached record sets."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from feed_lens.cache.store import CacheEntry


@dataclass(frozen=True)
class FreshnessPolicy:
    ttl: timedelta

    def __post_init__(self) -> None:
        if self.ttl <= timedelta(0):
            raise ValueError(f"ttl must be positive, got {self.ttl}")

    def is_stale(self, entry: CacheEntry | None, now: datetime) -> bool:
        """Return True when ``entry`` must be refreshed before it is served.

        An entry with no records is always stale, whatever its timestamp, so an
        empty first fetch does not hide the source for a whole TTL window.
        """
        if entry is None or not entry.records:
            return True
        return now - entry.last_fetched_at > self.ttl
