"""In-memory cache keyed per source or per tracked account.

A single-source provider uses one constant key; the timeline provider uses one
key per account. Entries are frozen and swapped whole on refresh, so a reader
never sees new records paired with an old timestamp.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Generic, Hashable, Iterable, TypeVar

from feed_lens.cache.freshness import FreshnessPolicy
from feed_lens.errors import FeedError

_log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry(Generic[K, V]):
    key: K
    records: tuple[V, ...]
    last_fetched_at: datetime


class EntityCache(Generic[K, V]):
    """Maps a key to its latest :class:`CacheEntry`.

    Overlapping refreshes of the same key are not coalesced: both fetch and the
    last one to finish wins.
    """

    def __init__(self, policy: FreshnessPolicy, clock: Clock = utc_now) -> None:
        self.policy = policy
        self._clock = clock
        self._entries: dict[K, CacheEntry[K, V]] = {}

    def now(self) -> datetime:
        return self._clock()

    def get(self, key: K) -> CacheEntry[K, V] | None:
        return self._entries.get(key)

    def is_stale(self, key: K) -> bool:
        return self.policy.is_stale(self._entries.get(key), self._clock())

    async def get_or_refresh(
        self,
        key: K,
        refresh: Callable[[], Awaitable[Iterable[V]]],
    ) -> CacheEntry[K, V]:
        """Return the entry for ``key``, refreshing it first if stale.

        When the refresh fails and an older entry exists, the older entry is
        returned unchanged. Without one, the failure propagates.
        """
        if not self.is_stale(key):
            _log.debug("cache hit for %s", key)
            return self._entries[key]

        _log.info("refreshing %s", key)
        try:
            records = tuple(await refresh())
        except FeedError as exc:
            # Re-read: another refresh of the same key may have landed meanwhile.
            previous = self._entries.get(key)
            if previous is None:
                raise
            _log.warning("refresh of %s failed, serving data from %s: %s",
                         key, previous.last_fetched_at.isoformat(), exc)
            return previous

        entry = CacheEntry(key=key, records=records, last_fetched_at=self._clock())
        self._entries[key] = entry
        return entry

    def clear(self, key: K | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def keys(self) -> list[K]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
