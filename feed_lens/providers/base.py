"""Provider protocol and the shared cached-provider facade."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Protocol, runtime_checkable

from feed_lens.cache.freshness import FreshnessPolicy
from feed_lens.cache.store import Clock, EntityCache, utc_now
from feed_lens.config import SettingsLookup, http_timeout_from_env, ttl_from_env
from feed_lens.errors import FeedError
from feed_lens.http.fetcher import Fetcher

_log = logging.getLogger(__name__)


# ── Protocol ─────────────────────────────────────────────────────────────────

@runtime_checkable
class ContextProvider(Protocol):
    """What the agent needs from a provider: a digest, never an exception."""

    name: str

    async def get(self, settings: SettingsLookup) -> str:
        ...


# ── CachedProvider ───────────────────────────────────────────────────────────

class CachedProvider(ABC):
    """Facade composing cache, fetcher and formatter for one source.

    Subclasses implement :meth:`render`, which reads through ``self.cache``
    (refreshing as needed) and returns the digest. :meth:`get` is the only
    place a fetch or login failure turns into text.
    """

    name: str = "provider"
    fallback: str = "Data is unavailable at the moment."

    def __init__(
        self,
        *,
        cache: EntityCache | None = None,
        fetcher: Fetcher | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.cache = cache if cache is not None else EntityCache(FreshnessPolicy(ttl_from_env()), clock)
        self.fetcher = fetcher if fetcher is not None else Fetcher(timeout=http_timeout_from_env())

    async def get(self, settings: SettingsLookup) -> str:
        try:
            return await self.render(settings)
        except FeedError as exc:
            _log.error("%s unavailable: %s", self.name, exc)
        except Exception:
            _log.exception("%s failed unexpectedly", self.name)
        return self.fallback

    @abstractmethod
    async def render(self, settings: SettingsLookup) -> str:
        ...

    async def aclose(self) -> None:
        """Drop cached data and any session, and close the HTTP client."""
        self.cache.clear()
        if self.fetcher.session is not None:
            self.fetcher.session.invalidate()
        await self.fetcher.aclose()
