"""Shared agent context: the providers consulted on every turn and their settings."""
from dataclasses import dataclass, field
from datetime import timedelta

from feed_lens.cache.freshness import FreshnessPolicy
from feed_lens.cache.store import EntityCache
from feed_lens.config import SettingsLookup, env_settings, http_timeout_from_env, ttl_from_env
from feed_lens.http.fetcher import Fetcher
from feed_lens.providers.base import ContextProvider
from feed_lens.providers.defillama import DefiLlamaProvider
from feed_lens.providers.timeline import KolTimelineProvider
from feed_lens.providers.trading import TradingDeskProvider


def default_providers(
    ttl: timedelta | None = None,
    timeout: float | None = None,
    accounts: list[str] | None = None,
) -> list[ContextProvider]:
    """One instance of each provider, each with its own cache and HTTP client."""
    policy = FreshnessPolicy(ttl or ttl_from_env())
    timeout = timeout or http_timeout_from_env()
    return [
        DefiLlamaProvider(cache=EntityCache(policy), fetcher=Fetcher(timeout=timeout)),
        TradingDeskProvider(cache=EntityCache(policy), fetcher=Fetcher(timeout=timeout)),
        KolTimelineProvider(accounts, cache=EntityCache(policy), fetcher=Fetcher(timeout=timeout)),
    ]


@dataclass
class AgentContext:
    providers: list[ContextProvider] = field(default_factory=default_providers)
    settings: SettingsLookup = field(default_factory=env_settings)

    async def aclose(self) -> None:
        for provider in self.providers:
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
