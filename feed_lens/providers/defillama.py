"""DefiLlama yield pools and protocol TVL digest."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from feed_lens.config import SettingsLookup
from feed_lens.errors import FetchError
from feed_lens.formatting import (
    PLACEHOLDER,
    format_interval,
    format_list,
    format_percent,
    format_usd,
    safe_format,
)
from feed_lens.http.fetcher import Endpoint
from feed_lens.models import ProtocolStat, YieldPool
from feed_lens.pipeline import bound, rank
from feed_lens.providers.base import CachedProvider

POOLS_URL = "https://yields.llama.fi/pools"
PROTOCOLS_URL = "https://api.llama.fi/protocols"

CACHE_KEY = "defillama"
POOL_LIMIT = 80
PROTOCOL_LIMIT = 20


def _unwrap_pools(payload: Any) -> Any:
    if not isinstance(payload, dict) or payload.get("status") != "success":
        raise ValueError("pools response did not report success")
    return payload.get("data")


POOLS = Endpoint("defillama/pools", POOLS_URL, YieldPool, unwrap=_unwrap_pools)
PROTOCOLS = Endpoint("defillama/protocols", PROTOCOLS_URL, ProtocolStat)


def _pool_block(pool: YieldPool) -> str:
    reward_apy = format_percent(pool.apy_reward) if pool.apy_reward else PLACEHOLDER
    return "\n".join([
        f"Project: {pool.project} ({pool.chain})",
        f"Symbol: {pool.symbol}",
        f"Pool: {pool.pool}",
        f"TVL: {format_usd(pool.tvl_usd)}",
        f"Base APY: {format_percent(pool.apy_base)}",
        f"Reward APY: {reward_apy}",
        f"Total APY: {format_percent(pool.apy)}",
        f"24h Change: {format_percent(pool.apy_pct_1d)}",
        f"7d Change: {format_percent(pool.apy_pct_7d)}",
        f"30d Change: {format_percent(pool.apy_pct_30d)}",
        f"Volume 24h: {format_usd(pool.volume_usd_1d)}",
        f"Volume 7d: {format_usd(pool.volume_usd_7d)}",
        f"Stablecoin: {'Yes' if pool.stablecoin else 'No'}",
        f"IL Risk: {pool.il_risk or PLACEHOLDER}",
        f"Reward Tokens: {format_list(pool.reward_tokens)}",
        f"Underlying Tokens: {format_list(pool.underlying_tokens)}",
        "-------------------",
    ])


def _protocol_line(protocol: ProtocolStat) -> str:
    chains = format_list(protocol.chains[:5])
    # DefiLlama uses "-" for protocols without a token
    label = protocol.name
    if protocol.symbol and protocol.symbol != "-":
        label += f" [{protocol.symbol}]"
    return (
        f"- {label} ({protocol.category or PLACEHOLDER}, {chains}): "
        f"TVL {format_usd(protocol.tvl)}, "
        f"1d {format_percent(protocol.change_1d)}, "
        f"7d {format_percent(protocol.change_7d)}, "
        f"MCap {format_usd(protocol.mcap)}"
    )


@safe_format("DeFi yield data is temporarily unavailable.")
def format_defi_digest(
    pools: list[YieldPool],
    protocols: list[ProtocolStat],
    last_updated: datetime,
    refresh_interval: timedelta,
) -> str:
    top_pools = bound(rank(pools, lambda p: p.tvl_usd), POOL_LIMIT)
    top_protocols = bound(rank(protocols, lambda p: p.tvl), PROTOCOL_LIMIT)

    sections = [f"DeFi Yield Data from DefiLlama (Last updated: {last_updated:%Y-%m-%d %H:%M:%S %Z})"]
    if top_protocols:
        sections.append("Top protocols by TVL:")
        sections.extend(_protocol_line(p) for p in top_protocols)
        sections.append("")
    sections.append("Top pools by TVL:")
    sections.extend(_pool_block(p) for p in top_pools)
    sections.append("")
    sections.append(f"Note: Data is cached and refreshed every {format_interval(refresh_interval)}.")
    return "\n".join(sections)


class DefiLlamaProvider(CachedProvider):
    """Yield pools and protocol stats, fetched together under one cache key."""

    name = "defillama"
    fallback = "Sorry, I couldn't fetch DeFi yield data at the moment."

    async def _refresh(self) -> list[tuple[list[YieldPool], list[ProtocolStat]]]:
        pools, protocols = await self.fetcher.fetch_all([POOLS, PROTOCOLS])
        if not pools:
            raise FetchError(POOLS.name, detail="no pools returned")
        return [(pools, protocols)]

    async def render(self, settings: SettingsLookup) -> str:
        entry = await self.cache.get_or_refresh(CACHE_KEY, self._refresh)
        pools, protocols = entry.records[0]
        return format_defi_digest(pools, protocols, entry.last_fetched_at, self.cache.policy.ttl)
