"""Record types for each remote source, validated at the fetch boundary.

Field aliases match the upstream JSON so payloads validate as-is; every field a
source may omit or null is optional so formatting can render a placeholder.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# ── DefiLlama ────────────────────────────────────────────────────────────────

class YieldPool(_Record):
    chain: str = ""
    project: str = ""
    symbol: str = ""
    pool: str = ""
    tvl_usd: float | None = Field(default=None, alias="tvlUsd")
    apy_base: float | None = Field(default=None, alias="apyBase")
    apy_reward: float | None = Field(default=None, alias="apyReward")
    apy: float | None = None
    apy_pct_1d: float | None = Field(default=None, alias="apyPct1D")
    apy_pct_7d: float | None = Field(default=None, alias="apyPct7D")
    apy_pct_30d: float | None = Field(default=None, alias="apyPct30D")
    volume_usd_1d: float | None = Field(default=None, alias="volumeUsd1d")
    volume_usd_7d: float | None = Field(default=None, alias="volumeUsd7d")
    stablecoin: bool = False
    il_risk: str | None = Field(default=None, alias="ilRisk")
    reward_tokens: list[str] | None = Field(default=None, alias="rewardTokens")
    underlying_tokens: list[str] | None = Field(default=None, alias="underlyingTokens")


class ProtocolStat(_Record):
    name: str
    symbol: str | None = None
    category: str | None = None
    chains: list[str] = []
    tvl: float | None = None
    change_1d: float | None = None
    change_7d: float | None = None
    mcap: float | None = None


# ── Trading desk ─────────────────────────────────────────────────────────────

class PortfolioAsset(_Record):
    symbol: str = ""
    assets_value: float | None = None
    portfolio_allocation: float | None = None


class TrackRecord(_Record):
    portfolio_implied_apr: float | None = None
    net_exposure_value: float | None = None


class AprAttribute(_Record):
    symbol: str = ""
    apr_score: float | None = None


class TradingSnapshot(_Record):
    """The three trading feeds from one refresh, cached as a single record."""
    portfolio: list[PortfolioAsset]
    track_records: list[TrackRecord]
    apr_attributes: list[AprAttribute]


# ── Social timeline ──────────────────────────────────────────────────────────

class Post(_Record):
    id: str
    author: str | None = None
    text: str = ""
    time_parsed: datetime | None = None  # primary timestamp
    timestamp: int | None = None         # epoch seconds, used when time_parsed is missing
    replies: int | None = None
    reposts: int | None = None
    likes: int | None = None
    views: int | None = None
    urls: list[str] = []
    repost_of: Post | None = None

    @property
    def is_repost(self) -> bool:
        return self.repost_of is not None
