"""Kira trading desk: authenticated portfolio, track record and APR feeds."""
from __future__ import annotations

import os
from datetime import datetime

from feed_lens.cache.store import EntityCache
from feed_lens.config import SettingsLookup
from feed_lens.errors import AuthenticationError, FetchError
from feed_lens.formatting import format_dollars, format_number, format_percent, safe_format
from feed_lens.http.fetcher import Endpoint, Fetcher
from feed_lens.http.session import Credentials, SessionManager
from feed_lens.models import AprAttribute, PortfolioAsset, TrackRecord, TradingSnapshot
from feed_lens.pipeline import bound, rank
from feed_lens.providers.base import CachedProvider

DEFAULT_BASE_URL = "https://max1-funding-arb.uc.r.appspot.com"
USERNAME_SETTING = "KIRA_TRADING_USERNAME"
PASSWORD_SETTING = "KIRA_TRADING_PASSWORD"

CACHE_KEY = "kira-trading"
TOP_OPPORTUNITIES = 5


@safe_format("Kira Trading data could not be formatted.")
def format_trading_digest(snapshot: TradingSnapshot, fetched_at: datetime, now: datetime) -> str:
    age_seconds = max(0, int((now - fetched_at).total_seconds()))
    values = [a.assets_value for a in snapshot.portfolio if a.assets_value is not None]
    total_value = sum(values) if values else None
    latest = snapshot.track_records[0] if snapshot.track_records else TrackRecord()
    top = bound(rank(snapshot.apr_attributes, lambda a: a.apr_score), TOP_OPPORTUNITIES)

    lines = [
        "=== Kira Trading Data ===",
        f"Last Updated: {fetched_at:%Y-%m-%d %H:%M:%S %Z} ({age_seconds} seconds ago)",
        "",
        "Current Portfolio Status:",
        f"- Total Assets Value: {format_dollars(total_value)}",
        f"- Portfolio APR: {format_percent(latest.portfolio_implied_apr, ratio=True)}",
        f"- Net Exposure: {format_number(latest.net_exposure_value)}",
        "",
        "Top Trading Opportunities:",
    ]
    lines.extend(f"- {a.symbol}: APR {format_percent(a.apr_score, ratio=True)}" for a in top)
    lines.append("")
    lines.append("Portfolio Composition:")
    lines.extend(
        f"- {a.symbol}: {format_dollars(a.assets_value)} "
        f"({format_percent(a.portfolio_allocation, ratio=True)})"
        for a in snapshot.portfolio
    )
    return "\n".join(lines).strip()


class TradingDeskProvider(CachedProvider):
    """Portfolio digest behind a username/password login.

    Login happens lazily inside a refresh, so a fresh cache is served even
    when credentials are missing. A 401/403 from any feed drops the session
    and the next refresh logs in again.
    """

    name = "kira-trading"
    fallback = "Unable to fetch Kira Trading data at the moment. Please try again later."

    def __init__(
        self,
        base_url: str | None = None,
        *,
        cache: EntityCache | None = None,
        fetcher: Fetcher | None = None,
        **kwargs,
    ) -> None:
        super().__init__(cache=cache, fetcher=fetcher, **kwargs)
        self.base_url = (base_url or os.getenv("KIRA_TRADING_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.session = SessionManager(self.name, self._login, clock=self.cache.now)
        self.fetcher.session = self.session
        self.endpoints = [
            Endpoint("portfolio_latest", f"{self.base_url}/portfolio_latest", PortfolioAsset),
            Endpoint("track_records_daily_latest", f"{self.base_url}/track_records_daily_latest", TrackRecord),
            Endpoint("monitor_apr_attribute", f"{self.base_url}/monitor_apr_attribute", AprAttribute),
        ]

    async def _login(self, credentials: Credentials) -> str:
        try:
            data = await self.fetcher.post_json(
                "login",
                f"{self.base_url}/login",
                json={"username": credentials.username, "password": credentials.password},
            )
        except FetchError as exc:
            raise AuthenticationError(f"login failed: {exc}") from exc
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("login response carried no access_token")
        return token

    async def render(self, settings: SettingsLookup) -> str:
        async def refresh() -> list[TradingSnapshot]:
            credentials = Credentials.from_settings(settings, USERNAME_SETTING, PASSWORD_SETTING)
            token = await self.session.ensure_session(credentials)
            portfolio, track_records, apr_attributes = await self.fetcher.fetch_all(self.endpoints, token)
            return [TradingSnapshot(
                portfolio=portfolio,
                track_records=track_records,
                apr_attributes=apr_attributes,
            )]

        entry = await self.cache.get_or_refresh(CACHE_KEY, refresh)
        return format_trading_digest(entry.records[0], entry.last_fetched_at, self.cache.now())
