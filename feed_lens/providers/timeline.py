"""KOL timeline digest: recent posts from tracked accounts, cached per account."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Iterable, Protocol

from feed_lens.cache.store import CacheEntry, EntityCache
from feed_lens.config import SettingsLookup, parse_accounts
from feed_lens.errors import AuthenticationError, FeedError
from feed_lens.formatting import PLACEHOLDER, safe_format
from feed_lens.http.fetcher import Fetcher
from feed_lens.http.session import Credentials, SessionManager
from feed_lens.models import Post
from feed_lens.pipeline import post_time, timeline_digest_posts
from feed_lens.platforms.x.source import API_KEY_SETTING, API_SECRET_SETTING, XTimelineSource
from feed_lens.providers.base import CachedProvider

_log = logging.getLogger(__name__)

ACCOUNTS_SETTING = "KOL_ACCOUNTS"
EMPTY_DIGEST = "No recent tweets from tracked accounts."


class TimelineSource(Protocol):
    async def login(self, credentials: Credentials) -> str:
        ...

    async def fetch_posts(self, username: str, token: str, count: int = 20) -> list[Post]:
        ...


def _count(value: int | None) -> str:
    return PLACEHOLDER if value is None else f"{value:,}"


def _post_block(post: Post) -> str:
    published = post_time(post)
    date = f"{published:%Y-%m-%d}" if published else "Unknown date"
    lines = [f"@{post.author or 'unknown'} ({date}):", post.text]
    if post.urls:
        lines.append("Links: " + " ".join(post.urls))
    lines.append(
        f"replies {_count(post.replies)} | reposts {_count(post.reposts)} | "
        f"likes {_count(post.likes)} | views {_count(post.views)}"
    )
    return "\n".join(lines)


@safe_format("Recent tweets could not be formatted.")
def format_timeline_digest(posts: Iterable[Post]) -> str:
    posts = list(posts)
    if not posts:
        return EMPTY_DIGEST
    return "Recent tweets from KOLs:\n\n" + "\n\n".join(_post_block(p) for p in posts)


class KolTimelineProvider(CachedProvider):
    """Merges the recent posts of several accounts into one digest.

    Each account has its own cache entry and refresh window. An account that
    fails with nothing cached is left out as long as another account
    succeeded; authentication failures fail the whole digest.
    """

    name = "kol-timeline"
    fallback = "Unable to fetch recent tweets at this time."

    def __init__(
        self,
        accounts: list[str] | None = None,
        *,
        source: TimelineSource | None = None,
        max_age: timedelta = timedelta(days=7),
        posts_per_account: int = 20,
        limit: int = 10,
        cache: EntityCache | None = None,
        fetcher: Fetcher | None = None,
        **kwargs,
    ) -> None:
        super().__init__(cache=cache, fetcher=fetcher, **kwargs)
        self.accounts = parse_accounts(",".join(accounts or []))
        self.source = source if source is not None else XTimelineSource(self.fetcher)
        self.max_age = max_age
        self.posts_per_account = posts_per_account
        self.limit = limit
        self.session = SessionManager(self.name, self.source.login, clock=self.cache.now)
        self.fetcher.session = self.session

    def last_fetched(self, account: str) -> datetime | None:
        entry = self.cache.get(account.lstrip("@").lower())
        return entry.last_fetched_at if entry else None

    async def _account_entry(self, account: str, token: Callable[[], Awaitable[str]]) -> CacheEntry:
        async def refresh() -> list[Post]:
            bearer = await token()
            _log.info("fetching posts for @%s", account)
            return await self.source.fetch_posts(account, bearer, self.posts_per_account)

        return await self.cache.get_or_refresh(account.lower(), refresh)

    async def render(self, settings: SettingsLookup) -> str:
        accounts = self.accounts or parse_accounts(settings(ACCOUNTS_SETTING))
        if not accounts:
            return EMPTY_DIGEST

        login: asyncio.Future[str] | None = None

        async def token() -> str:
            # One login per render; a 401 partway through is not retried until the next render.
            nonlocal login
            if login is None:
                credentials = Credentials.from_settings(settings, API_KEY_SETTING, API_SECRET_SETTING)
                login = asyncio.ensure_future(self.session.ensure_session(credentials))
            return await login

        results = await asyncio.gather(
            *(self._account_entry(a, token) for a in accounts),
            return_exceptions=True,
        )

        posts: list[Post] = []
        failures: list[FeedError] = []
        for account, result in zip(accounts, results):
            if isinstance(result, AuthenticationError):
                raise result
            if isinstance(result, FeedError):
                _log.warning("skipping @%s: %s", account, result)
                failures.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            posts.extend(result.records)

        if len(failures) == len(accounts):
            raise failures[0]

        return format_timeline_digest(
            timeline_digest_posts(posts, self.cache.now(), self.max_age, self.limit)
        )
