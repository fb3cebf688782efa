"""X (Twitter) API v2 timeline source.

Authenticates with the app-only OAuth2 flow (API key + secret exchanged for a
bearer token), resolves usernames to user ids, and converts each page of user
tweets into :class:`~feed_lens.models.Post` records. Retweets keep a link to
the original tweet through ``repost_of``.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from feed_lens.errors import AuthenticationError, FetchError
from feed_lens.http.fetcher import Endpoint, Fetcher
from feed_lens.http.session import Credentials
from feed_lens.models import Post

API_URL = "https://api.twitter.com"
API_KEY_SETTING = "X_API_KEY"
API_SECRET_SETTING = "X_API_SECRET"

_TWITTER_EPOCH_MS = 1288834974657  # Nov 4, 2010

# X only accepts max_results between 5 and 100
_MIN_RESULTS, _MAX_RESULTS = 5, 100


def _snowflake_to_seconds(tweet_id: str) -> int | None:
    """Decode the creation time embedded in a tweet id."""
    try:
        return ((int(tweet_id) >> 22) + _TWITTER_EPOCH_MS) // 1000
    except (ValueError, OverflowError):
        return None


# ── API payload shapes ───────────────────────────────────────────────────────

class _XModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class XUser(_XModel):
    id: str
    username: str


class XUserLookup(_XModel):
    data: XUser


class XMetrics(_XModel):
    reply_count: int | None = None
    retweet_count: int | None = None
    like_count: int | None = None
    impression_count: int | None = None


class XUrl(_XModel):
    url: str | None = None
    expanded_url: str | None = None


class XEntities(_XModel):
    urls: list[XUrl] = []


class XReference(_XModel):
    type: str
    id: str


class XTweet(_XModel):
    id: str
    text: str = ""
    author_id: str | None = None
    created_at: datetime | None = None
    public_metrics: XMetrics | None = None
    entities: XEntities | None = None
    referenced_tweets: list[XReference] = []


class XIncludes(_XModel):
    tweets: list[XTweet] = []
    users: list[XUser] = []


class XTimelinePage(_XModel):
    data: list[XTweet] = []
    includes: XIncludes = Field(default_factory=XIncludes)


# ── Conversion ───────────────────────────────────────────────────────────────

def _to_post(tweet: XTweet, author: str | None, repost_of: Post | None = None) -> Post:
    metrics = tweet.public_metrics or XMetrics()
    urls = [u.expanded_url or u.url for u in (tweet.entities.urls if tweet.entities else [])]
    return Post(
        id=tweet.id,
        author=author,
        text=tweet.text,
        time_parsed=tweet.created_at,
        timestamp=_snowflake_to_seconds(tweet.id),
        replies=metrics.reply_count,
        reposts=metrics.retweet_count,
        likes=metrics.like_count,
        views=metrics.impression_count,
        urls=[u for u in urls if u],
        repost_of=repost_of,
    )


def page_to_posts(page: XTimelinePage, username: str) -> list[Post]:
    """Convert one timeline page, attaching the original tweet to each retweet."""
    usernames = {u.id: u.username for u in page.includes.users}
    originals = {t.id: t for t in page.includes.tweets}

    posts: list[Post] = []
    for tweet in page.data:
        original = None
        for ref in tweet.referenced_tweets:
            if ref.type == "retweeted" and ref.id in originals:
                source = originals[ref.id]
                original = _to_post(source, usernames.get(source.author_id or ""))
                break
        posts.append(_to_post(tweet, username, repost_of=original))
    return posts


# ── Source ───────────────────────────────────────────────────────────────────

class XTimelineSource:
    """Fetches recent posts per account over the shared :class:`Fetcher`."""

    def __init__(self, fetcher: Fetcher, api_url: str = API_URL) -> None:
        self.fetcher = fetcher
        self.api_url = api_url.rstrip("/")
        self._user_ids: dict[str, str] = {}

    async def login(self, credentials: Credentials) -> str:
        try:
            data = await self.fetcher.post_json(
                "x/oauth2/token",
                f"{self.api_url}/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(credentials.username, credentials.password),
            )
        except FetchError as exc:
            raise AuthenticationError(f"X login failed: {exc}") from exc
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthenticationError("X login response carried no access_token")
        return token

    async def _user_id(self, username: str, token: str) -> str:
        key = username.lower()
        if key not in self._user_ids:
            endpoint = Endpoint(
                f"x/users/{username}",
                f"{self.api_url}/2/users/by/username/{username}",
                XUserLookup,
                many=False,
            )
            (lookup,) = await self.fetcher.fetch(endpoint, token)
            self._user_ids[key] = lookup.data.id
        return self._user_ids[key]

    async def fetch_posts(self, username: str, token: str, count: int = 20) -> list[Post]:
        user_id = await self._user_id(username, token)
        endpoint = Endpoint(
            f"x/timeline/{username}",
            f"{self.api_url}/2/users/{user_id}/tweets",
            XTimelinePage,
            many=False,
            params={
                "max_results": min(max(count, _MIN_RESULTS), _MAX_RESULTS),
                "tweet.fields": "created_at,public_metrics,entities,referenced_tweets,author_id",
                "expansions": "referenced_tweets.id,referenced_tweets.id.author_id",
                "user.fields": "username",
            },
        )
        (page,) = await self.fetcher.fetch(endpoint, token)
        return page_to_posts(page, username)[:count]
