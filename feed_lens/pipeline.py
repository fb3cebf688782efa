"""Post-processing applied to cached records before they are formatted.

Every step returns a new list; cached records are never modified.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Sequence, TypeVar

from feed_lens.models import Post

T = TypeVar("T")


def post_time(post: Post) -> datetime | None:
    """Return when ``post`` was published, preferring the parsed time."""
    if post.time_parsed is not None:
        parsed = post.time_parsed
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if post.timestamp:
        return datetime.fromtimestamp(post.timestamp, tz=timezone.utc)
    return None


def filter_by_age(posts: Iterable[Post], now: datetime, max_age: timedelta) -> list[Post]:
    """Drop posts older than ``max_age``. A post exactly at the cutoff is kept."""
    cutoff = now - max_age
    kept = []
    for post in posts:
        published = post_time(post)
        if published is not None and published >= cutoff:
            kept.append(post)
    return kept


def collapse_reposts(posts: Iterable[Post]) -> list[Post]:
    """Replace each repost with the post it shares, keeping the repost's slot."""
    return [p.repost_of if p.is_repost else p for p in posts]


def rank(records: Iterable[T], key: Callable[[T], float | None]) -> list[T]:
    """Sort descending by ``key``; ties keep input order, missing keys go last."""
    items = list(records)
    present = [r for r in items if key(r) is not None]
    missing = [r for r in items if key(r) is None]
    return sorted(present, key=key, reverse=True) + missing


def bound(records: Sequence[T], limit: int) -> list[T]:
    return list(records[:limit])


def recency(post: Post) -> float | None:
    published = post_time(post)
    return published.timestamp() if published else None


def timeline_digest_posts(
    posts: Iterable[Post],
    now: datetime,
    max_age: timedelta,
    limit: int,
) -> list[Post]:
    """Age filter → rank by recency → collapse reposts → top ``limit``."""
    recent = filter_by_age(posts, now, max_age)
    return bound(collapse_reposts(rank(recent, recency)), limit)
