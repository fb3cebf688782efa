from datetime import datetime, timedelta, timezone

from feed_lens.models import Post
from feed_lens.pipeline import (
    bound,
    collapse_reposts,
    filter_by_age,
    post_time,
    rank,
    timeline_digest_posts,
)

DAY = timedelta(days=1)
EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


def day(n: float) -> datetime:
    return EPOCH + n * DAY


def test_post_time_prefers_parsed_then_timestamp():
    assert post_time(Post(id="1", time_parsed=day(3), timestamp=0)) == day(3)
    assert post_time(Post(id="2", timestamp=int(day(2).timestamp()))) == day(2)
    assert post_time(Post(id="3")) is None


def test_post_time_treats_naive_datetimes_as_utc():
    naive = datetime(2026, 1, 4, 8, 30)
    assert post_time(Post(id="1", time_parsed=naive)) == naive.replace(tzinfo=timezone.utc)


def test_age_filter_keeps_boundary_and_drops_older():
    now = day(10)
    at_cutoff = Post(id="a", time_parsed=day(3))
    just_older = Post(id="b", time_parsed=day(3) - timedelta(milliseconds=1))
    day_two = Post(id="c", time_parsed=day(2))
    kept = filter_by_age([at_cutoff, just_older, day_two], now, timedelta(days=7))
    assert [p.id for p in kept] == ["a"]


def test_age_filter_falls_back_to_secondary_timestamp():
    now = day(10)
    recent = Post(id="a", timestamp=int(day(9).timestamp()))
    old = Post(id="b", timestamp=int(day(1).timestamp()))
    undated = Post(id="c")
    assert [p.id for p in filter_by_age([recent, old, undated], now, timedelta(days=7))] == ["a"]


def test_collapse_reposts_keeps_position():
    posts = [
        Post(id="1", text="RT", repost_of=Post(id="9", text="A")),
        Post(id="2", text="B"),
    ]
    collapsed = collapse_reposts(posts)
    assert [p.text for p in collapsed] == ["A", "B"]
    assert collapsed[0].id == "9"
    # input untouched
    assert posts[0].text == "RT"


def test_rank_descending_and_stable():
    rows = [("a", 1.0), ("b", 3.0), ("c", 3.0), ("d", None), ("e", 2.0)]
    ranked = rank(rows, key=lambda r: r[1])
    assert [r[0] for r in ranked] == ["b", "c", "e", "a", "d"]


def test_bound():
    assert bound([1, 2, 3], 2) == [1, 2]
    assert bound([1], 5) == [1]


def test_timeline_digest_ranks_by_repost_time_then_collapses():
    now = day(10)
    original = Post(id="9", text="A", time_parsed=day(1))  # old, but shared recently
    posts = [
        Post(id="2", text="B", time_parsed=day(8)),
        Post(id="1", text="RT A", time_parsed=day(9), repost_of=original),
        Post(id="3", text="C", time_parsed=day(7)),
    ]
    result = timeline_digest_posts(posts, now, timedelta(days=7), limit=2)
    assert [p.text for p in result] == ["A", "B"]
