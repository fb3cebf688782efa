"""Tests for the per-key cache: atomic replace, degraded reads, key isolation."""
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from feed_lens.cache.freshness import FreshnessPolicy
from feed_lens.cache.store import EntityCache
from feed_lens.errors import FetchError

pytestmark = pytest.mark.asyncio


@pytest.fixture
def cache(clock):
    return EntityCache(FreshnessPolicy(timedelta(minutes=15)), clock)


async def test_first_access_refreshes_and_stores(cache, clock):
    """A miss refreshes and stores the records with the refresh time."""
    refresh = AsyncMock(return_value=[1, 2])
    entry = await cache.get_or_refresh("pools", refresh)
    assert entry.records == (1, 2)
    assert entry.last_fetched_at == clock.now
    assert cache.get("pools") is entry
    refresh.assert_awaited_once()


async def test_fresh_entry_served_without_refresh(cache, clock):
    """Within the TTL the cached entry is returned without a refresh."""
    refresh = AsyncMock(return_value=[1])
    await cache.get_or_refresh("pools", refresh)
    clock.advance(minutes=14)
    await cache.get_or_refresh("pools", refresh)
    assert refresh.await_count == 1


async def test_stale_entry_replaced_whole(cache, clock):
    """A stale entry is swapped for a new one, never mutated."""
    await cache.get_or_refresh("pools", AsyncMock(return_value=[1, 2, 3]))
    old = cache.get("pools")
    clock.advance(minutes=16)
    new = await cache.get_or_refresh("pools", AsyncMock(return_value=[9]))
    assert new is not old
    assert new.records == (9,)
    assert new.last_fetched_at == clock.now
    # the previous entry object was not touched
    assert old.records == (1, 2, 3)


async def test_failed_refresh_keeps_previous_entry(cache, clock):
    """A failed refresh serves the previous entry unchanged."""
    first = await cache.get_or_refresh("pools", AsyncMock(return_value=[1]))
    clock.advance(minutes=20)
    failing = AsyncMock(side_effect=FetchError("pools", 500))
    served = await cache.get_or_refresh("pools", failing)
    assert served is first
    assert cache.get("pools") is first


async def test_failed_refresh_without_previous_entry_raises(cache):
    """A failed first refresh propagates."""
    with pytest.raises(FetchError):
        await cache.get_or_refresh("pools", AsyncMock(side_effect=FetchError("pools", 502)))
    assert cache.get("pools") is None


async def test_empty_result_is_refetched_next_time(cache):
    """An empty result is stored but counts as stale."""
    refresh = AsyncMock(return_value=[])
    await cache.get_or_refresh("alice", refresh)
    await cache.get_or_refresh("alice", refresh)
    assert refresh.await_count == 2


async def test_keys_are_independent(cache, clock):
    """Refreshing one key leaves the others untouched."""
    await cache.get_or_refresh("alice", AsyncMock(return_value=["a1"]))
    clock.advance(minutes=5)
    await cache.get_or_refresh("bob", AsyncMock(return_value=["b1"]))
    bob = cache.get("bob")

    clock.advance(minutes=11)  # alice is stale, bob is not
    await cache.get_or_refresh("alice", AsyncMock(return_value=["a2"]))

    assert cache.get("alice").records == ("a2",)
    assert cache.get("bob") is bob


async def test_clear_single_key_and_all(cache):
    """clear drops one key or everything."""
    await cache.get_or_refresh("alice", AsyncMock(return_value=[1]))
    await cache.get_or_refresh("bob", AsyncMock(return_value=[2]))
    cache.clear("alice")
    assert cache.keys() == ["bob"]
    cache.clear()
    assert len(cache) == 0


async def test_overlapping_refreshes_of_same_key_both_fetch(cache):
    """Overlapping refreshes of one key are not coalesced; the later one wins."""
    gate = asyncio.Event()
    calls = []

    async def slow_refresh():
        calls.append(1)
        await gate.wait()
        return [len(calls)]

    first = asyncio.create_task(cache.get_or_refresh("pools", slow_refresh))
    second = asyncio.create_task(cache.get_or_refresh("pools", slow_refresh))
    await asyncio.sleep(0)
    gate.set()
    await asyncio.gather(first, second)

    assert len(calls) == 2
    assert cache.get("pools").records == (2,)


async def test_is_stale_tracks_key_age(cache, clock):
    """is_stale reports a missing key as stale and a stored one until its TTL passes."""
    assert cache.is_stale("pools")
    await cache.get_or_refresh("pools", AsyncMock(return_value=[1]))
    assert not cache.is_stale("pools")
    clock.advance(minutes=15, seconds=1)
    assert cache.is_stale("pools")
