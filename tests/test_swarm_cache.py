"""Unit tests for the swarm result cache (in-memory and Redis)."""

from __future__ import annotations

import json
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from core.swarm.cache import InMemoryResultCache, RedisResultCache, cache_key
from core.swarm.consensus import ConsensusEngine
from core.swarm.types import SwarmResult, Verdict


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def result(make_analysis, sample_event) -> SwarmResult:
    analyses = (
        make_analysis("claude", Verdict.STRONG_BET, selection="Boston Celtics -6.5", odds=1.91),
        make_analysis("grok", error="Timed out after 30s"),
    )
    return SwarmResult(
        event_id=sample_event.id,
        event_name=sample_event.name,
        sport=sample_event.sport_title,
        analyses=analyses,
        consensus=ConsensusEngine().compute(analyses, {}),
        bet_selection="Boston Celtics -6.5",
        bet_odds=1.91,
    )


# ---------------------------------------------------------------------------
# InMemoryResultCache Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_memory_cache_roundtrip(result):
    """Test get after set inside the TTL."""
    cache = InMemoryResultCache()
    await cache.set(result, 1800)

    assert await cache.get(result.event_id) == result
    assert await cache.get("missing") is None


@pytest.mark.asyncio
async def test_memory_cache_expiry(result):
    """Test that entries expire after their TTL."""
    clock = FakeClock()
    cache = InMemoryResultCache(clock=clock)
    await cache.set(result, 60)

    clock.now = 59.9
    assert await cache.get(result.event_id) is not None
    clock.now = 60.0
    assert await cache.get(result.event_id) is None
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_memory_cache_zero_ttl_not_stored(result):
    """Test that a non-positive TTL skips the write."""
    cache = InMemoryResultCache()
    await cache.set(result, 0)

    assert await cache.get(result.event_id) is None


@pytest.mark.asyncio
async def test_memory_cache_prunes_expired_on_write(result):
    """Test that expired entries for other events do not pile up."""
    clock = FakeClock()
    cache = InMemoryResultCache(clock=clock)
    for i in range(100):
        await cache.set(replace(result, event_id=f"evt-{i}"), 10)

    clock.now = 1000
    await cache.set(result, 10)

    assert len(cache) == 1
    assert await cache.get(result.event_id) == result


@pytest.mark.asyncio
async def test_memory_cache_evicts_oldest_over_capacity(result):
    """Test that the oldest write is evicted first once full."""
    cache = InMemoryResultCache(max_entries=2)
    await cache.set(replace(result, event_id="evt-1"), 60)
    await cache.set(replace(result, event_id="evt-2"), 60)
    # rewriting evt-1 makes evt-2 the oldest
    await cache.set(replace(result, event_id="evt-1"), 60)
    await cache.set(replace(result, event_id="evt-3"), 60)

    assert len(cache) == 2
    assert await cache.get("evt-2") is None
    assert await cache.get("evt-1") is not None
    assert await cache.get("evt-3") is not None


def test_memory_cache_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        InMemoryResultCache(max_entries=0)


# ---------------------------------------------------------------------------
# RedisResultCache Tests
# ---------------------------------------------------------------------------


@pytest.fixture
def redis_client():
    """Redis client double with an in-dict keyspace."""
    store: dict[str, str] = {}
    client = AsyncMock()

    async def setex(key, ttl, value):
        store[key] = value

    async def get(key):
        return store.get(key)

    client.setex.side_effect = setex
    client.get.side_effect = get
    client.store = store
    return client


def test_redis_cache_requires_url_or_client():
    with pytest.raises(ValueError):
        RedisResultCache()


@pytest.mark.asyncio
async def test_redis_cache_roundtrip(redis_client, result):
    """Test that the JSON wire form survives a set/get."""
    cache = RedisResultCache(client=redis_client)
    await cache.set(result, 1800)

    key, ttl, payload = redis_client.setex.call_args.args
    assert key == "swarm:evt-lal-bos"
    assert ttl == 1800
    assert json.loads(payload)["consensus"]["verdict"] == "STRONG BET"

    cached = await cache.get(result.event_id)
    assert cached.consensus == result.consensus
    assert cached.analyses[0].bet_selection == "Boston Celtics -6.5"
    assert cached.analyses[1].error == "Timed out after 30s"
    assert cached.bet_odds == 1.91


@pytest.mark.asyncio
async def test_redis_cache_zero_ttl_skipped(redis_client, result):
    cache = RedisResultCache(client=redis_client)
    await cache.set(result, 0)

    redis_client.setex.assert_not_called()


@pytest.mark.asyncio
async def test_redis_failure_is_a_miss(redis_client, result):
    """Test that backend errors never propagate."""
    redis_client.get.side_effect = ConnectionError("redis unavailable")
    redis_client.setex.side_effect = ConnectionError("redis unavailable")
    cache = RedisResultCache(client=redis_client)

    await cache.set(result, 60)
    assert await cache.get(result.event_id) is None


@pytest.mark.asyncio
async def test_redis_unreadable_entry_is_a_miss(redis_client):
    """Test that a corrupt entry is discarded."""
    redis_client.store[cache_key("evt-1")] = "{not json"
    cache = RedisResultCache(client=redis_client)

    assert await cache.get("evt-1") is None


@pytest.mark.asyncio
async def test_redis_close(redis_client):
    cache = RedisResultCache(client=redis_client)
    await cache.close()

    redis_client.aclose.assert_awaited_once()
