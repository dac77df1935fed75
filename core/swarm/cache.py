"""Result cache: short-TTL store of SwarmResults keyed by event id.

The cache is a performance optimization, never a source of truth: any
backend failure is logged and behaves like a miss (reads) or a skipped
write (writes).
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

import redis.asyncio as aioredis

from core.swarm.types import SwarmResult

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "swarm:"
DEFAULT_MAX_ENTRIES = 1024


def cache_key(event_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}{event_id}"


class ResultCache(ABC):
    """Keyed store of event id → SwarmResult with expiry."""

    @abstractmethod
    async def get(self, event_id: str) -> SwarmResult | None:
        """Return the cached result, or ``None`` on miss, expiry or failure."""

    @abstractmethod
    async def set(self, result: SwarmResult, ttl_seconds: int) -> None:
        """Store ``result`` under its event id for ``ttl_seconds``."""

    async def close(self) -> None:
        return None


class InMemoryResultCache(ResultCache):
    """Process-local cache, used when no Redis is configured and in tests.

    Expired entries are pruned on every write. Beyond ``max_entries`` the
    oldest writes are evicted first.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, tuple[float, SwarmResult]] = {}
        self._lock = asyncio.Lock()

    async def get(self, event_id: str) -> SwarmResult | None:
        async with self._lock:
            entry = self._entries.get(event_id)
            if entry is None:
                return None
            expires_at, result = entry
            if self._clock() >= expires_at:
                del self._entries[event_id]
                return None
            return result

    async def set(self, result: SwarmResult, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        async with self._lock:
            now = self._clock()
            for event_id in [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]:
                del self._entries[event_id]
            # re-insert so dict order stays write order
            self._entries.pop(result.event_id, None)
            self._entries[result.event_id] = (now + ttl_seconds, result)
            while len(self._entries) > self._max_entries:
                del self._entries[next(iter(self._entries))]

    def __len__(self) -> int:
        return len(self._entries)


class RedisResultCache(ResultCache):
    """Redis-backed cache storing the JSON wire form with ``SETEX``."""

    def __init__(self, url: str | None = None, client: aioredis.Redis | None = None) -> None:
        if client is None and url is None:
            raise ValueError("RedisResultCache needs a url or a client")
        self._url = url
        self._client = client

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            # Do not log the URL (it may contain credentials).
            self._client = aioredis.from_url(self._url, decode_responses=True)
        return self._client

    async def get(self, event_id: str) -> SwarmResult | None:
        try:
            raw = await self._get_client().get(cache_key(event_id))
        except Exception as exc:
            logger.warning("Cache get failed for %s, treating as miss: %s", event_id, exc)
            return None
        if not raw:
            return None
        try:
            return SwarmResult.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable cache entry for %s: %s", event_id, exc)
            return None

    async def set(self, result: SwarmResult, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        try:
            await self._get_client().setex(cache_key(result.event_id), ttl_seconds, json.dumps(result.to_dict()))
        except Exception as exc:
            logger.warning("Cache set failed for %s, continuing uncached: %s", result.event_id, exc)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
