"""In-process stores, used when no database is configured and in tests."""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from contextlib import AsyncExitStack
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Mapping, Optional, Sequence

from core.persistence.interfaces import EntryUpdate, LeaderboardStore, PredictionStore
from core.swarm.exceptions import PredictionAlreadySettledError, PredictionNotFoundError
from core.swarm.types import LeaderboardEntry, Outcome, PredictionRecord, PredictionStatus


class InMemoryLeaderboardStore(LeaderboardStore):
    """Leaderboard rows in a dict, one ``asyncio.Lock`` per agent."""

    def __init__(self, entries: Iterable[LeaderboardEntry] = ()) -> None:
        self._entries: dict[str, LeaderboardEntry] = {e.agent_id: e for e in entries}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get_entries(self) -> Sequence[LeaderboardEntry]:
        return list(self._entries.values())

    async def ensure_entries(self, *, agent_ids: Iterable[str]) -> None:
        for agent_id in agent_ids:
            self._entries.setdefault(agent_id, LeaderboardEntry.neutral(agent_id))

    async def update_entry(
        self,
        *,
        agent_id: str,
        update: EntryUpdate,
    ) -> LeaderboardEntry:
        updated = await self.update_entries(updates={agent_id: update})
        return updated[agent_id]

    async def update_entries(self, *, updates: Mapping[str, EntryUpdate]) -> dict[str, LeaderboardEntry]:
        """Apply several row updates; nothing is written unless all of them succeed.

        Locks are taken in agent id order so overlapping batches cannot deadlock.
        """
        agent_ids = sorted(updates)
        async with AsyncExitStack() as stack:
            for agent_id in agent_ids:
                await stack.enter_async_context(self._locks[agent_id])
            current = {a: self._entries.get(a) or LeaderboardEntry.neutral(a) for a in agent_ids}
            # let other tasks run between read and write; the locks keep this atomic
            await asyncio.sleep(0)
            updated = {a: updates[a](current[a]) for a in agent_ids}
            self._entries.update(updated)
            return updated


class InMemoryPredictionStore(PredictionStore):
    """Prediction records in a dict; settlement guarded by a single lock.

    Settlement writes agent rows through ``leaderboard`` while the lock is
    held, so the record only leaves pending once every row is updated.
    """

    def __init__(self, leaderboard: InMemoryLeaderboardStore) -> None:
        self._leaderboard = leaderboard
        self._records: dict[str, PredictionRecord] = {}
        self._lock = asyncio.Lock()

    async def save_prediction(self, *, record: PredictionRecord) -> PredictionRecord:
        saved = replace(record, id=record.id or uuid.uuid4().hex)
        async with self._lock:
            self._records[saved.id] = saved
        return saved

    async def latest_for_event(self, *, event_id: str) -> Optional[PredictionRecord]:
        matches = [r for r in self._records.values() if r.event_id == event_id]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    async def list_predictions(
        self,
        *,
        status: PredictionStatus | None = None,
        sport: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> Sequence[PredictionRecord]:
        records = [
            r
            for r in self._records.values()
            if (status is None or r.status == status)
            and (sport is None or r.sport == sport)
            and (since is None or r.created_at >= since)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[:limit]

    async def settle_prediction(
        self,
        *,
        prediction_id: str,
        outcome: Outcome,
        settled_at: datetime,
        updates: Callable[[PredictionRecord], Mapping[str, EntryUpdate]],
    ) -> PredictionRecord:
        async with self._lock:
            record = self._records.get(prediction_id)
            if record is None:
                raise PredictionNotFoundError(prediction_id)
            if record.is_settled:
                raise PredictionAlreadySettledError(prediction_id, record.status.value)
            settled = replace(record, status=PredictionStatus(outcome.value), settled_at=settled_at)
            await self._leaderboard.update_entries(updates=updates(settled))
            self._records[prediction_id] = settled
            return settled
