from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Mapping, Optional, Protocol, Sequence

from core.swarm.types import LeaderboardEntry, Outcome, PredictionRecord, PredictionStatus

EntryUpdate = Callable[[LeaderboardEntry], LeaderboardEntry]


class LeaderboardStore(Protocol):
    async def get_entries(self) -> Sequence[LeaderboardEntry]:
        """Return every stored agent row."""

    async def ensure_entries(self, *, agent_ids: Iterable[str]) -> None:
        """Create neutral rows for agents that have none (existing rows untouched)."""

    async def update_entry(
        self,
        *,
        agent_id: str,
        update: EntryUpdate,
    ) -> LeaderboardEntry:
        """Atomically read, transform and write one agent's row.

        A missing row is created from ``LeaderboardEntry.neutral`` first.
        Concurrent updates for the same agent must not lose writes.
        """


class PredictionStore(Protocol):
    async def save_prediction(self, *, record: PredictionRecord) -> PredictionRecord:
        """Persist a new pending prediction; returns it with its assigned id."""

    async def latest_for_event(self, *, event_id: str) -> Optional[PredictionRecord]:
        """Fetch the most recently created prediction for an event."""

    async def list_predictions(
        self,
        *,
        status: PredictionStatus | None = None,
        sport: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> Sequence[PredictionRecord]:
        """List predictions, newest first."""

    async def settle_prediction(
        self,
        *,
        prediction_id: str,
        outcome: Outcome,
        settled_at: datetime,
        updates: Callable[[PredictionRecord], Mapping[str, EntryUpdate]],
    ) -> PredictionRecord:
        """Move a pending prediction to ``outcome`` and apply its leaderboard updates.

        ``updates`` receives the settled record and returns one row update
        per agent. The status change and every row update succeed or fail
        together; after a failure the prediction is still pending.

        Raises:
            PredictionNotFoundError: no such prediction.
            PredictionAlreadySettledError: the prediction is not pending.
        """
