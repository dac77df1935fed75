"""Leaderboard and feedback loop.

Settled predictions feed back into per-agent performance rows, which in
turn set each agent's vote weight in future consensus runs:

    settle_prediction -> agent_result_for_vote -> apply_outcome (pure)
        -> store.settle_prediction (status and rows written together)

    record_outcome -> apply_outcome -> store.update_entry (atomic)

Reads go through a short in-process cache; writes invalidate it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING, Callable, Sequence

from core.swarm.agents import AgentRegistry
from core.swarm.consensus import clamp_weight
from core.swarm.types import (
    NEUTRAL_WIN_RATE,
    Agent,
    LeaderboardEntry,
    Outcome,
    PredictionRecord,
    PredictionStatus,
    SportEvent,
    SwarmResult,
    Verdict,
    utcnow,
)

if TYPE_CHECKING:
    from core.persistence.interfaces import EntryUpdate, LeaderboardStore, PredictionStore

logger = logging.getLogger(__name__)

DEFAULT_LEADERBOARD_TTL_SECONDS = 300  # 5 minutes


def apply_outcome(entry: LeaderboardEntry, outcome: Outcome) -> LeaderboardEntry:
    """Return ``entry`` updated with one settled result.

    Win rate only counts decided results (pushes excluded) and stays at the
    neutral 0.5 until one exists. A push leaves the streak untouched.
    """
    wins = entry.wins + (1 if outcome == Outcome.WON else 0)
    losses = entry.losses + (1 if outcome == Outcome.LOST else 0)
    pushes = entry.pushes + (1 if outcome == Outcome.PUSH else 0)
    decided = wins + losses
    win_rate = wins / decided if decided > 0 else NEUTRAL_WIN_RATE

    streak = entry.current_streak
    if outcome == Outcome.WON:
        streak = streak + 1 if streak >= 0 else 1
    elif outcome == Outcome.LOST:
        streak = streak - 1 if streak <= 0 else -1

    return replace(
        entry,
        wins=wins,
        losses=losses,
        pushes=pushes,
        total_predictions=wins + losses + pushes,
        win_rate=win_rate,
        current_streak=streak,
        best_streak=max(entry.best_streak, streak),
        worst_streak=min(entry.worst_streak, streak),
        vote_weight=clamp_weight(win_rate * 2),
    )


def agent_result_for_vote(verdict: Verdict, outcome: Outcome) -> Outcome:
    """Score one agent's vote against the settled outcome of the swarm bet.

    A betting vote is right when the bet won; a passing vote is right when
    it lost. Pushes stay pushes.
    """
    if outcome == Outcome.PUSH:
        return Outcome.PUSH
    correct = (outcome == Outcome.WON and verdict.is_bet) or (outcome == Outcome.LOST and not verdict.is_bet)
    return Outcome.WON if correct else Outcome.LOST


@dataclass(frozen=True)
class PredictionStats:
    """Summary over a list of predictions."""

    total: int
    won: int
    lost: int
    pushed: int
    pending: int
    win_rate: float  # percent over won + lost, one decimal
    current_streak: int
    sports: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "won": self.won,
            "lost": self.lost,
            "pushed": self.pushed,
            "pending": self.pending,
            "winRate": f"{self.win_rate:.1f}",
            "currentStreak": self.current_streak,
        }


def prediction_stats(predictions: Sequence[PredictionRecord]) -> PredictionStats:
    """Totals, win rate and the current streak over ``predictions`` (newest first)."""
    won = sum(1 for p in predictions if p.status == PredictionStatus.WON)
    lost = sum(1 for p in predictions if p.status == PredictionStatus.LOST)
    pushed = sum(1 for p in predictions if p.status == PredictionStatus.PUSH)
    pending = sum(1 for p in predictions if p.status == PredictionStatus.PENDING)
    settled = won + lost
    win_rate = won / settled * 100 if settled > 0 else 0.0

    # Walk back from the newest settled prediction until the run breaks
    streak = 0
    for p in predictions:
        if p.status == PredictionStatus.WON:
            if streak < 0:
                break
            streak += 1
        elif p.status == PredictionStatus.LOST:
            if streak > 0:
                break
            streak -= 1

    sports = sorted({p.sport for p in predictions if p.sport})
    return PredictionStats(
        total=len(predictions),
        won=won,
        lost=lost,
        pushed=pushed,
        pending=pending,
        win_rate=win_rate,
        current_streak=streak,
        sports=sports,
    )


class LeaderboardService:
    """Reads and updates agent performance and persisted predictions."""

    def __init__(
        self,
        store: LeaderboardStore,
        predictions: PredictionStore,
        agents: AgentRegistry,
        ttl_seconds: int = DEFAULT_LEADERBOARD_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.predictions = predictions
        self.agents = agents
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cached: dict[str, LeaderboardEntry] | None = None
        self._cached_at = 0.0
        self._lock = asyncio.Lock()

    # -- leaderboard ----------------------------------------------------------

    def neutral_board(self) -> dict[str, LeaderboardEntry]:
        return {agent_id: LeaderboardEntry.neutral(agent_id) for agent_id in self.agents.ids()}

    def invalidate(self) -> None:
        self._cached = None

    async def get_leaderboard(self) -> dict[str, LeaderboardEntry]:
        """Agent id -> entry for every registered agent.

        Agents without a stored row get a neutral entry. If the store
        cannot be read the neutral board is returned (and not cached).
        """
        async with self._lock:
            if self._cached is not None and self._clock() - self._cached_at < self.ttl_seconds:
                return dict(self._cached)

            try:
                entries = await self.store.get_entries()
            except Exception as exc:
                logger.warning("Leaderboard read failed, using neutral weights: %s", exc)
                return self.neutral_board()

            board = self.neutral_board()
            board.update({e.agent_id: e for e in entries})
            self._cached = board
            self._cached_at = self._clock()
            return dict(board)

    async def ranked(self) -> list[tuple[Agent, LeaderboardEntry]]:
        """Registered agents with their entries, best win rate first.

        Ties are broken by the number of decided results.
        """
        board = await self.get_leaderboard()
        rows = [(agent, board[agent.id]) for agent in self.agents]
        rows.sort(key=lambda row: (row[1].win_rate, row[1].wins + row[1].losses), reverse=True)
        return rows

    async def record_outcome(self, agent_id: str, outcome: Outcome) -> LeaderboardEntry:
        """Apply one result to an agent's row atomically."""
        self.agents.require(agent_id)
        entry = await self.store.update_entry(agent_id=agent_id, update=lambda e: apply_outcome(e, outcome))
        self.invalidate()
        logger.info(
            "Agent %s recorded %s: %d-%d-%d weight=%.2f",
            agent_id,
            outcome.value,
            entry.wins,
            entry.losses,
            entry.pushes,
            entry.vote_weight,
        )
        return entry

    async def seed(self) -> None:
        """Make sure every registered agent has a row."""
        await self.store.ensure_entries(agent_ids=self.agents.ids())
        self.invalidate()

    # -- predictions ----------------------------------------------------------

    async def save_prediction(self, result: SwarmResult, event: SportEvent | None = None) -> PredictionRecord:
        """Persist ``result`` as a pending prediction."""
        record = PredictionRecord(
            id="",
            event_id=result.event_id,
            event_name=result.event_name,
            consensus=result.consensus,
            analyses=result.analyses,
            sport=result.sport or None,
            league=event.league if event else None,
            home_team=event.home_team if event else None,
            away_team=event.away_team if event else None,
            commence_time=event.commence_time if event else None,
            bet_selection=result.bet_selection,
            bet_odds=result.bet_odds,
        )
        saved = await self.predictions.save_prediction(record=record)
        logger.info("Saved prediction %s for event %s", saved.id, saved.event_id)
        return saved

    async def latest_prediction(self, event_id: str) -> PredictionRecord | None:
        return await self.predictions.latest_for_event(event_id=event_id)

    async def get_prediction_for_event(self, event_id: str) -> SwarmResult | None:
        """The stored result for ``event_id``, so every caller sees the same analysis."""
        record = await self.latest_prediction(event_id)
        return None if record is None else record.to_swarm_result()

    async def list_predictions(
        self,
        status: PredictionStatus | None = None,
        sport: str | None = None,
        days: int | None = 7,
        limit: int = 50,
    ) -> Sequence[PredictionRecord]:
        since = utcnow() - timedelta(days=days) if days else None
        return await self.predictions.list_predictions(status=status, sport=sport, since=since, limit=limit)

    async def settle_prediction(self, prediction_id: str, outcome: Outcome) -> PredictionRecord:
        """Settle a pending prediction and credit each agent's vote.

        Every recorded vote is scored, degraded ones included: an agent that
        failed to answer did not call a bet. The status change and the
        agent rows are written together, so a failure leaves the
        prediction pending and safe to settle again.

        Raises:
            PredictionNotFoundError: unknown id.
            PredictionAlreadySettledError: already settled; nothing changes.
        """
        record = await self.predictions.settle_prediction(
            prediction_id=prediction_id,
            outcome=outcome,
            settled_at=utcnow(),
            updates=lambda settled: self._vote_updates(settled, outcome),
        )
        self.invalidate()
        logger.info("Settled prediction %s (%s) as %s", record.id, record.event_name, outcome.value)
        return record

    def _vote_updates(self, record: PredictionRecord, outcome: Outcome) -> dict[str, EntryUpdate]:
        updates: dict[str, EntryUpdate] = {}
        for analysis in record.analyses:
            if analysis.agent_id not in self.agents:
                logger.warning("Skipping vote from unregistered agent %s", analysis.agent_id)
                continue
            result = agent_result_for_vote(analysis.verdict, outcome)
            logger.debug("Prediction %s: agent %s scored %s", record.id, analysis.agent_id, result.value)
            updates[analysis.agent_id] = partial(apply_outcome, outcome=result)
        return updates
