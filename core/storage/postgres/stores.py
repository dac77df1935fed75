from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from core.persistence.interfaces import EntryUpdate, LeaderboardStore, PredictionStore
from core.storage.postgres.config import PostgresConfig
from core.swarm.exceptions import PredictionAlreadySettledError, PredictionNotFoundError
from core.swarm.types import (
    AgentAnalysis,
    Consensus,
    LeaderboardEntry,
    Outcome,
    PredictionRecord,
    PredictionStatus,
)
from db.crud import swarm as swarm_crud
from db.models.swarm import AILeaderboard, AIPrediction

logger = logging.getLogger(__name__)


def _entry_from_row(row: AILeaderboard) -> LeaderboardEntry:
    return LeaderboardEntry(
        agent_id=row.agent_id,
        wins=row.wins or 0,
        losses=row.losses or 0,
        pushes=row.pushes or 0,
        total_predictions=row.total_predictions or 0,
        win_rate=row.win_rate if row.win_rate is not None else 0.5,
        current_streak=row.current_streak or 0,
        best_streak=row.best_streak or 0,
        worst_streak=row.worst_streak or 0,
        vote_weight=row.vote_weight if row.vote_weight is not None else 1.0,
    )


def _entry_values(entry: LeaderboardEntry) -> dict[str, Any]:
    return {
        "wins": entry.wins,
        "losses": entry.losses,
        "pushes": entry.pushes,
        "total_predictions": entry.total_predictions,
        "win_rate": entry.win_rate,
        "current_streak": entry.current_streak,
        "best_streak": entry.best_streak,
        "worst_streak": entry.worst_streak,
        "vote_weight": entry.vote_weight,
    }


def _record_from_row(row: AIPrediction) -> PredictionRecord:
    return PredictionRecord(
        id=row.id,
        event_id=row.event_id,
        event_name=row.event_name,
        consensus=Consensus.from_dict(row.consensus),
        analyses=tuple(AgentAnalysis.from_dict(a) for a in (row.analyses or [])),
        sport=row.sport,
        league=row.league,
        home_team=row.home_team,
        away_team=row.away_team,
        commence_time=row.commence_time,
        bet_selection=row.bet_selection,
        bet_odds=row.bet_odds,
        status=PredictionStatus(row.status),
        created_at=row.created_at,
        settled_at=row.settled_at,
    )


class PostgresStores(LeaderboardStore, PredictionStore):
    """Single entrypoint for the PostgreSQL-backed swarm persistence layer.

    Leaderboard updates lock the agent's row (``SELECT ... FOR UPDATE``) for
    the duration of the read-modify-write. Settlement is a conditional
    ``UPDATE ... WHERE status = 'pending'`` committed in the same transaction
    as the agent row updates it implies.
    """

    def __init__(self, *, config: PostgresConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: Callable[[], AsyncSession] | None = None

    def _get_session_factory(self) -> Callable[[], AsyncSession]:
        if self._session_factory is None:
            # Do not log the URL (it may contain secrets).
            self._engine = create_async_engine(
                self._config.async_url,
                echo=False,
                pool_pre_ping=True,
                connect_args={"timeout": self._config.connect_timeout_seconds},
            )
            self._session_factory = sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)
        return self._session_factory

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    # -- LeaderboardStore ---------------------------------------------------

    async def get_entries(self) -> Sequence[LeaderboardEntry]:
        async with self._get_session_factory()() as db:
            rows = await swarm_crud.get_leaderboard_rows(db)
            return [_entry_from_row(r) for r in rows]

    async def ensure_entries(self, *, agent_ids: Iterable[str]) -> None:
        async with self._get_session_factory()() as db:
            await swarm_crud.ensure_leaderboard_rows(db, list(agent_ids))

    async def update_entry(
        self,
        *,
        agent_id: str,
        update: EntryUpdate,
    ) -> LeaderboardEntry:
        async with self._get_session_factory()() as db:
            try:
                row = await swarm_crud.lock_leaderboard_row(db, agent_id)
                updated = update(_entry_from_row(row))
                await swarm_crud.write_leaderboard_row(db, agent_id, _entry_values(updated))
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return updated

    # -- PredictionStore ----------------------------------------------------

    async def save_prediction(self, *, record: PredictionRecord) -> PredictionRecord:
        async with self._get_session_factory()() as db:
            row = await swarm_crud.create_prediction(
                db,
                id=record.id or uuid.uuid4().hex,
                event_id=record.event_id,
                event_name=record.event_name,
                sport=record.sport,
                league=record.league,
                home_team=record.home_team,
                away_team=record.away_team,
                commence_time=record.commence_time,
                consensus=record.consensus.to_dict(),
                analyses=[a.to_dict() for a in record.analyses],
                bet_selection=record.bet_selection,
                bet_odds=record.bet_odds,
                status=record.status.value,
                created_at=record.created_at,
            )
            return _record_from_row(row)

    async def latest_for_event(self, *, event_id: str) -> Optional[PredictionRecord]:
        async with self._get_session_factory()() as db:
            row = await swarm_crud.get_latest_prediction_for_event(db, event_id)
            return None if row is None else _record_from_row(row)

    async def list_predictions(
        self,
        *,
        status: PredictionStatus | None = None,
        sport: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> Sequence[PredictionRecord]:
        async with self._get_session_factory()() as db:
            rows = await swarm_crud.get_predictions(
                db,
                status=status.value if status else None,
                sport=sport,
                since=since,
                limit=limit,
            )
            return [_record_from_row(r) for r in rows]

    async def settle_prediction(
        self,
        *,
        prediction_id: str,
        outcome: Outcome,
        settled_at: datetime,
        updates: Callable[[PredictionRecord], Mapping[str, EntryUpdate]],
    ) -> PredictionRecord:
        async with self._get_session_factory()() as db:
            try:
                settled = await swarm_crud.settle_pending_prediction(db, prediction_id, outcome.value, settled_at)
                row = await swarm_crud.get_prediction(db, prediction_id)
                if row is None:
                    raise PredictionNotFoundError(prediction_id)
                if not settled:
                    raise PredictionAlreadySettledError(prediction_id, row.status)
                record = _record_from_row(row)

                # Agent rows are locked in id order so concurrent settlements cannot deadlock
                agent_updates = updates(record)
                for agent_id in sorted(agent_updates):
                    entry_row = await swarm_crud.lock_leaderboard_row(db, agent_id)
                    entry = agent_updates[agent_id](_entry_from_row(entry_row))
                    await swarm_crud.write_leaderboard_row(db, agent_id, _entry_values(entry))
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info("Prediction %s settled as %s (%d agent rows)", prediction_id, outcome.value, len(agent_updates))
        return record
