"""Async CRUD operations for the prediction swarm tables.

Uses asyncpg/SQLAlchemy async sessions for database operations.
Functions that lock or update rows leave the transaction open; the
caller commits (see ``core.storage.postgres.stores``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Sequence

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from db.models.swarm import AILeaderboard, AIPrediction


# ---------------------------------------------------------------------------
# Leaderboard Operations
# ---------------------------------------------------------------------------


async def get_leaderboard_rows(db: AsyncSession) -> Sequence[AILeaderboard]:
    """Get every agent's leaderboard row."""
    result = await db.execute(select(AILeaderboard).order_by(AILeaderboard.agent_id))
    return result.scalars().all()


async def ensure_leaderboard_rows(db: AsyncSession, agent_ids: Iterable[str]) -> None:
    """Insert neutral rows for agents that have none. Existing rows are left alone."""
    values = [{"agent_id": agent_id} for agent_id in agent_ids]
    if not values:
        return
    await db.execute(pg_insert(AILeaderboard).values(values).on_conflict_do_nothing(index_elements=["agent_id"]))
    await db.commit()


async def lock_leaderboard_row(db: AsyncSession, agent_id: str) -> AILeaderboard:
    """Create the row if missing, then lock it ``FOR UPDATE``.

    Does not commit: the lock is held until the caller's transaction ends.
    """
    await db.execute(
        pg_insert(AILeaderboard).values(agent_id=agent_id).on_conflict_do_nothing(index_elements=["agent_id"])
    )
    result = await db.execute(
        select(AILeaderboard)
        .where(AILeaderboard.agent_id == agent_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()


async def write_leaderboard_row(db: AsyncSession, agent_id: str, values: dict[str, Any]) -> None:
    """Overwrite an agent's counters. Does not commit."""
    await db.execute(update(AILeaderboard).where(AILeaderboard.agent_id == agent_id).values(**values))


# ---------------------------------------------------------------------------
# Prediction Operations
# ---------------------------------------------------------------------------


async def create_prediction(db: AsyncSession, **values: Any) -> AIPrediction:
    """Insert a new prediction row."""
    prediction = AIPrediction(**values)
    db.add(prediction)
    await db.commit()
    await db.refresh(prediction)
    return prediction


async def get_prediction(db: AsyncSession, prediction_id: str) -> AIPrediction | None:
    """Get a prediction by id."""
    result = await db.execute(
        select(AIPrediction).where(AIPrediction.id == prediction_id).execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_latest_prediction_for_event(db: AsyncSession, event_id: str) -> AIPrediction | None:
    """Get the most recent prediction stored for an event."""
    result = await db.execute(
        select(AIPrediction)
        .where(AIPrediction.event_id == event_id)
        .order_by(AIPrediction.created_at.desc())
        .limit(1)
    )
    return result.scalars().first()


async def get_predictions(
    db: AsyncSession,
    status: str | None = None,
    sport: str | None = None,
    since: datetime | None = None,
    limit: int = 50,
) -> Sequence[AIPrediction]:
    """Get predictions with optional filters, newest first."""
    query = select(AIPrediction)
    if status:
        query = query.where(AIPrediction.status == status)
    if sport:
        query = query.where(AIPrediction.sport == sport)
    if since:
        query = query.where(AIPrediction.created_at >= since)

    query = query.order_by(AIPrediction.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return result.scalars().all()


async def settle_pending_prediction(
    db: AsyncSession,
    prediction_id: str,
    status: str,
    settled_at: datetime,
) -> bool:
    """Move a prediction from pending to ``status``.

    The update is conditional on the row still being pending, so two
    concurrent settlements cannot both succeed. Does not commit: the
    caller applies the leaderboard updates in the same transaction.

    Returns:
        True if this call performed the transition.
    """
    result = await db.execute(
        update(AIPrediction)
        .where(AIPrediction.id == prediction_id, AIPrediction.status == "pending")
        .values(status=status, settled_at=settled_at)
        .returning(AIPrediction.id)
    )
    return result.scalar_one_or_none() is not None
