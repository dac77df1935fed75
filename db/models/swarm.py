"""SQLAlchemy models for the prediction swarm tables.

These models map to the tables created by `python -m db.init_db`:
- ai_leaderboard
- ai_predictions
"""

from __future__ import annotations


from sqlalchemy import Column, DateTime, Float, Index, Integer, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class AILeaderboard(Base):
    """Historical performance per agent.

    Table: ai_leaderboard
    """

    __tablename__ = "ai_leaderboard"

    agent_id = Column(Text, primary_key=True)  # claude|chatgpt|gemini|...
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    pushes = Column(Integer, nullable=False, default=0)
    total_predictions = Column(Integer, nullable=False, default=0)
    win_rate = Column(Float, nullable=False, default=0.5)
    current_streak = Column(Integer, nullable=False, default=0)
    best_streak = Column(Integer, nullable=False, default=0)
    worst_streak = Column(Integer, nullable=False, default=0)
    vote_weight = Column(Float, nullable=False, default=1.0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self) -> str:
        return f"<AILeaderboard(agent={self.agent_id}, {self.wins}-{self.losses}-{self.pushes}, w={self.vote_weight})>"


class AIPrediction(Base):
    """Persisted swarm result awaiting (or after) settlement.

    Table: ai_predictions
    """

    __tablename__ = "ai_predictions"

    id = Column(Text, primary_key=True)
    event_id = Column(Text, nullable=False)
    event_name = Column(Text, nullable=False)
    sport = Column(Text, nullable=True)
    league = Column(Text, nullable=True)
    home_team = Column(Text, nullable=True)
    away_team = Column(Text, nullable=True)
    commence_time = Column(DateTime(timezone=True), nullable=True)
    consensus = Column(JSONB, nullable=False)
    analyses = Column(JSONB, nullable=False, default=list)  # AgentAnalysis wire dicts
    bet_selection = Column(Text, nullable=True)
    bet_odds = Column(Float, nullable=True)
    status = Column(Text, nullable=False, default="pending")  # pending|won|lost|push
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    settled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_ai_predictions_event", "event_id", "created_at"),
        Index("idx_ai_predictions_status", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AIPrediction(id={self.id}, event={self.event_id}, status={self.status})>"
