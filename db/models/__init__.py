"""SQLAlchemy models for the prediction swarm database."""

from db.models.swarm import AILeaderboard, AIPrediction, Base

__all__ = ["AILeaderboard", "AIPrediction", "Base"]
