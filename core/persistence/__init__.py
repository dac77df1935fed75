"""Persistence interfaces.

These protocols define the persistence boundary. Implementations can be backed by
PostgreSQL (recommended) or kept in memory.
"""

from .interfaces import LeaderboardStore, PredictionStore
