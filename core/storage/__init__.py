"""Storage implementations of the persistence interfaces.

Keeping implementations separate makes swapping backends easier.
"""

from .memory_stores import InMemoryLeaderboardStore, InMemoryPredictionStore
from .postgres import PostgresConfig, PostgresStores
