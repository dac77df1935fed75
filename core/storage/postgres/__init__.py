"""PostgreSQL storage for leaderboard rows and predictions.

Notes
- We avoid logging connection URLs to prevent accidental secret leakage.
- Tables are created by ``python -m db.init_db``.
"""

from .config import PostgresConfig, normalize_database_url
from .stores import PostgresStores
