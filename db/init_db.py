#!/usr/bin/env python3
"""Initialize the swarm database schema.

Creates the tables declared in db/models against the database pointed to
by DATABASE_URL, then seeds a neutral leaderboard row per catalogued agent.

Usage:
  python -m db.init_db

Requirements:
  - DATABASE_URL must be set
"""

from __future__ import annotations

import asyncio
import logging
import os

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from core.storage.postgres.config import normalize_database_url
from core.swarm.agents import DEFAULT_AGENTS
from db.crud.swarm import ensure_leaderboard_rows
from db.models.swarm import Base

logger = logging.getLogger(__name__)


async def init_schema(database_url: str, seed: bool = True) -> None:
    engine = create_async_engine(normalize_database_url(database_url), echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        if seed:
            async with AsyncSession(engine) as db:
                await ensure_leaderboard_rows(db, [agent.id for agent in DEFAULT_AGENTS])
    finally:
        await engine.dispose()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise SystemExit("DATABASE_URL is not set")

    asyncio.run(init_schema(database_url))
    logger.info("Database schema applied")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
