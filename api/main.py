"""FastAPI application for the prediction swarm.

This module provides the HTTP service for:
- POST /api/swarm/analyze - Run (or reuse) the swarm analysis for an event
- GET /api/swarm/stream - Stream an analysis as Server-Sent Events
- POST /api/swarm/predictions/{id}/settle - Settle a stored prediction
- GET /api/swarm/predictions - Stored predictions with summary stats
- GET /api/swarm/leaderboard - Agent performance ranking
- GET /api/swarm/agents - Agent catalog
- GET /health - Liveness

Configuration:
- DATABASE_URL (optional) - PostgreSQL; in-memory stores when unset
- REDIS_URL (optional) - Redis result cache; in-memory cache when unset
- Provider API keys, see core/swarm/config.py
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from api.routes.swarm import SwarmServices, router as swarm_router
from core.storage.memory_stores import InMemoryLeaderboardStore, InMemoryPredictionStore
from core.storage.postgres.config import PostgresConfig
from core.storage.postgres.stores import PostgresStores
from core.swarm.adapters import build_default_registry
from core.swarm.agents import AgentRegistry
from core.swarm.cache import InMemoryResultCache, RedisResultCache, ResultCache
from core.swarm.config import SwarmSettings
from core.swarm.leaderboard import LeaderboardService
from core.swarm.orchestrator import SwarmOrchestrator

logger = logging.getLogger(__name__)


def build_services(settings: SwarmSettings) -> tuple[SwarmServices, PostgresStores | None, ResultCache]:
    """Wire stores, cache, adapters and the orchestrator from settings."""
    agents = AgentRegistry()

    postgres: PostgresStores | None = None
    if settings.database_url:
        postgres = PostgresStores(config=PostgresConfig(database_url=settings.database_url))
        leaderboard_store, prediction_store = postgres, postgres
        logger.info("Using PostgreSQL persistence")
    else:
        leaderboard_store = InMemoryLeaderboardStore()
        prediction_store = InMemoryPredictionStore(leaderboard_store)
        logger.warning("DATABASE_URL not set; predictions and leaderboard are kept in memory")

    cache: ResultCache
    if settings.redis_url:
        cache = RedisResultCache(url=settings.redis_url)
        logger.info("Using Redis result cache")
    else:
        cache = InMemoryResultCache()

    adapters = build_default_registry(
        agents,
        timeout_seconds=settings.agent_timeout_seconds,
        api_keys=settings.api_keys,
    )
    leaderboard = LeaderboardService(
        leaderboard_store,
        prediction_store,
        agents,
        ttl_seconds=settings.leaderboard_ttl_seconds,
    )
    orchestrator = SwarmOrchestrator(adapters, leaderboard, cache=cache)

    services = SwarmServices(
        settings=settings,
        adapters=adapters,
        leaderboard=leaderboard,
        orchestrator=orchestrator,
    )
    return services, postgres, cache


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = SwarmSettings.from_env()
    services, postgres, cache = build_services(settings)

    try:
        await services.leaderboard.seed()
    except Exception as exc:
        logger.error("Leaderboard seed failed, continuing with neutral weights: %s", exc)

    configured = [a.id for a in services.adapters.agents if a.provider in settings.api_keys]
    logger.info("Swarm ready: %d/%d agents configured", len(configured), len(services.adapters.agents))

    app.state.swarm = services
    try:
        yield
    finally:
        await services.adapters.close_all()
        await cache.close()
        if postgres is not None:
            await postgres.close()


def create_app(use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title="Prediction Swarm API",
        description="Multi-agent sports betting analysis with weighted consensus",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else None,
    )
    app.include_router(swarm_router)

    @app.get("/health")
    async def health():
        """Liveness check."""
        return {"status": "ok"}

    @app.exception_handler(Exception)
    async def global_exception_handler(_request, exc):
        """Global exception handler to ensure consistent error responses."""
        logger.error("Unhandled error: %s", exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
