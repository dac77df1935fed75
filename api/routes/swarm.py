"""Prediction swarm API routes.

Provides endpoints for running the agent swarm on an event, streaming the
analysis, settling stored predictions, and reading the leaderboard.

Services are built once at startup (see api/main.py) and read from
``app.state.swarm``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi import Path as PathParam
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.swarm.adapters import AdapterRegistry, LLMAgentAdapter
from core.swarm.config import SwarmSettings
from core.swarm.exceptions import (
    InvalidEventError,
    PredictionAlreadySettledError,
    PredictionNotFoundError,
)
from core.swarm.leaderboard import LeaderboardService, prediction_stats
from core.swarm.orchestrator import SwarmOrchestrator
from core.swarm.types import Outcome, PredictionStatus, SportEvent, SwarmOptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/swarm", tags=["swarm"])


@dataclass
class SwarmServices:
    """Everything the routes need, built once per process."""

    settings: SwarmSettings
    adapters: AdapterRegistry
    leaderboard: LeaderboardService
    orchestrator: SwarmOrchestrator


def get_services(request: Request) -> SwarmServices:
    services = getattr(request.app.state, "swarm", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Swarm services are not initialized")
    return services


# =============================================================================
# Request/Response Models
# =============================================================================


class EventModel(BaseModel):
    """Event under analysis (odds-feed shape)."""

    id: str = Field(..., min_length=1)
    sportTitle: str
    commenceTime: str
    homeTeam: str = Field(..., min_length=1)
    awayTeam: str = Field(..., min_length=1)
    sportKey: str | None = None
    league: str | None = None
    bookmakers: list[dict[str, Any]] | None = None


class AnalyzeOptions(BaseModel):
    """Per-request orchestration options."""

    model_config = ConfigDict(extra="forbid")

    agents: list[str] | None = None
    parallel: bool | None = None  # default from SWARM_PARALLEL
    useCache: bool = True
    cacheTtl: int | None = Field(None, ge=0)
    includeContext: bool = True
    reusePrediction: bool = True
    savePrediction: bool = True


class AnalyzeRequest(BaseModel):
    """Swarm analysis request."""

    event: EventModel
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)


class SettleRequest(BaseModel):
    """Settlement of a stored prediction."""

    outcome: Outcome


class AgentResponse(BaseModel):
    """Catalogued agent and whether its provider credential is present."""

    id: str
    name: str
    emoji: str
    provider: str
    model: str
    available: bool


class LeaderboardRow(BaseModel):
    """One leaderboard position."""

    rank: int
    agentId: str
    name: str
    emoji: str
    provider: str
    model: str
    wins: int
    losses: int
    pushes: int
    totalPredictions: int
    winRate: float
    currentStreak: int
    bestStreak: int
    worstStreak: int
    voteWeight: float


# =============================================================================
# Helpers
# =============================================================================


def _to_event(model: EventModel) -> SportEvent:
    try:
        event = SportEvent.from_dict(model.model_dump())
        event.validate()
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(status_code=400, detail=f"Invalid event: {exc}") from exc
    return event


def _to_swarm_options(options: AnalyzeOptions, settings: SwarmSettings) -> SwarmOptions:
    return SwarmOptions(
        agents=options.agents,
        parallel=settings.parallel if options.parallel is None else options.parallel,
        use_cache=options.useCache,
        cache_ttl=settings.cache_ttl_seconds if options.cacheTtl is None else options.cacheTtl,
        include_context=options.includeContext,
    )


def _sse(payload: Any) -> str:
    return f"data: {json.dumps(payload)}\n\n"


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/analyze")
async def analyze_event(body: AnalyzeRequest, services: SwarmServices = Depends(get_services)):
    """Run the swarm on one event.

    If a prediction is already stored for the event it is returned as-is so
    every caller sees the same analysis. New results are stored as pending
    predictions; a storage failure is logged and does not fail the request.
    """
    event = _to_event(body.event)
    options = body.options

    if options.reusePrediction:
        try:
            existing = await services.leaderboard.latest_prediction(event.id)
        except Exception as exc:
            logger.error("Prediction lookup failed for %s: %s", event.id, exc)
            existing = None
        if existing is not None:
            logger.info("Returning stored prediction %s for %s", existing.id, event.id)
            return {**existing.to_swarm_result().to_dict(), "predictionId": existing.id}

    try:
        result = await services.orchestrator.analyze(event, _to_swarm_options(options, services.settings))
    except InvalidEventError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    prediction_id: str | None = None
    if options.savePrediction and not result.cached:
        if result.valid_count == 0:
            logger.warning("Not storing prediction for %s: no valid analyses", event.id)
        else:
            try:
                saved = await services.leaderboard.save_prediction(result, event)
                prediction_id = saved.id
            except Exception as exc:
                logger.error("Failed to save prediction for %s: %s", event.id, exc)

    return {**result.to_dict(), "predictionId": prediction_id}


@router.get("/stream")
async def stream_event(
    event: str = Query(..., description="JSON-encoded event"),
    services: SwarmServices = Depends(get_services),
):
    """Stream the analysis as Server-Sent Events.

    One ``data:`` frame per agent analysis, then the consensus, then
    ``data: [DONE]``.
    """
    try:
        model = EventModel.model_validate_json(event)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid event parameter") from exc
    sport_event = _to_event(model)
    options = SwarmOptions(parallel=services.settings.parallel, cache_ttl=services.settings.cache_ttl_seconds)

    async def frames() -> AsyncIterator[str]:
        try:
            async for update in services.orchestrator.stream(sport_event, options):
                yield _sse(update.to_dict())
        except Exception as exc:
            logger.error("Stream for %s failed: %s", sport_event.id, exc)
            yield _sse({"type": "error", "error": "Analysis failed"})
        yield "data: [DONE]\n\n"

    return StreamingResponse(
        frames(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.post("/predictions/{prediction_id}/settle", status_code=204)
async def settle_prediction(
    body: SettleRequest,
    prediction_id: str = PathParam(..., description="Prediction id"),
    services: SwarmServices = Depends(get_services),
):
    """Settle a pending prediction and update every voting agent's record."""
    try:
        await services.leaderboard.settle_prediction(prediction_id, body.outcome)
    except PredictionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PredictionAlreadySettledError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return Response(status_code=204)


@router.get("/predictions")
async def list_predictions(
    status: Literal["all", "pending", "won", "lost", "push"] = Query("all"),
    sport: str | None = Query(None),
    days: int = Query(7, ge=0, le=365),
    limit: int = Query(50, ge=1, le=500),
    services: SwarmServices = Depends(get_services),
):
    """List stored predictions with summary stats.

    Args:
        status: Filter by settlement status ("all" for no filter).
        sport: Filter by sport title ("all" or empty for no filter).
        days: Look-back window in days (0 for no limit).
        limit: Maximum rows returned.
    """
    predictions = await services.leaderboard.list_predictions(
        status=None if status == "all" else PredictionStatus(status),
        sport=None if sport in (None, "", "all") else sport,
        days=days or None,
        limit=limit,
    )
    stats = prediction_stats(predictions)
    return {
        "predictions": [p.to_dict() for p in predictions],
        "stats": stats.to_dict(),
        "sports": stats.sports,
    }


@router.get("/leaderboard", response_model=list[LeaderboardRow])
async def get_leaderboard(services: SwarmServices = Depends(get_services)):
    """Agents ranked by win rate, then by number of decided results."""
    ranked = await services.leaderboard.ranked()
    return [
        LeaderboardRow(
            rank=i,
            agentId=agent.id,
            name=agent.name,
            emoji=agent.emoji,
            provider=agent.provider.value,
            model=agent.model,
            wins=entry.wins,
            losses=entry.losses,
            pushes=entry.pushes,
            totalPredictions=entry.total_predictions,
            winRate=entry.win_rate,
            currentStreak=entry.current_streak,
            bestStreak=entry.best_streak,
            worstStreak=entry.worst_streak,
            voteWeight=entry.vote_weight,
        )
        for i, (agent, entry) in enumerate(ranked, start=1)
    ]


@router.get("/agents", response_model=list[AgentResponse])
async def list_agents(services: SwarmServices = Depends(get_services)):
    """The agent catalog, with provider credential availability."""
    agents = []
    for agent in services.adapters.agents:
        adapter = services.adapters.get(agent.id)
        if isinstance(adapter, LLMAgentAdapter):
            available = adapter.is_available
        else:
            available = adapter is not None
        agents.append(
            AgentResponse(
                id=agent.id,
                name=agent.name,
                emoji=agent.emoji,
                provider=agent.provider.value,
                model=agent.model,
                available=available,
            )
        )
    return agents
