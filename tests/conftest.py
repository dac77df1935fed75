"""Shared test fixtures for pytest.

Provides sample events, analysis builders, scripted agent adapters and
in-memory services used across the swarm test files.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable

import pytest

from core.storage.memory_stores import InMemoryLeaderboardStore, InMemoryPredictionStore
from core.swarm.adapters import AdapterRegistry, AgentAdapter
from core.swarm.agents import AgentRegistry
from core.swarm.leaderboard import LeaderboardService
from core.swarm.types import (
    AgentAnalysis,
    Bookmaker,
    Confidence,
    Market,
    MarketOutcome,
    SportEvent,
    Verdict,
)


class FakeAdapter(AgentAdapter):
    """Scripted adapter: returns a fixed analysis (or raises) after a delay."""

    def __init__(
        self,
        agent,
        analysis: AgentAnalysis | None = None,
        exc: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(agent)
        self.analysis = analysis
        self.exc = exc
        self.delay = delay
        self.calls = 0
        self.closed = False

    async def invoke(self, event: SportEvent, context: str) -> AgentAnalysis:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return self.analysis

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def agents() -> AgentRegistry:
    """The default seven-agent catalog."""
    return AgentRegistry()


@pytest.fixture
def sample_event() -> SportEvent:
    """An NBA game with moneyline, spread and totals from one bookmaker."""
    return SportEvent(
        id="evt-lal-bos",
        sport_title="NBA",
        sport_key="basketball_nba",
        home_team="Boston Celtics",
        away_team="Los Angeles Lakers",
        commence_time=datetime(2025, 1, 15, 0, 30, tzinfo=timezone.utc),
        league="NBA",
        bookmakers=(
            Bookmaker(
                key="draftkings",
                title="DraftKings",
                markets=(
                    Market(
                        key="h2h",
                        outcomes=(
                            MarketOutcome(name="Boston Celtics", price=1.45),
                            MarketOutcome(name="Los Angeles Lakers", price=2.8),
                        ),
                    ),
                    Market(
                        key="spreads",
                        outcomes=(
                            MarketOutcome(name="Boston Celtics", price=1.91, point=-6.5),
                            MarketOutcome(name="Los Angeles Lakers", price=1.91, point=6.5),
                        ),
                    ),
                    Market(
                        key="totals",
                        outcomes=(
                            MarketOutcome(name="Over", price=1.87, point=224.5),
                            MarketOutcome(name="Under", price=1.95, point=224.5),
                        ),
                    ),
                ),
            ),
        ),
    )


@pytest.fixture
def make_analysis(agents: AgentRegistry) -> Callable[..., AgentAnalysis]:
    """Factory for analyses attributed to catalogued agents."""

    def _make(
        agent_id: str,
        verdict: Verdict = Verdict.SLIGHT_EDGE,
        confidence: Confidence = Confidence.MEDIUM,
        selection: str | None = None,
        odds: float | None = None,
        error: str | None = None,
    ) -> AgentAnalysis:
        agent = agents.require(agent_id)
        if error is not None:
            return AgentAnalysis.degraded(agent, error)
        return AgentAnalysis(
            agent_id=agent.id,
            agent_name=agent.name,
            emoji=agent.emoji,
            opinion=f"Verdict: {verdict.value}",
            verdict=verdict,
            confidence=confidence,
            bet_selection=selection,
            bet_odds=odds,
        )

    return _make


@pytest.fixture
def fake_adapter(agents: AgentRegistry, make_analysis) -> Callable[..., FakeAdapter]:
    """Factory for scripted adapters."""

    def _make(
        agent_id: str,
        verdict: Verdict = Verdict.SLIGHT_EDGE,
        confidence: Confidence = Confidence.MEDIUM,
        selection: str | None = None,
        odds: float | None = None,
        exc: BaseException | None = None,
        delay: float = 0.0,
    ) -> FakeAdapter:
        analysis = None if exc is not None else make_analysis(agent_id, verdict, confidence, selection, odds)
        return FakeAdapter(agents.require(agent_id), analysis=analysis, exc=exc, delay=delay)

    return _make


@pytest.fixture
def adapter_registry(agents: AgentRegistry) -> Callable[..., AdapterRegistry]:
    """Factory wrapping adapters in a registry over the default catalog."""

    def _make(*adapters: AgentAdapter) -> AdapterRegistry:
        return AdapterRegistry(agents, adapters)

    return _make


@pytest.fixture
def leaderboard_store() -> InMemoryLeaderboardStore:
    return InMemoryLeaderboardStore()


@pytest.fixture
def prediction_store(leaderboard_store: InMemoryLeaderboardStore) -> InMemoryPredictionStore:
    return InMemoryPredictionStore(leaderboard_store)


@pytest.fixture
def leaderboard_service(
    leaderboard_store: InMemoryLeaderboardStore,
    prediction_store: InMemoryPredictionStore,
    agents: AgentRegistry,
) -> LeaderboardService:
    """Leaderboard over in-memory stores."""
    return LeaderboardService(leaderboard_store, prediction_store, agents)
