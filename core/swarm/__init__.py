"""Prediction swarm: many LLM agents voting toward one weighted verdict.

Architecture:

                 ┌──────────────┐
    event ─────▶ │ Orchestrator │ ◀──── ResultCache (swarm:{event_id})
                 └──────┬───────┘
                        │  fan-out (parallel or sequential)
    ┌──────┬──────┬─────┴──┬──────┬─────────┬────────────┐
    ▼      ▼      ▼        ▼      ▼         ▼            ▼
  Claude ChatGPT Gemini   Grok  Llama    Copilot    Perplexity
    │      │      │        │      │         │            │
    └──────┴──────┴────┬───┴──────┴─────────┴────────────┘
                       ▼
                ┌─────────────┐
                │  Consensus  │ ◀──── Leaderboard (vote weights)
                └──────┬──────┘
                       ▼
                  SwarmResult ──▶ saved prediction ──▶ settlement
                                                          │
                               Leaderboard ◀──────────────┘

Submodules:
- agents:       Agent catalog (AgentRegistry)
- providers:    HTTP provider adapters (Anthropic, OpenAI-compatible, Gemini)
- adapters:     Agent adapters + AdapterRegistry
- prompts:      Prompt templates and per-sport factors
- context:      Odds context rendered from bookmaker data
- parser:       Free-text answer parser
- consensus:    Weighted voting engine and bet selection
- leaderboard:  Agent performance, settlement and persisted predictions
- cache:        Short-lived result cache (in-memory or Redis)
- orchestrator: SwarmOrchestrator, the entry point
- config:       Settings from environment
- types:        Shared dataclasses and enums
"""

from core.swarm.adapters import AdapterRegistry, AgentAdapter, LLMAgentAdapter, build_default_registry
from core.swarm.agents import DEFAULT_AGENTS, AgentRegistry
from core.swarm.cache import InMemoryResultCache, RedisResultCache, ResultCache
from core.swarm.config import SwarmSettings
from core.swarm.consensus import ConsensusEngine, determine_bet_selection
from core.swarm.exceptions import (
    InvalidEventError,
    PredictionAlreadySettledError,
    PredictionNotFoundError,
    SettlementError,
    SwarmError,
    UnknownAgentError,
)
from core.swarm.leaderboard import LeaderboardService, apply_outcome
from core.swarm.orchestrator import SwarmOrchestrator
from core.swarm.types import (
    Agent,
    AgentAnalysis,
    Confidence,
    Consensus,
    LeaderboardEntry,
    Outcome,
    PredictionRecord,
    PredictionStatus,
    SportEvent,
    StreamUpdate,
    SwarmOptions,
    SwarmResult,
    Verdict,
)

__all__ = [
    "AdapterRegistry",
    "Agent",
    "AgentAdapter",
    "AgentAnalysis",
    "AgentRegistry",
    "Confidence",
    "Consensus",
    "ConsensusEngine",
    "DEFAULT_AGENTS",
    "InMemoryResultCache",
    "InvalidEventError",
    "LLMAgentAdapter",
    "LeaderboardEntry",
    "LeaderboardService",
    "Outcome",
    "PredictionAlreadySettledError",
    "PredictionNotFoundError",
    "PredictionRecord",
    "PredictionStatus",
    "RedisResultCache",
    "ResultCache",
    "SettlementError",
    "SportEvent",
    "StreamUpdate",
    "SwarmError",
    "SwarmOptions",
    "SwarmOrchestrator",
    "SwarmResult",
    "SwarmSettings",
    "UnknownAgentError",
    "Verdict",
    "apply_outcome",
    "build_default_registry",
    "determine_bet_selection",
]
