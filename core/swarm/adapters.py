"""Agent adapters and the adapter registry.

An adapter turns ``(event, context)`` into one ``AgentAnalysis``. The
orchestrator only sees the ``AgentAdapter`` interface, looked up by agent
id in an ``AdapterRegistry`` built once at startup.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Iterable

from core.swarm.agents import AgentRegistry
from core.swarm.parser import parse_analysis
from core.swarm.prompts import analysis_prompt, system_prompt
from core.swarm.providers import PROVIDER_CLASSES
from core.swarm.providers.base import LLMProvider, ProviderUnavailableError
from core.swarm.types import (
    Agent,
    AgentAnalysis,
    CompletionRequest,
    Confidence,
    ProviderName,
    SportEvent,
    Verdict,
)

logger = logging.getLogger(__name__)

DEFAULT_AGENT_TIMEOUT_SECONDS = 30.0


class AgentAdapter(ABC):
    """Contract for one agent's analysis call.

    ``invoke`` must not raise for provider failures: it returns a degraded
    analysis (UNKNOWN / LOW with ``error`` set) instead.
    """

    def __init__(self, agent: Agent) -> None:
        self.agent = agent

    @property
    def agent_id(self) -> str:
        return self.agent.id

    @abstractmethod
    async def invoke(self, event: SportEvent, context: str) -> AgentAnalysis:
        """Analyze ``event`` and return this agent's verdict."""

    async def close(self) -> None:
        return None


class LLMAgentAdapter(AgentAdapter):
    """Adapter backed by an ``LLMProvider`` and the shared response parser."""

    def __init__(
        self,
        agent: Agent,
        provider: LLMProvider,
        timeout_seconds: float = DEFAULT_AGENT_TIMEOUT_SECONDS,
    ) -> None:
        super().__init__(agent)
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    @property
    def is_available(self) -> bool:
        return self.provider.is_configured

    def build_request(self, event: SportEvent, context: str) -> CompletionRequest:
        return CompletionRequest(
            system_prompt=system_prompt(self.agent),
            user_prompt=analysis_prompt(event, context, self.agent),
            model=self.agent.model,
        )

    async def invoke(self, event: SportEvent, context: str) -> AgentAnalysis:
        start = time.monotonic()
        request = self.build_request(event, context)

        try:
            response = await asyncio.wait_for(self.provider.complete(request), timeout=self.timeout_seconds)
        except ProviderUnavailableError as exc:
            logger.warning("Agent %s unavailable: %s", self.agent.id, exc)
            return AgentAnalysis.degraded(self.agent, str(exc), _elapsed_ms(start))
        except asyncio.TimeoutError:
            logger.warning("Agent %s timed out after %.0fs", self.agent.id, self.timeout_seconds)
            return AgentAnalysis.degraded(
                self.agent, f"Timed out after {self.timeout_seconds:.0f}s", _elapsed_ms(start)
            )

        if response.error:
            return AgentAnalysis.degraded(self.agent, response.error, response.latency_ms or _elapsed_ms(start))

        return self.to_analysis(response.raw_text, latency_ms=response.latency_ms or _elapsed_ms(start))

    def to_analysis(self, text: str, latency_ms: float = 0.0) -> AgentAnalysis:
        """Build an analysis from a model answer."""
        parsed = parse_analysis(text)
        if parsed.verdict is None:
            logger.warning("Agent %s answer had no parseable verdict", self.agent.id)

        return AgentAnalysis(
            agent_id=self.agent.id,
            agent_name=self.agent.name,
            emoji=self.agent.emoji,
            opinion=text,
            verdict=parsed.verdict or Verdict.UNKNOWN,
            confidence=parsed.confidence or Confidence.MEDIUM,
            probability=parsed.probability,
            implied_probability=parsed.implied_probability,
            edge=parsed.edge,
            bet_type=parsed.bet_type,
            bet_selection=parsed.bet_selection,
            bet_odds=parsed.bet_odds,
            bet_explanation=parsed.bet_explanation,
            latency_ms=latency_ms,
        )

    async def close(self) -> None:
        await self.provider.close()


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


class AdapterRegistry:
    """Maps agent id to its adapter; iteration follows agent registry order."""

    def __init__(self, agents: AgentRegistry, adapters: Iterable[AgentAdapter] = ()) -> None:
        self.agents = agents
        self._adapters: dict[str, AgentAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: AgentAdapter) -> None:
        """Register an adapter for a catalogued agent."""
        self.agents.require(adapter.agent_id)
        self._adapters[adapter.agent_id] = adapter
        logger.info("Registered agent adapter: %s", adapter.agent_id)

    def get(self, agent_id: str) -> AgentAdapter | None:
        return self._adapters.get(agent_id)

    def default_selection(self) -> list[str]:
        """All registered agent ids, in registry order."""
        return [agent_id for agent_id in self.agents.ids() if agent_id in self._adapters]

    async def close_all(self) -> None:
        """Close every adapter's connections (shared providers close once)."""
        closed: set[int] = set()
        for adapter in self._adapters.values():
            provider = getattr(adapter, "provider", None)
            if provider is not None:
                if id(provider) in closed:
                    continue
                closed.add(id(provider))
            await adapter.close()


def build_default_registry(
    agents: AgentRegistry | None = None,
    timeout_seconds: float = DEFAULT_AGENT_TIMEOUT_SECONDS,
    api_keys: dict[ProviderName, str] | None = None,
) -> AdapterRegistry:
    """Register an LLM adapter for every catalogued agent.

    One provider instance is shared by all agents on the same backend. Its
    retries are bounded by the agent timeout.
    """
    agents = agents or AgentRegistry()
    api_keys = api_keys or {}
    providers: dict[ProviderName, LLMProvider] = {}

    registry = AdapterRegistry(agents)
    for agent in agents:
        provider = providers.get(agent.provider)
        if provider is None:
            provider = PROVIDER_CLASSES[agent.provider](api_key=api_keys.get(agent.provider))
            provider.retry = replace(provider.retry, budget_seconds=timeout_seconds)
            providers[agent.provider] = provider
        registry.register(LLMAgentAdapter(agent, provider, timeout_seconds=timeout_seconds))
    return registry
