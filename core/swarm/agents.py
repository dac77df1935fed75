"""Agent catalog: the static set of agents participating in the swarm."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from core.swarm.exceptions import UnknownAgentError
from core.swarm.types import Agent, ProviderName

logger = logging.getLogger(__name__)


DEFAULT_AGENTS: tuple[Agent, ...] = (
    Agent(
        id="claude",
        name="Claude",
        emoji="🟠",
        provider=ProviderName.ANTHROPIC,
        model="claude-sonnet-4-20250514",
        personality=(
            "Thoughtful, balanced analysis with careful consideration of multiple factors. "
            "Excels at identifying value and edge cases."
        ),
    ),
    Agent(
        id="chatgpt",
        name="ChatGPT",
        emoji="💚",
        provider=ProviderName.OPENAI,
        model="gpt-4o",
        personality="Enthusiastic, data-driven analysis. Strong at synthesizing statistics and historical trends.",
    ),
    Agent(
        id="gemini",
        name="Gemini",
        emoji="🔵",
        provider=ProviderName.GOOGLE,
        model="gemini-2.0-flash",
        personality=(
            "Current events focused with emphasis on recent form and breaking news. "
            "Good at spotting momentum shifts."
        ),
    ),
    Agent(
        id="grok",
        name="Grok",
        emoji="⚡",
        provider=ProviderName.XAI,
        model="grok-2",
        personality=(
            "Witty, contrarian perspective. Willing to go against public consensus "
            "and identify sharp money moves."
        ),
    ),
    Agent(
        id="llama",
        name="Llama",
        emoji="🦙",
        provider=ProviderName.GROQ,
        model="llama-3.3-70b-versatile",
        personality="Straightforward, analytical approach. Focuses on fundamentals and statistical models.",
    ),
    Agent(
        id="copilot",
        name="Copilot",
        emoji="🤖",
        provider=ProviderName.OPENAI,
        model="gpt-4o-mini",
        personality="Technical, statistical analysis. Strong at parsing numbers and calculating expected value.",
    ),
    Agent(
        id="perplexity",
        name="Perplexity",
        emoji="🔍",
        provider=ProviderName.PERPLEXITY,
        model="sonar",
        personality=(
            "Research-oriented with live web access. Excellent at finding recent news, "
            "injuries, and insider information."
        ),
    ),
)


class AgentRegistry:
    """Ordered, immutable catalog of agents.

    Registry order is the canonical order: analyses are reported in it and
    bet-selection ties are broken by it.
    """

    def __init__(self, agents: Iterable[Agent] = DEFAULT_AGENTS) -> None:
        self._agents: dict[str, Agent] = {}
        for agent in agents:
            if agent.id in self._agents:
                raise ValueError(f"Duplicate agent id: {agent.id}")
            self._agents[agent.id] = agent

    def __iter__(self) -> Iterator[Agent]:
        return iter(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def get(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    def require(self, agent_id: str) -> Agent:
        agent = self._agents.get(agent_id)
        if agent is None:
            raise UnknownAgentError(agent_id)
        return agent

    def ids(self) -> list[str]:
        return list(self._agents)
