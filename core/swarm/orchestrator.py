"""Swarm orchestrator: fans one event out to every selected agent.

The orchestrator is the main entry point for a prediction. It runs:
1. Event validation and cache lookup
2. Context building and one leaderboard snapshot
3. Parallel (or sequential) agent evaluation
4. Weighted consensus and bet selection
5. Cache population

It never writes to the leaderboard; that only happens on settlement.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator, Mapping, Sequence

from core.swarm.adapters import AdapterRegistry, AgentAdapter
from core.swarm.cache import ResultCache
from core.swarm.consensus import ConsensusEngine, determine_bet_selection
from core.swarm.context import build_event_context
from core.swarm.leaderboard import LeaderboardService
from core.swarm.types import (
    AgentAnalysis,
    Confidence,
    LeaderboardEntry,
    SportEvent,
    StreamUpdate,
    SwarmOptions,
    SwarmResult,
    Verdict,
    utcnow,
)

logger = logging.getLogger(__name__)


def unknown_agent_analysis(agent_id: str) -> AgentAnalysis:
    """Placeholder analysis for a requested agent that is not registered."""
    return AgentAnalysis(
        agent_id=agent_id,
        agent_name=agent_id,
        emoji="",
        opinion="",
        verdict=Verdict.UNKNOWN,
        confidence=Confidence.LOW,
        error=f"Unknown agent: {agent_id}",
    )


class SwarmOrchestrator:
    """Runs the agent swarm for one event.

    Usage::

        orchestrator = SwarmOrchestrator(adapters, leaderboard, cache=InMemoryResultCache())
        result = await orchestrator.analyze(event)

        if result.consensus.verdict == Verdict.STRONG_BET:
            print(result.bet_selection, result.bet_odds)
    """

    def __init__(
        self,
        adapters: AdapterRegistry,
        leaderboard: LeaderboardService,
        cache: ResultCache | None = None,
        consensus: ConsensusEngine | None = None,
    ) -> None:
        self.adapters = adapters
        self.leaderboard = leaderboard
        self.cache = cache
        if consensus is None:
            unweighted = frozenset(agent.id for agent in adapters.agents if not agent.weighted)
            consensus = ConsensusEngine(unweighted_agents=unweighted)
        self.consensus = consensus

    async def analyze(self, event: SportEvent, options: SwarmOptions | None = None) -> SwarmResult:
        """Run every selected agent on ``event`` and aggregate their votes.

        Args:
            event: The event to analyze.
            options: Agent selection, parallelism and cache behavior.

        Returns:
            One analysis per selected agent (in selection order) plus the
            consensus. Agent failures are folded in as degraded analyses.

        Raises:
            InvalidEventError: ``event`` is missing required fields.
        """
        options = options or SwarmOptions()
        event.validate()

        cached = await self._cached_result(event, options)
        if cached is not None:
            return cached

        selection = self._selection(options)
        context = build_event_context(event) if options.include_context else ""
        leaderboard = await self.leaderboard.get_leaderboard()

        logger.info(
            "Analyzing %s with %d agents (%s)",
            event.name,
            len(selection),
            "parallel" if options.parallel else "sequential",
        )
        start = time.monotonic()

        if options.parallel:
            results = await asyncio.gather(
                *(self._invoke(agent_id, event, context) for agent_id in selection),
                return_exceptions=True,
            )
            analyses = [
                self._degrade_exception(agent_id, result) if isinstance(result, BaseException) else result
                for agent_id, result in zip(selection, results)
            ]
        else:
            analyses = []
            for agent_id in selection:
                try:
                    analyses.append(await self._invoke(agent_id, event, context))
                except Exception as exc:
                    analyses.append(self._degrade_exception(agent_id, exc))

        result = await self._finish(event, analyses, leaderboard, options)
        logger.info(
            "Swarm verdict for %s: %s (score=%s, %d/%d valid, %.0fms)",
            event.name,
            result.consensus.verdict.value,
            result.consensus.score,
            result.valid_count,
            len(analyses),
            (time.monotonic() - start) * 1000,
        )
        return result

    async def stream(self, event: SportEvent, options: SwarmOptions | None = None) -> AsyncIterator[StreamUpdate]:
        """Yield one ``analysis`` update per selected agent, then the ``consensus``.

        Agents still run concurrently in parallel mode, but updates are
        emitted in selection order.
        """
        options = options or SwarmOptions()
        event.validate()

        cached = await self._cached_result(event, options)
        if cached is not None:
            for analysis in cached.analyses:
                yield StreamUpdate(type="analysis", data=analysis)
            yield StreamUpdate(type="consensus", data=cached.consensus)
            return

        selection = self._selection(options)
        context = build_event_context(event) if options.include_context else ""
        leaderboard = await self.leaderboard.get_leaderboard()

        if options.parallel:
            tasks = [asyncio.ensure_future(self._invoke(agent_id, event, context)) for agent_id in selection]
        else:
            tasks = []

        analyses: list[AgentAnalysis] = []
        try:
            for i, agent_id in enumerate(selection):
                try:
                    analysis = await (tasks[i] if tasks else self._invoke(agent_id, event, context))
                except Exception as exc:
                    analysis = self._degrade_exception(agent_id, exc)
                analyses.append(analysis)
                yield StreamUpdate(type="analysis", data=analysis)
        finally:
            # consumer went away mid-stream
            for task in tasks:
                if not task.done():
                    task.cancel()

        result = await self._finish(event, analyses, leaderboard, options)
        yield StreamUpdate(type="consensus", data=result.consensus)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _selection(self, options: SwarmOptions) -> list[str]:
        if options.agents:
            return list(options.agents)
        return self.adapters.default_selection()

    async def _cached_result(self, event: SportEvent, options: SwarmOptions) -> SwarmResult | None:
        if not (options.use_cache and self.cache is not None):
            return None
        cached = await self.cache.get(event.id)
        if cached is None:
            return None
        logger.info("Cache hit for event %s", event.id)
        return cached.as_cached()

    async def _invoke(self, agent_id: str, event: SportEvent, context: str) -> AgentAnalysis:
        adapter: AgentAdapter | None = self.adapters.get(agent_id)
        if adapter is None:
            logger.warning("Requested agent %s is not registered", agent_id)
            return unknown_agent_analysis(agent_id)
        return await adapter.invoke(event, context)

    def _degrade_exception(self, agent_id: str, exc: BaseException) -> AgentAnalysis:
        logger.error("Agent %s failed: %s", agent_id, exc)
        agent = self.adapters.agents.get(agent_id)
        if agent is None:
            return unknown_agent_analysis(agent_id)
        return AgentAnalysis.degraded(agent, str(exc) or type(exc).__name__)

    async def _finish(
        self,
        event: SportEvent,
        analyses: Sequence[AgentAnalysis],
        leaderboard: Mapping[str, LeaderboardEntry],
        options: SwarmOptions,
    ) -> SwarmResult:
        consensus = self.consensus.compute(analyses, leaderboard)

        bet_selection: str | None = None
        bet_odds: float | None = None
        if consensus.verdict.is_bet:
            picked = determine_bet_selection(analyses, self.adapters.agents.ids())
            if picked is not None:
                bet_selection, bet_odds = picked

        result = SwarmResult(
            event_id=event.id,
            event_name=event.name,
            sport=event.sport_title,
            analyses=tuple(analyses),
            consensus=consensus,
            bet_selection=bet_selection,
            bet_odds=bet_odds,
            timestamp=utcnow(),
        )

        if options.use_cache and self.cache is not None:
            if result.valid_count > 0:
                await self.cache.set(result, options.cache_ttl)
            else:
                logger.warning("Not caching %s: no agent produced a valid analysis", event.id)

        return result
