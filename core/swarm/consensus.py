"""Consensus engine: weighted voting across agents.

Reduces per-agent analyses into a single ``Consensus``:

- Only valid analyses (no error, verdict not UNKNOWN) are scored
- Each vote is weighted by the agent's historical vote weight, once the
  agent has enough settled history
- The weighted average verdict score maps to a final verdict and confidence

The computation is pure: same analyses and leaderboard snapshot give the
same ``Consensus``.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Mapping, Sequence

from core.swarm.types import (
    MAX_VOTE_WEIGHT,
    MIN_VOTE_WEIGHT,
    VERDICT_SCORES,
    AgentAnalysis,
    Confidence,
    Consensus,
    LeaderboardEntry,
    Verdict,
)

logger = logging.getLogger(__name__)

# Agents with fewer settled predictions than this vote with weight 1.0
MIN_HISTORY_FOR_WEIGHT = 5

STRONG_BET_THRESHOLD = 1.2
SLIGHT_EDGE_THRESHOLD = 0.0
RISKY_THRESHOLD = -0.5

HIGH_CONFIDENCE_SCORE = 1.2
MEDIUM_CONFIDENCE_SCORE = 0.5

NO_ANALYSES_REASONING = "No AI analyses available"


def clamp_weight(weight: float) -> float:
    return max(MIN_VOTE_WEIGHT, min(MAX_VOTE_WEIGHT, weight))


def vote_weight(entry: LeaderboardEntry | None, weighted: bool = True) -> float:
    """Weight of one agent's vote given its leaderboard entry."""
    if not weighted or entry is None or entry.total_predictions < MIN_HISTORY_FOR_WEIGHT:
        return 1.0
    return clamp_weight(entry.vote_weight)


def score_to_verdict(score: float) -> Verdict:
    if score >= STRONG_BET_THRESHOLD:
        return Verdict.STRONG_BET
    if score >= SLIGHT_EDGE_THRESHOLD:
        return Verdict.SLIGHT_EDGE
    if score >= RISKY_THRESHOLD:
        return Verdict.RISKY
    return Verdict.AVOID


def score_to_confidence(score: float) -> Confidence:
    magnitude = abs(score)
    if magnitude >= HIGH_CONFIDENCE_SCORE:
        return Confidence.HIGH
    if magnitude >= MEDIUM_CONFIDENCE_SCORE:
        return Confidence.MEDIUM
    return Confidence.LOW


class ConsensusEngine:
    """Weighted voting consensus engine.

    Algorithm:
    1. Drop analyses with an error or an UNKNOWN verdict.
    2. Weight each remaining vote (1.0 without enough history, else the
       stored vote weight clamped to [0.5, 2.0]).
    3. Weighted average of verdict scores (+2, +1, -1, -2).
    4. Map the score to a verdict and a confidence band.
    """

    def __init__(self, unweighted_agents: frozenset[str] = frozenset()) -> None:
        # agents that always vote with weight 1.0
        self.unweighted_agents = unweighted_agents

    def compute(
        self,
        analyses: Sequence[AgentAnalysis],
        leaderboard: Mapping[str, LeaderboardEntry],
    ) -> Consensus:
        """Aggregate analyses into a consensus.

        Args:
            analyses: Every analysis from one orchestration, valid or not.
            leaderboard: Snapshot of agent performance taken before fan-out.

        Returns:
            The ensemble ``Consensus``.
        """
        valid = [a for a in analyses if a.is_valid]
        if not valid:
            return Consensus(
                verdict=Verdict.UNKNOWN,
                score="0",
                bet_votes=0,
                pass_votes=0,
                confidence=Confidence.LOW,
                reasoning=NO_ANALYSES_REASONING,
            )

        weights = [
            vote_weight(leaderboard.get(a.agent_id), weighted=a.agent_id not in self.unweighted_agents)
            for a in valid
        ]
        weighted_sum = math.fsum(VERDICT_SCORES[a.verdict] * w for a, w in zip(valid, weights))
        total_weight = math.fsum(weights)
        avg_score = weighted_sum / total_weight

        bet_votes = sum(1 for a in valid if a.verdict.is_bet)
        pass_votes = len(valid) - bet_votes

        verdict = score_to_verdict(avg_score)
        confidence = score_to_confidence(avg_score)

        logger.debug(
            "Consensus over %d valid analyses: score=%.4f verdict=%s",
            len(valid),
            avg_score,
            verdict.value,
        )

        return Consensus(
            verdict=verdict,
            score=f"{avg_score:.2f}",
            bet_votes=bet_votes,
            pass_votes=pass_votes,
            confidence=confidence,
            reasoning=consensus_reasoning(valid, bet_votes, pass_votes),
        )


def consensus_reasoning(valid: Sequence[AgentAnalysis], bet_votes: int, pass_votes: int) -> str:
    """Short templated explanation of the vote split."""
    total = bet_votes + pass_votes
    if total == 0:
        return "Insufficient data for analysis."

    # Round half up, matching the percentage shown to users
    bet_pct = math.floor(bet_votes / total * 100 + 0.5)

    themes: list[str] = []
    if bet_pct >= 85:
        themes.append("Strong consensus among AI models")
    elif bet_pct <= 15:
        themes.append("AI models strongly advise passing")
    elif 50 <= bet_pct <= 60:
        themes.append("Mixed opinions - consider carefully")

    high_confidence = sum(1 for a in valid if a.confidence == Confidence.HIGH)
    if high_confidence >= 3:
        themes.append(f"{high_confidence} models have high confidence")

    if themes:
        return ". ".join(themes) + "."
    return f"{bet_votes}/{total} models favor betting."


def determine_bet_selection(
    analyses: Sequence[AgentAnalysis],
    agent_order: Sequence[str],
) -> tuple[str, float | None] | None:
    """Pick the single bet selection the swarm recommends.

    The most frequently recommended selection among valid betting analyses
    wins; ties go to the selection first recommended by the earliest agent
    in ``agent_order``. The price is the mean of the quoted odds for that
    selection (``None`` when no recommending agent quoted a price).
    """
    position = {agent_id: i for i, agent_id in enumerate(agent_order)}
    recommending = sorted(
        (a for a in analyses if a.is_valid and a.verdict.is_bet and a.bet_selection),
        key=lambda a: position.get(a.agent_id, len(position)),
    )
    if not recommending:
        return None

    def key(selection: str) -> str:
        return " ".join(selection.lower().split())

    counts = Counter(key(a.bet_selection) for a in recommending)
    first_seen: dict[str, int] = {}
    display: dict[str, str] = {}
    for i, a in enumerate(recommending):
        k = key(a.bet_selection)
        first_seen.setdefault(k, i)
        display.setdefault(k, a.bet_selection.strip())

    best = min(counts, key=lambda k: (-counts[k], first_seen[k]))
    prices = [a.bet_odds for a in recommending if key(a.bet_selection) == best and a.bet_odds is not None]
    price = math.fsum(prices) / len(prices) if prices else None
    return display[best], price
