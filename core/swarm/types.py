"""Swarm module types: shared dataclasses and enums."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from core.swarm.exceptions import InvalidEventError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    # fromisoformat() only accepts a trailing "Z" from Python 3.11 on
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------------------------
# Provider / verdict enums
# ---------------------------------------------------------------------------


class ProviderName(str, Enum):
    """Supported inference backends."""

    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    GOOGLE = "google"  # Gemini
    XAI = "xai"  # Grok
    GROQ = "groq"  # Llama hosting
    PERPLEXITY = "perplexity"


class Verdict(str, Enum):
    """One agent's categorical recommendation."""

    STRONG_BET = "STRONG BET"
    SLIGHT_EDGE = "SLIGHT EDGE"
    RISKY = "RISKY"
    AVOID = "AVOID"
    UNKNOWN = "UNKNOWN"

    @property
    def is_bet(self) -> bool:
        return self in (Verdict.STRONG_BET, Verdict.SLIGHT_EDGE)


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Outcome(str, Enum):
    """Real-world result of a settled prediction (or of one agent's call)."""

    WON = "won"
    LOST = "lost"
    PUSH = "push"


class PredictionStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    PUSH = "push"


# Fixed integer score per verdict used by the weighted vote
VERDICT_SCORES: dict[Verdict, int] = {
    Verdict.STRONG_BET: 2,
    Verdict.SLIGHT_EDGE: 1,
    Verdict.RISKY: -1,
    Verdict.AVOID: -2,
    Verdict.UNKNOWN: 0,
}

MIN_VOTE_WEIGHT = 0.5
MAX_VOTE_WEIGHT = 2.0
NEUTRAL_WIN_RATE = 0.5


# ---------------------------------------------------------------------------
# Agent catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Agent:
    """A catalog entry for one inference backend in the ensemble."""

    id: str  # stable key, e.g. "claude"
    name: str
    emoji: str
    provider: ProviderName
    model: str
    personality: str = ""
    weighted: bool = True  # eligible for history-derived vote weights


# ---------------------------------------------------------------------------
# Provider configuration / completion request + response
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for an inference backend."""

    name: ProviderName
    api_key_env: str  # e.g. "OPENAI_API_KEY"
    base_url: str
    default_model: str
    chat_path: str = "/v1/chat/completions"
    max_tokens: int = 500
    temperature: float = 0.7
    timeout_seconds: int = 30
    rate_limit_rpm: int = 60


@dataclass
class CompletionRequest:
    """A provider-neutral chat completion request."""

    system_prompt: str
    user_prompt: str
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


@dataclass
class CompletionResponse:
    """Raw text returned by a provider, with timing and token usage."""

    provider: ProviderName
    model: str
    raw_text: str
    tokens_in: int = 0
    tokens_out: int = 0
    latency_ms: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)
    error: str | None = None


# ---------------------------------------------------------------------------
# Event / market data
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarketOutcome:
    name: str
    price: float
    point: float | None = None


@dataclass(frozen=True)
class Market:
    key: str  # "h2h", "spreads", "totals"
    outcomes: tuple[MarketOutcome, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Market:
        return cls(
            key=data["key"],
            outcomes=tuple(
                MarketOutcome(name=o["name"], price=float(o["price"]), point=o.get("point"))
                for o in data.get("outcomes", [])
            ),
        )


@dataclass(frozen=True)
class Bookmaker:
    key: str
    title: str
    markets: tuple[Market, ...] = ()

    def market(self, key: str) -> Market | None:
        return next((m for m in self.markets if m.key == key), None)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Bookmaker:
        return cls(
            key=data["key"],
            title=data.get("title", data["key"]),
            markets=tuple(Market.from_dict(m) for m in data.get("markets", [])),
        )


@dataclass(frozen=True)
class SportEvent:
    """The event under analysis. Read-only input for one analysis cycle."""

    id: str
    sport_title: str
    home_team: str
    away_team: str
    commence_time: datetime
    sport_key: str | None = None
    league: str | None = None
    bookmakers: tuple[Bookmaker, ...] = ()

    @property
    def name(self) -> str:
        return f"{self.away_team} @ {self.home_team}"

    def validate(self) -> None:
        """Raise ``InvalidEventError`` if the event cannot be analyzed."""
        if not self.id or not self.id.strip():
            raise InvalidEventError("Event id is required")
        if not self.home_team or not self.away_team:
            raise InvalidEventError(f"Event {self.id} is missing participant names")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SportEvent:
        """Build from the camelCase odds-feed shape."""
        commence = _parse_datetime(data.get("commenceTime"))
        if commence is None:
            raise InvalidEventError("Event commenceTime is required")
        return cls(
            id=data.get("id", ""),
            sport_title=data.get("sportTitle", ""),
            home_team=data.get("homeTeam", ""),
            away_team=data.get("awayTeam", ""),
            commence_time=commence,
            sport_key=data.get("sportKey"),
            league=data.get("league"),
            bookmakers=tuple(Bookmaker.from_dict(b) for b in data.get("bookmakers") or []),
        )


# ---------------------------------------------------------------------------
# Per-agent analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentAnalysis:
    """One agent's output for one event.

    A failed call is always UNKNOWN / LOW; construction with an ``error``
    and any other verdict or confidence is rejected.
    """

    agent_id: str
    agent_name: str
    emoji: str
    opinion: str
    verdict: Verdict
    confidence: Confidence
    probability: float | None = None
    implied_probability: float | None = None
    edge: float | None = None
    bet_type: str | None = None
    bet_selection: str | None = None
    bet_odds: float | None = None
    bet_explanation: str | None = None
    latency_ms: float = 0.0
    timestamp: datetime = field(default_factory=utcnow)
    error: str | None = None

    def __post_init__(self) -> None:
        if self.error is not None and (self.verdict != Verdict.UNKNOWN or self.confidence != Confidence.LOW):
            raise ValueError(
                f"Analysis for {self.agent_id} has an error but verdict={self.verdict.value} "
                f"confidence={self.confidence.value}"
            )

    @property
    def is_valid(self) -> bool:
        """True when this analysis participates in consensus scoring."""
        return self.error is None and self.verdict != Verdict.UNKNOWN

    @classmethod
    def degraded(cls, agent: Agent, error: str, latency_ms: float = 0.0) -> AgentAnalysis:
        return cls(
            agent_id=agent.id,
            agent_name=agent.name,
            emoji=agent.emoji,
            opinion="",
            verdict=Verdict.UNKNOWN,
            confidence=Confidence.LOW,
            latency_ms=latency_ms,
            error=error or "Analysis failed",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "emoji": self.emoji,
            "opinion": self.opinion,
            "verdict": self.verdict.value,
            "confidence": self.confidence.value,
            "probability": self.probability,
            "impliedProbability": self.implied_probability,
            "edge": self.edge,
            "betType": self.bet_type,
            "betSelection": self.bet_selection,
            "betOdds": self.bet_odds,
            "betExplanation": self.bet_explanation,
            "latencyMs": self.latency_ms,
            "timestamp": _isoformat(self.timestamp),
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentAnalysis:
        return cls(
            agent_id=data["agentId"],
            agent_name=data.get("agentName", data["agentId"]),
            emoji=data.get("emoji", ""),
            opinion=data.get("opinion", ""),
            verdict=Verdict(data.get("verdict", Verdict.UNKNOWN.value)),
            confidence=Confidence(data.get("confidence", Confidence.LOW.value)),
            probability=data.get("probability"),
            implied_probability=data.get("impliedProbability"),
            edge=data.get("edge"),
            bet_type=data.get("betType"),
            bet_selection=data.get("betSelection"),
            bet_odds=data.get("betOdds"),
            bet_explanation=data.get("betExplanation"),
            latency_ms=data.get("latencyMs") or 0.0,
            timestamp=_parse_datetime(data.get("timestamp")) or utcnow(),
            error=data.get("error"),
        )


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LeaderboardEntry:
    """Historical performance of one agent."""

    agent_id: str
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_predictions: int = 0
    win_rate: float = NEUTRAL_WIN_RATE
    current_streak: int = 0  # > 0 winning, < 0 losing
    best_streak: int = 0
    worst_streak: int = 0
    vote_weight: float = 1.0

    @classmethod
    def neutral(cls, agent_id: str) -> LeaderboardEntry:
        return cls(agent_id=agent_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "totalPredictions": self.total_predictions,
            "winRate": self.win_rate,
            "currentStreak": self.current_streak,
            "bestStreak": self.best_streak,
            "worstStreak": self.worst_streak,
            "voteWeight": self.vote_weight,
        }


# ---------------------------------------------------------------------------
# Consensus / result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Consensus:
    """Aggregated ensemble verdict."""

    verdict: Verdict
    score: str  # weighted average, two decimals
    bet_votes: int
    pass_votes: int
    confidence: Confidence
    reasoning: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "verdict": self.verdict.value,
            "score": self.score,
            "betVotes": self.bet_votes,
            "passVotes": self.pass_votes,
            "confidence": self.confidence.value,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Consensus:
        return cls(
            verdict=Verdict(data["verdict"]),
            score=str(data.get("score", "0")),
            bet_votes=int(data.get("betVotes", 0)),
            pass_votes=int(data.get("passVotes", 0)),
            confidence=Confidence(data.get("confidence", Confidence.LOW.value)),
            reasoning=data.get("reasoning", ""),
        )


@dataclass(frozen=True)
class SwarmResult:
    """Externally visible artifact of one orchestration cycle."""

    event_id: str
    event_name: str
    sport: str
    analyses: tuple[AgentAnalysis, ...]
    consensus: Consensus
    bet_selection: str | None = None
    bet_odds: float | None = None
    timestamp: datetime = field(default_factory=utcnow)
    cached: bool = False

    @property
    def valid_count(self) -> int:
        return sum(1 for a in self.analyses if a.is_valid)

    def as_cached(self) -> SwarmResult:
        return replace(self, cached=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "eventName": self.event_name,
            "sport": self.sport,
            "analyses": [a.to_dict() for a in self.analyses],
            "consensus": self.consensus.to_dict(),
            "betSelection": self.bet_selection,
            "betOdds": self.bet_odds,
            "timestamp": _isoformat(self.timestamp),
            "cached": self.cached,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SwarmResult:
        return cls(
            event_id=data["eventId"],
            event_name=data.get("eventName", ""),
            sport=data.get("sport", ""),
            analyses=tuple(AgentAnalysis.from_dict(a) for a in data.get("analyses", [])),
            consensus=Consensus.from_dict(data["consensus"]),
            bet_selection=data.get("betSelection"),
            bet_odds=data.get("betOdds"),
            timestamp=_parse_datetime(data.get("timestamp")) or utcnow(),
            cached=bool(data.get("cached", False)),
        )


# ---------------------------------------------------------------------------
# Persisted prediction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PredictionRecord:
    """A persisted SwarmResult plus its settlement status."""

    id: str
    event_id: str
    event_name: str
    consensus: Consensus
    analyses: tuple[AgentAnalysis, ...]
    sport: str | None = None
    league: str | None = None
    home_team: str | None = None
    away_team: str | None = None
    commence_time: datetime | None = None
    bet_selection: str | None = None
    bet_odds: float | None = None
    status: PredictionStatus = PredictionStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    settled_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.status != PredictionStatus.PENDING

    def to_swarm_result(self) -> SwarmResult:
        return SwarmResult(
            event_id=self.event_id,
            event_name=self.event_name,
            sport=self.sport or "",
            analyses=self.analyses,
            consensus=self.consensus,
            bet_selection=self.bet_selection,
            bet_odds=self.bet_odds,
            timestamp=self.created_at,
            cached=True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "eventId": self.event_id,
            "eventName": self.event_name,
            "sport": self.sport,
            "league": self.league,
            "homeTeam": self.home_team,
            "awayTeam": self.away_team,
            "commenceTime": _isoformat(self.commence_time),
            "consensus": self.consensus.to_dict(),
            "analyses": [a.to_dict() for a in self.analyses],
            "betSelection": self.bet_selection,
            "betOdds": self.bet_odds,
            "status": self.status.value,
            "createdAt": _isoformat(self.created_at),
            "settledAt": _isoformat(self.settled_at),
        }


# ---------------------------------------------------------------------------
# Orchestration options / streaming
# ---------------------------------------------------------------------------


DEFAULT_CACHE_TTL_SECONDS = 1800  # 30 minutes


@dataclass
class SwarmOptions:
    """Per-call orchestration options."""

    agents: list[str] | None = None  # default: every registered agent
    parallel: bool = True
    use_cache: bool = True
    cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS
    include_context: bool = True


StreamUpdateType = Literal["analysis", "consensus"]


@dataclass(frozen=True)
class StreamUpdate:
    type: StreamUpdateType
    data: AgentAnalysis | Consensus

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data.to_dict()}
