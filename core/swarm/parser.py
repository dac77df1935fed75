"""Response parser: free-form model output to structured analysis fields.

Every field is optional: a field the model did not state is ``None``,
never a default such as ``0`` that would read as a real estimate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from core.swarm.types import Confidence, Verdict

_VERDICT_RE = re.compile(r"verdict[:\s]*(STRONG\s+BET|SLIGHT\s+EDGE|RISKY|AVOID)", re.IGNORECASE)
_CONFIDENCE_RE = re.compile(r"confidence[:\s]*(HIGH|MEDIUM|LOW)", re.IGNORECASE)
_TRUE_PROB_RE = re.compile(r"true\s*probability[:\s]*(\d{1,3}(?:\.\d+)?)\s*%", re.IGNORECASE)
_IMPLIED_PROB_RE = re.compile(r"implied\s*probability[:\s]*(\d{1,3}(?:\.\d+)?)\s*%", re.IGNORECASE)
_EDGE_RE = re.compile(r"\bedge[:\s]*([+-]?\d{1,2}(?:\.\d+)?)\s*%", re.IGNORECASE)
_BET_TYPE_RE = re.compile(
    r"bet\s*type[:\s]*(1X2|OVER\s*/?\s*UNDER|BTTS|DOUBLE\s+CHANCE|PLAYER\s+PROP|SPREAD)",
    re.IGNORECASE,
)
_SELECTION_RE = re.compile(r"selection[:\s]*([^\n]+)", re.IGNORECASE)
_ODDS_RE = re.compile(r"\bodds[:\s]*(\d+\.\d{1,2})", re.IGNORECASE)
_EXPLANATION_RE = re.compile(r"explanation[:\s]*([^\n]+)", re.IGNORECASE)
_KEY_INSIGHT_RE = re.compile(r"key\s*insight[:\s]*([^\n]+)", re.IGNORECASE)

_EMPHASIS_RE = re.compile(r"\*\*|__|`")
_NO_SELECTION = {"none", "n/a", "na", "-", "pass", "no bet", "no selection"}


@dataclass(frozen=True)
class ParsedAnalysis:
    """Structured fields recovered from a model's text answer."""

    verdict: Verdict | None = None
    confidence: Confidence | None = None
    probability: float | None = None
    implied_probability: float | None = None
    edge: float | None = None
    bet_type: str | None = None
    bet_selection: str | None = None
    bet_odds: float | None = None
    bet_explanation: str | None = None


def _match(pattern: re.Pattern[str], text: str) -> str | None:
    m = pattern.search(text)
    return m.group(1).strip() if m else None


def _percent(pattern: re.Pattern[str], text: str) -> float | None:
    raw = _match(pattern, text)
    if raw is None:
        return None
    value = float(raw)
    return value if 0.0 <= value <= 100.0 else None


def _normalize_words(value: str) -> str:
    return " ".join(value.upper().split())


def parse_analysis(text: str) -> ParsedAnalysis:
    """Parse the ``Label: value`` answer format the analysis prompt asks for."""
    if not text or not text.strip():
        return ParsedAnalysis()

    clean = _EMPHASIS_RE.sub("", text)

    verdict = None
    raw_verdict = _match(_VERDICT_RE, clean)
    if raw_verdict:
        verdict = Verdict(_normalize_words(raw_verdict))

    confidence = None
    raw_confidence = _match(_CONFIDENCE_RE, clean)
    if raw_confidence:
        confidence = Confidence(raw_confidence.upper())

    bet_type = None
    raw_bet_type = _match(_BET_TYPE_RE, clean)
    if raw_bet_type:
        bet_type = _normalize_words(raw_bet_type)
        if bet_type.replace(" ", "").replace("/", "") == "OVERUNDER":
            bet_type = "OVER/UNDER"

    selection = _match(_SELECTION_RE, clean)
    if selection is not None and (not selection or selection.lower().rstrip(".") in _NO_SELECTION):
        selection = None

    edge = None
    raw_edge = _match(_EDGE_RE, clean)
    if raw_edge is not None:
        edge = float(raw_edge)

    odds = None
    raw_odds = _match(_ODDS_RE, clean)
    if raw_odds is not None:
        odds = float(raw_odds)
        if odds <= 1.0:
            odds = None  # not a decimal price

    explanation = _match(_EXPLANATION_RE, clean) or _match(_KEY_INSIGHT_RE, clean)

    return ParsedAnalysis(
        verdict=verdict,
        confidence=confidence,
        probability=_percent(_TRUE_PROB_RE, clean),
        implied_probability=_percent(_IMPLIED_PROB_RE, clean),
        edge=edge,
        bet_type=bet_type,
        bet_selection=selection,
        bet_odds=odds,
        bet_explanation=explanation or None,
    )
