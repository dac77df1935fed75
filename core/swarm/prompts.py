"""Analysis prompt templates."""

from __future__ import annotations

from core.swarm.types import Agent, SportEvent

_SOCCER_LEAGUE_HINTS = ("premier", "liga", "serie", "bundesliga")

SPORT_FACTORS: dict[str, str] = {
    "soccer": """SOCCER-SPECIFIC FACTORS TO ANALYZE:
- Home advantage (typically worth 0.3-0.5 goals)
- Recent form (last 5 matches, home/away splits)
- Head-to-head history
- Key player injuries/suspensions
- Fixture congestion and motivation""",
    "basketball": """NBA-SPECIFIC FACTORS TO ANALYZE:
- Back-to-back games and rest days
- Pace of play matchups
- Key player injuries (star players = 3-7 point swing)
- Travel schedule
- Offensive/Defensive efficiency""",
    "american_football": """NFL-SPECIFIC FACTORS TO ANALYZE:
- Home field advantage (worth ~3 points)
- Weather impact on totals
- Key injuries (QB = 3-7 points)
- Bye week rest advantage
- Motivation (playoff implications)""",
    "hockey": """NHL-SPECIFIC FACTORS TO ANALYZE:
- Back-to-back situations
- Goalie matchups and recent performance
- Power play/Penalty kill efficiency
- Travel schedule""",
    "default": """KEY FACTORS TO ANALYZE:
- Home advantage
- Recent form and momentum
- Head-to-head history
- Key injuries
- Motivation and stakes""",
}


def detect_sport(event: SportEvent) -> str:
    """Classify the event into one of the ``SPORT_FACTORS`` keys."""
    title = (event.sport_title or "").lower()
    league = (event.league or "").lower()

    if "soccer" in title or any(hint in league for hint in _SOCCER_LEAGUE_HINTS):
        return "soccer"
    if "nba" in title or "basketball" in title:
        return "basketball"
    if "nfl" in title or "american football" in title:
        return "american_football"
    if "football" in title:
        return "soccer"
    if "nhl" in title or "hockey" in title:
        return "hockey"
    return "default"


def system_prompt(agent: Agent) -> str:
    return f"You are {agent.name}, a professional sharp sports bettor with a proven edge. {agent.personality}".strip()


def analysis_prompt(event: SportEvent, context: str, agent: Agent) -> str:
    """Build the user prompt asking for a verdict in the parseable format."""
    sport = detect_sport(event)
    markets = (
        "1X2 (Home/Draw/Away), OVER/UNDER (Goals), BTTS (Both Teams To Score), DOUBLE CHANCE"
        if sport == "soccer"
        else "1X2 (Home/Away), OVER/UNDER (Points/Goals), SPREAD"
    )
    market_block = f"=== MARKET DATA ===\n{context}\n" if context else ""

    return f"""You are {agent.name}. Find value where bookmaker odds undervalue the true probability of an outcome.
Only bet with a positive expected value.

=== MATCHUP ===
{event.name}
Sport: {event.sport_title}
League: {event.league or "N/A"}
Game Time: {event.commence_time.isoformat()}

{market_block}
{SPORT_FACTORS[sport]}

AVAILABLE MARKETS: {markets}

=== VERDICT CRITERIA ===
- STRONG BET: 5%+ edge, high confidence in your probability estimate
- SLIGHT EDGE: 3-5% edge, moderate confidence
- RISKY: <3% edge or high uncertainty in estimate
- AVOID: No value, or negative EV

FORMAT YOUR RESPONSE EXACTLY LIKE THIS:
Key Insight: [The main factor driving your edge]
True Probability: [X]%
Implied Probability: [Y]%
Edge: [X-Y]%
Verdict: [STRONG BET/SLIGHT EDGE/RISKY/AVOID]
Confidence: [HIGH/MEDIUM/LOW]
Bet Type: [1X2/OVER/UNDER/BTTS/DOUBLE CHANCE/SPREAD]
Selection: [Your specific pick]
Odds: [X.XX]
Explanation: [What factor is the market underweighting?]

If there's no edge, say AVOID."""
