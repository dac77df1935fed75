"""Context builder: market data text passed to every agent."""

from __future__ import annotations

from core.swarm.types import SportEvent


def _format_point(point: float | None, signed: bool = True) -> str:
    if point is None:
        return ""
    sign = "+" if signed and point > 0 else ""
    return f" {sign}{point:g}"


def build_event_context(event: SportEvent) -> str:
    """Summarize the first bookmaker's moneyline, spread and totals prices.

    Returns an empty string when the event carries no market data.
    """
    if not event.bookmakers:
        return ""

    book = event.bookmakers[0]
    parts: list[str] = []

    h2h = book.market("h2h")
    if h2h and h2h.outcomes:
        parts.append("CURRENT ODDS:")
        for outcome in h2h.outcomes:
            parts.append(f"  {outcome.name}: {outcome.price:.2f}")

    spreads = book.market("spreads")
    if spreads and spreads.outcomes:
        parts.append("SPREAD:")
        for outcome in spreads.outcomes:
            parts.append(f"  {outcome.name}{_format_point(outcome.point)}: {outcome.price:.2f}")

    totals = book.market("totals")
    if totals and totals.outcomes:
        parts.append("TOTALS:")
        for outcome in totals.outcomes:
            parts.append(f"  {outcome.name}{_format_point(outcome.point, signed=False)}: {outcome.price:.2f}")

    return "\n".join(parts)
