"""Exceptions raised by the swarm core."""

from __future__ import annotations


class SwarmError(Exception):
    """Base class for swarm errors surfaced to callers."""


class InvalidEventError(SwarmError, ValueError):
    """The event descriptor cannot be analyzed."""


class UnknownAgentError(SwarmError, KeyError):
    """The agent id is not in the registry."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(agent_id)
        self.agent_id = agent_id

    def __str__(self) -> str:
        return f"Unknown agent: {self.agent_id}"


class SettlementError(SwarmError):
    """A prediction cannot be settled."""

    def __init__(self, prediction_id: str, message: str) -> None:
        super().__init__(message)
        self.prediction_id = prediction_id


class PredictionNotFoundError(SettlementError):
    def __init__(self, prediction_id: str) -> None:
        super().__init__(prediction_id, f"Prediction {prediction_id} not found")


class PredictionAlreadySettledError(SettlementError):
    def __init__(self, prediction_id: str, status: str) -> None:
        super().__init__(prediction_id, f"Prediction {prediction_id} already settled as {status}")
        self.status = status
