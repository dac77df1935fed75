"""Runtime settings for the swarm service, read from the environment.

Secrets (API keys, connection URLs) are never logged.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from core.swarm.adapters import DEFAULT_AGENT_TIMEOUT_SECONDS
from core.swarm.leaderboard import DEFAULT_LEADERBOARD_TTL_SECONDS
from core.swarm.providers import PROVIDER_CONFIGS
from core.swarm.types import DEFAULT_CACHE_TTL_SECONDS, ProviderName

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class SwarmSettings:
    """Service configuration.

    ``database_url`` / ``redis_url`` are optional: without them the service
    falls back to in-memory stores and an in-memory result cache.
    """

    database_url: str | None = None
    redis_url: str | None = None
    cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS
    leaderboard_ttl_seconds: int = DEFAULT_LEADERBOARD_TTL_SECONDS
    agent_timeout_seconds: float = DEFAULT_AGENT_TIMEOUT_SECONDS
    parallel: bool = True
    api_keys: dict[ProviderName, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> SwarmSettings:
        env = os.environ if env is None else env

        api_keys: dict[ProviderName, str] = {}
        for name, provider_config in PROVIDER_CONFIGS.items():
            key = env.get(provider_config.api_key_env)
            if key:
                api_keys[name] = key

        timeout = _env_int(env, "SWARM_AGENT_TIMEOUT", int(DEFAULT_AGENT_TIMEOUT_SECONDS))
        if timeout <= 0:
            raise ValueError("SWARM_AGENT_TIMEOUT must be positive")

        return cls(
            database_url=env.get("DATABASE_URL") or None,
            redis_url=env.get("REDIS_URL") or None,
            cache_ttl_seconds=_env_int(env, "SWARM_CACHE_TTL", DEFAULT_CACHE_TTL_SECONDS),
            leaderboard_ttl_seconds=_env_int(env, "SWARM_LEADERBOARD_TTL", DEFAULT_LEADERBOARD_TTL_SECONDS),
            agent_timeout_seconds=float(timeout),
            parallel=_env_bool(env, "SWARM_PARALLEL", True),
            api_keys=api_keys,
        )
