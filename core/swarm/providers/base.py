"""Base provider interface, error classification, retry and rate limiting."""

from __future__ import annotations

import asyncio
import logging
import os
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

from core.swarm.types import CompletionRequest, CompletionResponse, ProviderConfig, ProviderName

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rate Limiting (Token Bucket)
# ---------------------------------------------------------------------------


class TokenBucket:
    """Requests-per-minute limiter: bursts up to ``rate_per_minute``, then a steady refill."""

    def __init__(self, provider: ProviderName, rate_per_minute: int) -> None:
        self.provider = provider
        self.capacity = rate_per_minute
        self.tokens = float(rate_per_minute)
        self.rate_per_second = rate_per_minute / 60.0
        self.last_update = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Take one token, sleeping until the bucket refills if it is empty."""
        async with self._lock:
            while True:
                now = time.monotonic()
                self.tokens = min(self.capacity, self.tokens + (now - self.last_update) * self.rate_per_second)
                self.last_update = now
                if self.tokens >= 1:
                    self.tokens -= 1
                    return
                wait = (1 - self.tokens) / self.rate_per_second
                logger.debug("Rate limit reached for %s, waiting %.2fs", self.provider.value, wait)
                await asyncio.sleep(min(wait, 1.0))


# Buckets are per backend, shared by every agent (and provider instance) using it
_rate_limiters: dict[ProviderName, TokenBucket] = {}


def rate_limiter_for(provider: ProviderName, rate_per_minute: int) -> TokenBucket:
    bucket = _rate_limiters.get(provider)
    if bucket is None:
        bucket = _rate_limiters[provider] = TokenBucket(provider, rate_per_minute)
    return bucket


def reset_rate_limiters() -> None:
    _rate_limiters.clear()


# ---------------------------------------------------------------------------
# Error Classification
# ---------------------------------------------------------------------------


class LLMError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientError(LLMError):
    """Worth retrying: rate limits, server errors, timeouts, dropped connections."""


class PermanentError(LLMError):
    """Retrying will not help: bad credentials, bad request, malformed reply."""


class ProviderUnavailableError(PermanentError):
    """The provider cannot be called at all, e.g. its API key is not configured.

    Raised before any network I/O is attempted.
    """

    def __init__(self, provider: ProviderName, message: str):
        super().__init__(message)
        self.provider = provider


def classify_http_error(status_code: int, message: str) -> LLMError:
    """429 and 5xx are transient; any other status is permanent."""
    if status_code == 429 or 500 <= status_code < 600:
        return TransientError(message, status_code)
    return PermanentError(message, status_code)


# ---------------------------------------------------------------------------
# Retry Policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff on ``TransientError``, bounded by a time budget.

    ``budget_seconds`` matches the agent timeout: a retry whose backoff
    would end past the budget is not attempted, since the agent would be
    cut off before it answered.
    """

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 8.0
    budget_seconds: float = 30.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt + 1`` (``attempt`` is 0-based)."""
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay


# ---------------------------------------------------------------------------
# Provider base
# ---------------------------------------------------------------------------


class LLMProvider(ABC):
    """Abstract base class for all provider adapters.

    Each backend family implements ``complete()``; the base class handles
    credentials, the shared HTTP client, rate limiting, retries and error
    classification.
    """

    def __init__(self, config: ProviderConfig, api_key: str | None = None) -> None:
        self.config = config
        self.retry = RetryPolicy(budget_seconds=float(config.timeout_seconds))
        self._api_key = api_key
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> ProviderName:
        return self.config.name

    @property
    def api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key
        return os.environ.get(self.config.api_key_env, "")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def require_api_key(self) -> str:
        """Return the API key or raise ``ProviderUnavailableError``."""
        key = self.api_key
        if not key:
            raise ProviderUnavailableError(self.name, f"{self.config.api_key_env} is not configured")
        return key

    def _default_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            api_key = self.require_api_key()
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=self._default_headers(api_key),
                timeout=httpx.Timeout(self.config.timeout_seconds),
            )
        return self._client

    async def _request_once(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict[str, Any]:
        """One HTTP attempt, with failures classified as transient or permanent."""
        try:
            resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise classify_http_error(
                e.response.status_code,
                f"{method} {url} failed: {e.response.text[:200]}",
            )
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {url} timed out: {e}")
        except httpx.NetworkError as e:
            raise TransientError(f"{method} {url} network error: {e}")
        except ValueError as e:
            raise PermanentError(f"{method} {url} returned malformed JSON: {e}")

    async def _make_request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> dict[str, Any]:
        """``_request_once`` with retries on transient failures, per ``self.retry``."""
        policy = self.retry
        start = time.monotonic()
        for attempt in range(policy.max_retries + 1):
            try:
                return await self._request_once(client, method, url, **kwargs)
            except TransientError as e:
                if attempt >= policy.max_retries:
                    logger.error("%s: giving up after %d attempts: %s", self.name.value, attempt + 1, e)
                    raise
                delay = policy.delay(attempt)
                if time.monotonic() - start + delay >= policy.budget_seconds:
                    logger.error("%s: no time left to retry within %.0fs: %s", self.name.value, policy.budget_seconds, e)
                    raise
                logger.warning(
                    "%s: transient error (attempt %d/%d): %s. Retrying in %.2fs",
                    self.name.value,
                    attempt + 1,
                    policy.max_retries + 1,
                    e,
                    delay,
                )
                await asyncio.sleep(delay)
            except PermanentError as e:
                logger.error("%s: permanent error, not retrying: %s", self.name.value, e)
                raise
        raise RuntimeError("unreachable")  # pragma: no cover

    async def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Rate-limited POST through the shared client."""
        await rate_limiter_for(self.config.name, self.config.rate_limit_rpm).acquire()
        client = await self._get_client()
        return await self._make_request(client, "POST", url, json=payload)

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a completion request and return the raw text response.

        Raises:
            ProviderUnavailableError: the provider has no credentials. Raised
                before any network I/O.

        Any other failure is reported through ``CompletionResponse.error``.
        """

    async def close(self) -> None:
        """Close any open HTTP connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, request: CompletionRequest) -> tuple[str, float, int]:
        model = request.model if request.model is not None else self.config.default_model
        temperature = request.temperature if request.temperature is not None else self.config.temperature
        max_tokens = request.max_tokens if request.max_tokens is not None else self.config.max_tokens
        return model, temperature, max_tokens

    def _start_timer(self) -> float:
        return time.monotonic()

    def _elapsed_ms(self, start: float) -> float:
        return round((time.monotonic() - start) * 1000, 2)

    def _make_error_response(self, model: str, error: str, latency_ms: float = 0.0) -> CompletionResponse:
        """Build an error response without raising."""
        return CompletionResponse(
            provider=self.config.name,
            model=model,
            raw_text="",
            error=error,
            latency_ms=latency_ms,
        )
