"""Anthropic (Claude) messages API adapter."""

from __future__ import annotations

import logging

from core.swarm.providers.base import LLMProvider, ProviderUnavailableError
from core.swarm.types import CompletionRequest, CompletionResponse, ProviderConfig, ProviderName

logger = logging.getLogger(__name__)

ANTHROPIC_API_VERSION = "2023-06-01"

ANTHROPIC_CONFIG = ProviderConfig(
    name=ProviderName.ANTHROPIC,
    api_key_env="ANTHROPIC_API_KEY",
    base_url="https://api.anthropic.com",
    chat_path="/v1/messages",
    default_model="claude-sonnet-4-20250514",
    rate_limit_rpm=50,
)


class AnthropicProvider(LLMProvider):
    """Anthropic messages API adapter.

    The system prompt travels as a top-level ``system`` field rather than a
    chat message, and authentication uses ``x-api-key``.
    """

    def __init__(self, config: ProviderConfig | None = None, api_key: str | None = None) -> None:
        super().__init__(config or ANTHROPIC_CONFIG, api_key)

    def _default_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a messages request to Anthropic."""
        self.require_api_key()
        model, temperature, max_tokens = self._resolve(request)

        start = self._start_timer()
        try:
            data = await self._post(
                self.config.chat_path,
                {
                    "model": model,
                    "system": request.system_prompt,
                    "messages": [{"role": "user", "content": request.user_prompt}],
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            text_blocks = [b.get("text", "") for b in data.get("content", []) if b.get("type") == "text"]
            if not text_blocks:
                raise ValueError("Unexpected response type: no text content")
        except ProviderUnavailableError:
            raise
        except Exception as exc:
            latency = self._elapsed_ms(start)
            logger.error("Anthropic request failed: %s", exc)
            return self._make_error_response(model, str(exc) or type(exc).__name__, latency)

        usage = data.get("usage") or {}
        return CompletionResponse(
            provider=ProviderName.ANTHROPIC,
            model=model,
            raw_text="".join(text_blocks),
            tokens_in=usage.get("input_tokens", 0),
            tokens_out=usage.get("output_tokens", 0),
            latency_ms=self._elapsed_ms(start),
        )
