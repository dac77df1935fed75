"""OpenAI-compatible chat completions adapter.

OpenAI, xAI (Grok), Groq (Llama) and Perplexity all expose the same
``chat/completions`` request/response shape; they differ only in base URL,
path and credentials.
"""

from __future__ import annotations

import logging

from core.swarm.providers.base import LLMProvider, ProviderUnavailableError
from core.swarm.types import CompletionRequest, CompletionResponse, ProviderConfig, ProviderName

logger = logging.getLogger(__name__)

OPENAI_CONFIG = ProviderConfig(
    name=ProviderName.OPENAI,
    api_key_env="OPENAI_API_KEY",
    base_url="https://api.openai.com",
    default_model="gpt-4o",
)

XAI_CONFIG = ProviderConfig(
    name=ProviderName.XAI,
    api_key_env="XAI_API_KEY",
    base_url="https://api.x.ai",
    default_model="grok-2",
    temperature=0.8,  # more contrarian takes
)

GROQ_CONFIG = ProviderConfig(
    name=ProviderName.GROQ,
    api_key_env="GROQ_API_KEY",
    base_url="https://api.groq.com/openai",
    default_model="llama-3.3-70b-versatile",
    rate_limit_rpm=30,
)

PERPLEXITY_CONFIG = ProviderConfig(
    name=ProviderName.PERPLEXITY,
    api_key_env="PERPLEXITY_API_KEY",
    base_url="https://api.perplexity.ai",
    chat_path="/chat/completions",
    default_model="sonar",
    rate_limit_rpm=50,
)


class OpenAICompatibleProvider(LLMProvider):
    """Adapter for any backend speaking the OpenAI chat completions protocol."""

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a chat-completion request."""
        self.require_api_key()
        model, temperature, max_tokens = self._resolve(request)

        messages = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_prompt},
        ]

        start = self._start_timer()
        try:
            data = await self._post(
                self.config.chat_path,
                {
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
            raw_text = data["choices"][0]["message"]["content"] or ""
        except ProviderUnavailableError:
            raise
        except Exception as exc:
            latency = self._elapsed_ms(start)
            logger.error("%s request failed: %s", self.name.value, exc)
            return self._make_error_response(model, str(exc) or type(exc).__name__, latency)

        usage = data.get("usage") or {}
        return CompletionResponse(
            provider=self.name,
            model=model,
            raw_text=raw_text,
            tokens_in=usage.get("prompt_tokens", 0),
            tokens_out=usage.get("completion_tokens", 0),
            latency_ms=self._elapsed_ms(start),
        )


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI (GPT-4o, GPT-4o mini)."""

    def __init__(self, config: ProviderConfig | None = None, api_key: str | None = None) -> None:
        super().__init__(config or OPENAI_CONFIG, api_key)


class XAIProvider(OpenAICompatibleProvider):
    """xAI (Grok)."""

    def __init__(self, config: ProviderConfig | None = None, api_key: str | None = None) -> None:
        super().__init__(config or XAI_CONFIG, api_key)


class GroqProvider(OpenAICompatibleProvider):
    """Groq-hosted Llama models."""

    def __init__(self, config: ProviderConfig | None = None, api_key: str | None = None) -> None:
        super().__init__(config or GROQ_CONFIG, api_key)


class PerplexityProvider(OpenAICompatibleProvider):
    """Perplexity Sonar (live web search)."""

    def __init__(self, config: ProviderConfig | None = None, api_key: str | None = None) -> None:
        super().__init__(config or PERPLEXITY_CONFIG, api_key)
