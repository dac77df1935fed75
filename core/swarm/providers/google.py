"""Google Gemini ``generateContent`` adapter."""

from __future__ import annotations

import logging

from core.swarm.providers.base import LLMProvider, ProviderUnavailableError
from core.swarm.types import CompletionRequest, CompletionResponse, ProviderConfig, ProviderName

logger = logging.getLogger(__name__)

GOOGLE_CONFIG = ProviderConfig(
    name=ProviderName.GOOGLE,
    api_key_env="GOOGLE_AI_API_KEY",
    base_url="https://generativelanguage.googleapis.com",
    chat_path="/v1beta/models/{model}:generateContent",
    default_model="gemini-2.0-flash",
)


class GeminiProvider(LLMProvider):
    """Gemini adapter over the public REST API."""

    def __init__(self, config: ProviderConfig | None = None, api_key: str | None = None) -> None:
        super().__init__(config or GOOGLE_CONFIG, api_key)

    def _default_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Send a generateContent request to Gemini."""
        self.require_api_key()
        model, temperature, max_tokens = self._resolve(request)

        start = self._start_timer()
        try:
            data = await self._post(
                self.config.chat_path.format(model=model),
                {
                    "systemInstruction": {"parts": [{"text": request.system_prompt}]},
                    "contents": [{"role": "user", "parts": [{"text": request.user_prompt}]}],
                    "generationConfig": {
                        "temperature": temperature,
                        "maxOutputTokens": max_tokens,
                    },
                },
            )
            candidates = data.get("candidates") or []
            if not candidates:
                raise ValueError("Gemini returned no candidates")
            parts = candidates[0].get("content", {}).get("parts", [])
            raw_text = "".join(p.get("text", "") for p in parts)
        except ProviderUnavailableError:
            raise
        except Exception as exc:
            latency = self._elapsed_ms(start)
            logger.error("Gemini request failed: %s", exc)
            return self._make_error_response(model, str(exc) or type(exc).__name__, latency)

        usage = data.get("usageMetadata") or {}
        return CompletionResponse(
            provider=ProviderName.GOOGLE,
            model=model,
            raw_text=raw_text,
            tokens_in=usage.get("promptTokenCount", 0),
            tokens_out=usage.get("candidatesTokenCount", 0),
            latency_ms=self._elapsed_ms(start),
        )
