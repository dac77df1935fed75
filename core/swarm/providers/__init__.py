"""Provider adapters: one per inference backend family."""

from __future__ import annotations

from core.swarm.providers.anthropic import ANTHROPIC_CONFIG, AnthropicProvider
from core.swarm.providers.base import (
    LLMProvider,
    PermanentError,
    ProviderUnavailableError,
    TransientError,
)
from core.swarm.providers.google import GOOGLE_CONFIG, GeminiProvider
from core.swarm.providers.openai_compat import (
    GROQ_CONFIG,
    OPENAI_CONFIG,
    PERPLEXITY_CONFIG,
    XAI_CONFIG,
    GroqProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    PerplexityProvider,
    XAIProvider,
)
from core.swarm.types import ProviderConfig, ProviderName

PROVIDER_CLASSES: dict[ProviderName, type[LLMProvider]] = {
    ProviderName.ANTHROPIC: AnthropicProvider,
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.GOOGLE: GeminiProvider,
    ProviderName.XAI: XAIProvider,
    ProviderName.GROQ: GroqProvider,
    ProviderName.PERPLEXITY: PerplexityProvider,
}

PROVIDER_CONFIGS: dict[ProviderName, ProviderConfig] = {
    ProviderName.ANTHROPIC: ANTHROPIC_CONFIG,
    ProviderName.OPENAI: OPENAI_CONFIG,
    ProviderName.GOOGLE: GOOGLE_CONFIG,
    ProviderName.XAI: XAI_CONFIG,
    ProviderName.GROQ: GROQ_CONFIG,
    ProviderName.PERPLEXITY: PERPLEXITY_CONFIG,
}

__all__ = [
    "AnthropicProvider",
    "GeminiProvider",
    "GroqProvider",
    "LLMProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "PerplexityProvider",
    "PermanentError",
    "PROVIDER_CLASSES",
    "PROVIDER_CONFIGS",
    "ProviderUnavailableError",
    "TransientError",
    "XAIProvider",
]
