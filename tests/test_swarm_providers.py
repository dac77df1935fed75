"""Unit tests for LLM provider adapters.

Tests credential checks, retry logic, error handling, and response parsing
with mocked HTTP responses.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from core.swarm.providers.anthropic import AnthropicProvider
from core.swarm.providers.base import (
    PermanentError,
    ProviderUnavailableError,
    RetryPolicy,
    TransientError,
    classify_http_error,
    reset_rate_limiters,
)
from core.swarm.providers.google import GeminiProvider
from core.swarm.providers.openai_compat import GroqProvider, OpenAIProvider, PerplexityProvider, XAIProvider
from core.swarm.types import CompletionRequest, ProviderName


# ---------------------------------------------------------------------------
# Test Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clear_rate_limiters():
    """Give each test fresh per-provider rate limit buckets."""
    reset_rate_limiters()
    yield
    reset_rate_limiters()


@pytest.fixture
def request_():
    return CompletionRequest(system_prompt="You are a sharp bettor", user_prompt="Analyze LAL @ BOS")


def _http_response(status_code: int, payload: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = "error body"
    if status_code >= 400:
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "HTTP error", request=MagicMock(), response=response
        )
    else:
        response.raise_for_status = MagicMock()
        response.json.return_value = payload
    return response


# ---------------------------------------------------------------------------
# Error Classification Tests
# ---------------------------------------------------------------------------


def test_classify_http_error_transient():
    """Test that rate limits and server errors are transient."""
    for status in (429, 500, 502, 503, 504):
        error = classify_http_error(status, "boom")
        assert isinstance(error, TransientError)
        assert error.status_code == status


def test_classify_http_error_permanent():
    """Test that client errors are permanent."""
    for status in (400, 401, 403, 404, 422):
        error = classify_http_error(status, "bad")
        assert isinstance(error, PermanentError)
        assert error.status_code == status


def test_backoff_delay_bounds():
    """Test exponential backoff growth and cap without jitter."""
    policy = RetryPolicy(base_delay=1.0, max_delay=8.0, jitter=False)
    assert policy.delay(0) == 1.0
    assert policy.delay(2) == 4.0
    assert policy.delay(10) == 8.0
    assert 0.5 <= RetryPolicy(base_delay=1.0).delay(0) <= 1.5


# ---------------------------------------------------------------------------
# Credential Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider_cls,env_var",
    [
        (OpenAIProvider, "OPENAI_API_KEY"),
        (XAIProvider, "XAI_API_KEY"),
        (GroqProvider, "GROQ_API_KEY"),
        (PerplexityProvider, "PERPLEXITY_API_KEY"),
        (AnthropicProvider, "ANTHROPIC_API_KEY"),
        (GeminiProvider, "GOOGLE_AI_API_KEY"),
    ],
)
async def test_missing_api_key_raises_before_io(provider_cls, env_var, request_, monkeypatch):
    """Test that a missing credential fails synchronously, without a request."""
    monkeypatch.delenv(env_var, raising=False)
    provider = provider_cls()
    assert not provider.is_configured

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        with pytest.raises(ProviderUnavailableError, match=env_var):
            await provider.complete(request_)
        mock_post.assert_not_called()


def test_api_key_from_environment(monkeypatch):
    """Test that the key falls back to the provider's env var."""
    monkeypatch.setenv("GROQ_API_KEY", "gsk-test")
    assert GroqProvider().api_key == "gsk-test"
    assert GroqProvider(api_key="explicit").api_key == "explicit"


# ---------------------------------------------------------------------------
# OpenAI-compatible Provider Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_openai_complete_success(request_):
    """Test successful chat completion parsing."""
    provider = OpenAIProvider(api_key="sk-test")
    payload = {
        "choices": [{"message": {"content": "Verdict: AVOID"}}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 40},
    }

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = payload
        response = await provider.complete(request_)

    assert response.provider == ProviderName.OPENAI
    assert response.model == "gpt-4o"
    assert response.raw_text == "Verdict: AVOID"
    assert response.tokens_in == 120
    assert response.tokens_out == 40
    assert response.error is None

    url, body = mock_post.call_args.args
    assert url == "/v1/chat/completions"
    assert body["messages"][0] == {"role": "system", "content": "You are a sharp bettor"}
    assert body["messages"][1]["role"] == "user"


@pytest.mark.asyncio
async def test_openai_request_model_override(request_):
    """Test that the request's model overrides the provider default."""
    provider = OpenAIProvider(api_key="sk-test")
    request = CompletionRequest(system_prompt="s", user_prompt="u", model="gpt-4o-mini")

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = {"choices": [{"message": {"content": "ok"}}]}
        response = await provider.complete(request)

    assert response.model == "gpt-4o-mini"
    assert mock_post.call_args.args[1]["model"] == "gpt-4o-mini"


@pytest.mark.asyncio
async def test_perplexity_uses_unversioned_path(request_):
    """Test Perplexity's chat path."""
    provider = PerplexityProvider(api_key="pplx-test")

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = {"choices": [{"message": {"content": "ok"}}]}
        await provider.complete(request_)

    assert mock_post.call_args.args[0] == "/chat/completions"


@pytest.mark.asyncio
async def test_openai_malformed_response_becomes_error(request_):
    """Test that an unexpected body is reported, not raised."""
    provider = OpenAIProvider(api_key="sk-test")

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = {"choices": []}
        response = await provider.complete(request_)

    assert response.error is not None
    assert response.raw_text == ""


@pytest.mark.asyncio
async def test_permanent_http_error_not_retried(request_):
    """Test that a 401 is reported once without retries."""
    provider = XAIProvider(api_key="xai-test")

    with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_http:
        mock_http.return_value = _http_response(401)
        response = await provider.complete(request_)

    assert mock_http.call_count == 1
    assert response.error is not None
    await provider.close()


@pytest.mark.asyncio
async def test_transient_http_error_retried(request_):
    """Test retry on transient errors until success."""
    provider = GroqProvider(api_key="gsk-test")
    ok = _http_response(200, {"choices": [{"message": {"content": "Verdict: RISKY"}}]})

    with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_http, patch(
        "core.swarm.providers.base.asyncio.sleep", new_callable=AsyncMock
    ):
        mock_http.side_effect = [_http_response(503), _http_response(429), ok]
        response = await provider.complete(request_)

    assert mock_http.call_count == 3
    assert response.error is None
    assert response.raw_text == "Verdict: RISKY"
    await provider.close()


@pytest.mark.asyncio
async def test_transient_http_error_exhausts_retries(request_):
    """Test that persistent 503s end in an error response."""
    provider = GroqProvider(api_key="gsk-test")

    with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_http, patch(
        "core.swarm.providers.base.asyncio.sleep", new_callable=AsyncMock
    ):
        mock_http.return_value = _http_response(503)
        response = await provider.complete(request_)

    assert mock_http.call_count == 3  # initial attempt + 2 retries
    assert response.error is not None
    await provider.close()


@pytest.mark.asyncio
async def test_retries_stop_at_time_budget(request_):
    """Test that no retry is attempted when its backoff would overrun the budget."""
    provider = GroqProvider(api_key="gsk-test")
    provider.retry = RetryPolicy(max_retries=5, base_delay=1.0, budget_seconds=1.5, jitter=False)

    with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_http, patch(
        "core.swarm.providers.base.asyncio.sleep", new_callable=AsyncMock
    ) as mock_sleep:
        mock_http.return_value = _http_response(503)
        response = await provider.complete(request_)

    # the second backoff (2s) would end past the 1.5s budget
    assert mock_http.call_count == 2
    assert [c.args[0] for c in mock_sleep.await_args_list] == [1.0]
    assert response.error is not None
    await provider.close()


@pytest.mark.asyncio
async def test_timeout_becomes_error(request_):
    """Test that an HTTP timeout is reported as an error response."""
    provider = OpenAIProvider(api_key="sk-test")

    with patch("httpx.AsyncClient.request", new_callable=AsyncMock) as mock_http, patch(
        "core.swarm.providers.base.asyncio.sleep", new_callable=AsyncMock
    ):
        mock_http.side_effect = httpx.ReadTimeout("read timed out")
        response = await provider.complete(request_)

    assert "timed out" in response.error
    await provider.close()


# ---------------------------------------------------------------------------
# Anthropic Provider Tests
# ---------------------------------------------------------------------------


def test_anthropic_headers():
    """Test Anthropic authentication headers."""
    headers = AnthropicProvider(api_key="sk-ant")._default_headers("sk-ant")
    assert headers["x-api-key"] == "sk-ant"
    assert "anthropic-version" in headers
    assert "Authorization" not in headers


@pytest.mark.asyncio
async def test_anthropic_complete_success(request_):
    """Test that text blocks are joined and usage is read."""
    provider = AnthropicProvider(api_key="sk-ant")
    payload = {
        "content": [
            {"type": "text", "text": "Verdict: STRONG BET\n"},
            {"type": "text", "text": "Confidence: HIGH"},
        ],
        "usage": {"input_tokens": 300, "output_tokens": 90},
    }

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = payload
        response = await provider.complete(request_)

    assert response.provider == ProviderName.ANTHROPIC
    assert response.raw_text == "Verdict: STRONG BET\nConfidence: HIGH"
    assert response.tokens_in == 300
    assert response.tokens_out == 90

    url, body = mock_post.call_args.args
    assert url == "/v1/messages"
    assert body["system"] == "You are a sharp bettor"
    assert body["messages"] == [{"role": "user", "content": "Analyze LAL @ BOS"}]


@pytest.mark.asyncio
async def test_anthropic_no_text_content(request_):
    """Test that a response without text blocks is an error."""
    provider = AnthropicProvider(api_key="sk-ant")

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = {"content": [{"type": "tool_use", "id": "x"}]}
        response = await provider.complete(request_)

    assert response.error is not None
    assert "no text content" in response.error


# ---------------------------------------------------------------------------
# Gemini Provider Tests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_gemini_complete_success(request_):
    """Test generateContent request shape and response parsing."""
    provider = GeminiProvider(api_key="goog")
    payload = {
        "candidates": [{"content": {"parts": [{"text": "Verdict: "}, {"text": "RISKY"}]}}],
        "usageMetadata": {"promptTokenCount": 210, "candidatesTokenCount": 33},
    }

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = payload
        response = await provider.complete(request_)

    assert response.raw_text == "Verdict: RISKY"
    assert response.tokens_in == 210
    assert response.tokens_out == 33

    url, body = mock_post.call_args.args
    assert url == "/v1beta/models/gemini-2.0-flash:generateContent"
    assert body["systemInstruction"]["parts"][0]["text"] == "You are a sharp bettor"
    assert body["generationConfig"]["maxOutputTokens"] == 500


@pytest.mark.asyncio
async def test_gemini_no_candidates(request_):
    """Test that an empty candidate list is an error."""
    provider = GeminiProvider(api_key="goog")

    with patch.object(provider, "_post", new_callable=AsyncMock) as mock_post:
        mock_post.return_value = {"candidates": []}
        response = await provider.complete(request_)

    assert response.error == "Gemini returned no candidates"
