"""Tests for the provider adapters, driven through httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from promptbyme.core.errors import ProviderError
from promptbyme.core.providers import PROVIDERS, ProviderRegistry


def _registry(handler) -> ProviderRegistry:
    return ProviderRegistry(http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def _capture(response_json: dict, status: int = 200):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=response_json)

    return seen, handler


CHOICES = {"choices": [{"message": {"content": "hi there"}}]}


class TestRequestShapes:
    @pytest.mark.asyncio
    async def test_groq_bearer_and_stream_false(self):
        seen, handler = _capture(CHOICES)
        out = await _registry(handler).execute("groq", "gsk_key", "llama3-8b-8192", "Say hi", 0.5, 64)
        assert out == "hi there"
        req = seen[0]
        assert str(req.url) == "https://api.groq.com/openai/v1/chat/completions"
        assert req.headers["authorization"] == "Bearer gsk_key"
        body = json.loads(req.content)
        assert body == {
            "model": "llama3-8b-8192",
            "messages": [{"role": "user", "content": "Say hi"}],
            "temperature": 0.5,
            "max_tokens": 64,
            "stream": False,
        }

    @pytest.mark.asyncio
    async def test_openai(self):
        seen, handler = _capture(CHOICES)
        out = await _registry(handler).execute("openai", "sk-test", "gpt-4o", "p")
        assert out == "hi there"
        assert seen[0].headers["authorization"] == "Bearer sk-test"
        assert "stream" not in json.loads(seen[0].content)

    @pytest.mark.asyncio
    async def test_anthropic_uses_x_api_key(self):
        seen, handler = _capture({"content": [{"type": "text", "text": "claude says"}]})
        out = await _registry(handler).execute("anthropic", "ak", "claude-3-haiku", "p")
        assert out == "claude says"
        req = seen[0]
        assert req.headers["x-api-key"] == "ak"
        assert req.headers["anthropic-version"] == "2023-06-01"
        assert "authorization" not in req.headers

    @pytest.mark.asyncio
    async def test_google_key_in_query_and_model_in_path(self):
        seen, handler = _capture(
            {"candidates": [{"content": {"parts": [{"text": "gemini says"}]}}]}
        )
        out = await _registry(handler).execute("google", "gk", "gemini-pro", "p", 0.2, 10)
        assert out == "gemini says"
        req = seen[0]
        assert req.url.path == "/v1beta/models/gemini-pro:generateContent"
        assert req.url.params["key"] == "gk"
        body = json.loads(req.content)
        assert body["contents"] == [{"parts": [{"text": "p"}]}]
        assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 10}

    @pytest.mark.asyncio
    async def test_llama_falls_back_to_generation_field(self):
        _, handler = _capture({"generation": "llama says"})
        assert await _registry(handler).execute("llama", "lk", "llama-13b", "p") == "llama says"

    @pytest.mark.asyncio
    async def test_provider_name_case_insensitive(self):
        _, handler = _capture(CHOICES)
        assert await _registry(handler).execute("GROQ", "k", "m", "p") == "hi there"


class TestErrors:
    @pytest.mark.asyncio
    async def test_non_2xx_uses_vendor_message(self):
        _, handler = _capture({"error": {"message": "Invalid API Key"}}, status=401)
        with pytest.raises(ProviderError, match="Groq API error: Invalid API Key"):
            await _registry(handler).execute("groq", "bad", "m", "p")

    @pytest.mark.asyncio
    async def test_non_json_error_body_falls_back_to_status(self):
        registry = _registry(lambda request: httpx.Response(503, text="upstream down"))
        with pytest.raises(ProviderError, match="OpenAI API error: HTTP 503"):
            await registry.execute("openai", "k", "m", "p")

    @pytest.mark.asyncio
    async def test_missing_completion_field(self):
        _, handler = _capture({"choices": []})
        with pytest.raises(ProviderError, match="Invalid response format from OpenAI API"):
            await _registry(handler).execute("openai", "k", "m", "p")

    @pytest.mark.asyncio
    async def test_empty_key_not_sent(self):
        seen, handler = _capture(CHOICES)
        with pytest.raises(ProviderError, match="Anthropic API key is missing or empty"):
            await _registry(handler).execute("anthropic", "  ", "m", "p")
        assert seen == []

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(ProviderError, match="Groq API request failed"):
            await _registry(handler).execute("groq", "k", "m", "p")

    def test_unsupported_provider(self):
        registry = _registry(lambda request: httpx.Response(200))
        with pytest.raises(ProviderError, match="Unsupported provider: mistral"):
            registry.get("mistral")


def test_all_five_vendors_configured():
    assert set(PROVIDERS) == {"openai", "anthropic", "google", "llama", "groq"}
