"""Provider adapters — one HTTP adapter driven by a per-vendor configuration table.

Each vendor differs only in endpoint, auth style, request envelope, and the JSON
path holding the completion text, so those are data, not subclasses.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import httpx
import structlog

from promptbyme.config import get_settings
from promptbyme.core.errors import ProviderError

logger = structlog.get_logger()

AUTH_BEARER = "bearer"
AUTH_X_API_KEY = "x-api-key"
AUTH_QUERY = "query"

BodyBuilder = Callable[[str, str, float, int], dict[str, Any]]


def chat_completion_body(model: str, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
    """OpenAI-style chat completion envelope (also used by Anthropic, Llama, Groq)."""
    return {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }


def groq_body(model: str, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
    return {**chat_completion_body(model, prompt, temperature, max_tokens), "stream": False}


def gemini_body(model: str, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
    # The model is part of the URL for Gemini, not the body.
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        },
    }


@dataclass(frozen=True)
class ProviderSpec:
    """Static description of one AI vendor's REST API."""

    name: str
    label: str
    url: str
    auth: str
    build_body: BodyBuilder
    response_paths: tuple[tuple[str | int, ...], ...]
    headers: dict[str, str] = field(default_factory=dict)


CHOICES_PATH = ("choices", 0, "message", "content")

PROVIDERS: dict[str, ProviderSpec] = {
    spec.name: spec
    for spec in (
        ProviderSpec(
            name="openai",
            label="OpenAI",
            url="https://api.openai.com/v1/chat/completions",
            auth=AUTH_BEARER,
            build_body=chat_completion_body,
            response_paths=(CHOICES_PATH,),
        ),
        ProviderSpec(
            name="anthropic",
            label="Anthropic",
            url="https://api.anthropic.com/v1/messages",
            auth=AUTH_X_API_KEY,
            build_body=chat_completion_body,
            response_paths=(("content", 0, "text"),),
            headers={"anthropic-version": "2023-06-01"},
        ),
        ProviderSpec(
            name="google",
            label="Google",
            url="https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
            auth=AUTH_QUERY,
            build_body=gemini_body,
            response_paths=(("candidates", 0, "content", "parts", 0, "text"),),
        ),
        ProviderSpec(
            name="llama",
            label="Llama",
            url="https://api.llama-api.com/v1/chat/completions",
            auth=AUTH_BEARER,
            build_body=chat_completion_body,
            response_paths=(CHOICES_PATH, ("generation",)),
        ),
        ProviderSpec(
            name="groq",
            label="Groq",
            url="https://api.groq.com/openai/v1/chat/completions",
            auth=AUTH_BEARER,
            build_body=groq_body,
            response_paths=(CHOICES_PATH,),
        ),
    )
}


def _dig(data: Any, path: tuple[str | int, ...]) -> Any:
    """Follow ``path`` through nested dicts/lists; None if any hop is missing."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current


def _error_detail(resp: httpx.Response) -> str:
    """Best-effort error message from a vendor error response."""
    fallback = f"HTTP {resp.status_code}: {resp.reason_phrase}"
    try:
        body = resp.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return fallback


class ProviderAdapter:
    """Executes a normalized completion request against one vendor."""

    def __init__(self, spec: ProviderSpec, http: httpx.AsyncClient) -> None:
        self.spec = spec
        self._http = http

    def build_request(
        self, api_key: str, model: str, prompt: str, temperature: float, max_tokens: int
    ) -> tuple[str, dict[str, str], dict[str, str], dict[str, Any]]:
        """Return (url, headers, query params, json body) for a call."""
        spec = self.spec
        url = spec.url.format(model=model)
        headers = {"Content-Type": "application/json", **spec.headers}
        params: dict[str, str] = {}
        if spec.auth == AUTH_BEARER:
            headers["Authorization"] = f"Bearer {api_key}"
        elif spec.auth == AUTH_X_API_KEY:
            headers["x-api-key"] = api_key
        elif spec.auth == AUTH_QUERY:
            params["key"] = api_key
        body = spec.build_body(model, prompt, temperature, max_tokens)
        return url, headers, params, body

    def extract_text(self, data: Any) -> str:
        """Pull the completion text out of a vendor response body."""
        for path in self.spec.response_paths:
            value = _dig(data, path)
            if value is not None:
                return str(value)
        raise ProviderError(f"Invalid response format from {self.spec.label} API")

    async def execute(
        self,
        api_key: str,
        model: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Send ``prompt`` to the vendor and return the completion text."""
        label = self.spec.label
        if not api_key or not api_key.strip():
            raise ProviderError(f"{label} API key is missing or empty")

        url, headers, params, body = self.build_request(
            api_key, model, prompt, temperature, max_tokens
        )
        logger.info("provider.request", provider=self.spec.name, model=model)

        try:
            resp = await self._http.post(url, headers=headers, params=params, json=body)
        except httpx.HTTPError as e:
            logger.warning("provider.transport_error", provider=self.spec.name, error=str(e))
            raise ProviderError(f"{label} API request failed: {e}") from e

        if not resp.is_success:
            detail = _error_detail(resp)
            logger.warning(
                "provider.error_response",
                provider=self.spec.name,
                status=resp.status_code,
                detail=detail,
            )
            raise ProviderError(f"{label} API error: {detail}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Invalid response format from {label} API") from e

        return self.extract_text(data)


class ProviderRegistry:
    """Looks up adapters by provider name; all adapters share one HTTP client."""

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
        specs: dict[str, ProviderSpec] | None = None,
    ) -> None:
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._adapters = {
            name: ProviderAdapter(spec, self._http) for name, spec in (specs or PROVIDERS).items()
        }

    def get(self, provider: str) -> ProviderAdapter:
        adapter = self._adapters.get((provider or "").lower())
        if adapter is None:
            raise ProviderError(f"Unsupported provider: {provider}")
        return adapter

    async def execute(
        self,
        provider: str,
        api_key: str,
        model: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        return await self.get(provider).execute(api_key, model, prompt, temperature, max_tokens)

    async def aclose(self) -> None:
        await self._http.aclose()


@lru_cache
def get_provider_registry() -> ProviderRegistry:
    """Get cached provider registry."""
    return ProviderRegistry(timeout=get_settings().provider_timeout)
