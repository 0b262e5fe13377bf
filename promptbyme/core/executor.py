"""Prompt execution — authenticate, load, substitute, dispatch, and log one call.

Both executors are single-pass: any failure short-circuits to an error response.
Every exit produces exactly one api_call_logs entry, which the HTTP layer writes
after the response has been sent.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, TypeVar

import pydantic
import structlog
from pydantic import BaseModel, Field

from promptbyme.config import Settings, get_settings
from promptbyme.core.api_keys import ApiKeyStore, get_api_key_store
from promptbyme.core.audit import ApiCallLogger, CallMetadata
from promptbyme.core.errors import (
    ExecutionError,
    NotFoundError,
    ProviderError,
    UnexpectedError,
    ValidationError,
)
from promptbyme.core.prompts import check_access, check_password
from promptbyme.core.providers import ProviderRegistry, get_provider_registry
from promptbyme.core.variables import estimate_tokens, fill_variables
from promptbyme.db.client import SupabaseClient, get_supabase_client
from promptbyme.utils.security import redact_request_body

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProviderOptions(BaseModel):
    """Fields shared by every execution request."""

    variables: dict[str, Any] = Field(default_factory=dict)
    api_key: str | None = None
    provider: str = "groq"
    model: str = "llama3-8b-8192"
    temperature: float = 0.7
    max_tokens: int = 1000


class RunPromptRequest(ProviderOptions):
    prompt_id: str | None = None
    password: str | None = None


class RunFlowRequest(ProviderOptions):
    flow_id: str | None = None


@dataclass
class InboundCall:
    """An execution request as received, before any parsing."""

    meta: CallMetadata
    authorization: str | None
    body: bytes | str


@dataclass
class ExecutionResult:
    status_code: int
    body: dict[str, Any]
    log_entry: dict[str, Any]


@dataclass
class CallState:
    """What is known about the caller so far; feeds the audit entry."""

    user_id: str | None = None
    request_log: dict[str, Any] = field(
        default_factory=lambda: {"error": "Request body not logged for failed auth"}
    )


class BaseExecutor:
    """Shared authentication, parsing, and logging shell."""

    log_event = "executor"

    def __init__(
        self,
        db: SupabaseClient,
        providers: ProviderRegistry,
        api_keys: ApiKeyStore,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.providers = providers
        self.api_keys = api_keys
        self.settings = settings or get_settings()

    async def run(self, call: InboundCall) -> ExecutionResult:
        """Execute ``call``; never raises."""
        started = time.monotonic()
        state = CallState()
        try:
            status, body = 200, await self._execute(call, state)
        except ExecutionError as e:
            status, body = e.status_code, e.to_body()
            logger.info(f"{self.log_event}.rejected", status=status, error=e.message)
        except Exception as e:
            logger.exception(f"{self.log_event}.unexpected_error", error=str(e))
            err = UnexpectedError(str(e) or "An unexpected error occurred")
            status, body = err.status_code, err.to_body()

        duration_ms = int((time.monotonic() - started) * 1000)
        entry = ApiCallLogger.build_entry(
            call.meta, state.user_id, status, state.request_log, body, duration_ms
        )
        return ExecutionResult(status_code=status, body=body, log_entry=entry)

    async def _execute(self, call: InboundCall, state: CallState) -> dict[str, Any]:
        raise NotImplementedError

    def _authenticate(self, call: InboundCall, state: CallState) -> str:
        state.user_id = self.api_keys.authenticate_header(call.authorization)
        return state.user_id

    def _parse(self, call: InboundCall, state: CallState, model: type[ModelT]) -> ModelT:
        """Decode the JSON body, record its redacted copy, and validate it."""
        state.request_log = {"error": "Invalid JSON in request body"}
        try:
            payload = json.loads(call.body or b"")
        except ValueError as e:
            raise ValidationError("Invalid JSON in request body") from e
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON in request body")

        state.request_log = redact_request_body(payload)
        # Explicit nulls fall back to defaults, same as omitted fields
        payload = {key: value for key, value in payload.items() if value is not None}
        payload.setdefault("provider", self.settings.default_provider)
        payload.setdefault("model", self.settings.default_model)
        try:
            return model.model_validate(payload)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ValidationError(f"Invalid value for '{location}': {first['msg']}") from e

    async def _dispatch(self, options: ProviderOptions, prompt: str) -> str:
        return await self.providers.execute(
            options.provider,
            options.api_key or "",
            options.model,
            prompt,
            options.temperature,
            options.max_tokens,
        )


class PromptExecutor(BaseExecutor):
    """Runs a single stored prompt against an AI provider."""

    log_event = "executor.prompt"

    async def _execute(self, call: InboundCall, state: CallState) -> dict[str, Any]:
        user_id = self._authenticate(call, state)
        req = self._parse(call, state, RunPromptRequest)

        if not req.prompt_id:
            raise ValidationError("Prompt ID is required")
        if not req.api_key:
            raise ValidationError("AI provider API key is required")

        rows = self.db.select("prompts", filters={"id": req.prompt_id})
        if not rows:
            raise NotFoundError("Prompt not found")
        prompt = rows[0]

        check_access(prompt, user_id)
        check_password(prompt, user_id, req.password)

        processed = fill_variables(prompt.get("content") or "", req.variables)

        try:
            output = await self._dispatch(req, processed)
        except ProviderError as e:
            raise ProviderError(f"AI API error: {e.message}") from e

        logger.info(
            "executor.prompt_dispatched",
            prompt_id=req.prompt_id,
            provider=req.provider,
            model=req.model,
            prompt_tokens=estimate_tokens(processed),
        )
        self._increment_views(prompt)

        return {
            "success": True,
            "output": output,
            "prompt": {
                "id": prompt["id"],
                "title": prompt.get("title"),
                "processed_content": processed,
            },
        }

    def _increment_views(self, prompt: dict[str, Any]) -> None:
        """Bump the view counter. Read-then-write, so concurrent calls can lose increments."""
        try:
            self.db.update("prompts", prompt["id"], {"views": (prompt.get("views") or 0) + 1})
        except Exception as e:
            logger.warning("executor.view_increment_failed", prompt_id=prompt["id"], error=str(e))


@lru_cache
def get_prompt_executor() -> PromptExecutor:
    """Get cached prompt executor."""
    return PromptExecutor(get_supabase_client(), get_provider_registry(), get_api_key_store())
