"""Flow execution — run an ordered chain of prompts, threading each output forward."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog

from promptbyme.core.api_keys import get_api_key_store
from promptbyme.core.errors import (
    AuthorizationError,
    ExecutionError,
    MissingVariablesError,
    NotFoundError,
    StepError,
    ValidationError,
)
from promptbyme.core.executor import BaseExecutor, CallState, InboundCall, RunFlowRequest
from promptbyme.core.prompts import check_linkable
from promptbyme.core.providers import get_provider_registry
from promptbyme.core.variables import ensure_resolved, estimate_tokens, placeholder, substitute
from promptbyme.db.client import get_supabase_client

logger = structlog.get_logger()

PREVIOUS_STEP_HEADER = "Reference from previous step:"


def with_previous_output(content: str, previous_output: str) -> str:
    """Prepend the previous step's output as plain-text context."""
    if not previous_output:
        return content
    return f"{PREVIOUS_STEP_HEADER}\n{previous_output}\n\n{content}"


def resolve_step_content(
    step: dict[str, Any],
    prompt: dict[str, Any] | None,
    override: dict[str, Any] | None,
    flow_variables: dict[str, Any],
) -> str:
    """Effective, fully substituted content for one step.

    Custom content wins over the linked prompt's content. Step variables are
    applied before flow variables, so for a shared name the step value is the
    one that lands (the placeholder is gone by the time flow variables run).
    """
    override = override or {}
    title = step.get("step_title") or step["id"]

    content = override.get("custom_content") or (prompt or {}).get("content")
    if content is None:
        raise NotFoundError(f'Prompt for step "{title}" not found')

    content = substitute(content, override.get("variables") or {})
    content = substitute(content, flow_variables)

    try:
        return ensure_resolved(content)
    except MissingVariablesError as e:
        names = ", ".join(placeholder(name) for name in e.missing_variables)
        raise MissingVariablesError(
            e.missing_variables, f'Missing variables in step "{title}": {names}'
        ) from e


class FlowExecutor(BaseExecutor):
    """Runs every step of a flow strictly in ``order_index`` order."""

    log_event = "executor.flow"

    async def _execute(self, call: InboundCall, state: CallState) -> dict[str, Any]:
        user_id = self._authenticate(call, state)
        req = self._parse(call, state, RunFlowRequest)

        if not req.flow_id:
            raise ValidationError("Flow ID is required")
        if not req.api_key:
            raise ValidationError("AI provider API key is required")

        flows = self.db.select("prompt_flows", filters={"id": req.flow_id})
        if not flows:
            raise NotFoundError("Flow not found")
        flow = flows[0]

        if str(flow.get("user_id")) != user_id:
            raise AuthorizationError("Access denied: You do not have access to this flow")

        steps = self.db.select("flow_steps", filters={"flow_id": req.flow_id}, order_by="order_index")
        if not steps:
            raise NotFoundError("No steps found for this flow")
        steps = sorted(steps, key=lambda s: s["order_index"])

        prompts = {
            str(p["id"]): p
            for p in self.db.select_in("prompts", "id", list({s["prompt_id"] for s in steps}))
        }
        overrides = self._load_overrides([s["id"] for s in steps])

        try:
            step_outputs = await self._run_steps(req, user_id, steps, prompts, overrides)
        except ExecutionError as e:
            raise StepError(f"Flow execution error: {e.message}", extra=e.extra) from e
        except Exception as e:
            logger.exception("executor.flow_step_crashed", flow_id=req.flow_id)
            raise StepError(f"Flow execution error: {e}") from e

        return {
            "success": True,
            "output": step_outputs[str(steps[-1]["id"])],
            "step_outputs": step_outputs,
            "flow": {
                "id": flow["id"],
                "name": flow.get("name"),
                "steps": [
                    {"id": s["id"], "title": s.get("step_title"), "order_index": s["order_index"]}
                    for s in steps
                ],
            },
        }

    def _load_overrides(self, step_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Per-step overrides; a failed lookup means no overrides, not a failed flow."""
        try:
            rows = self.db.select_in("prompt_flow_step", "flow_step_id", step_ids)
        except Exception as e:
            logger.warning("executor.flow_overrides_unavailable", error=str(e))
            return {}
        return {str(row["flow_step_id"]): row for row in rows}

    async def _run_steps(
        self,
        req: RunFlowRequest,
        user_id: str,
        steps: list[dict[str, Any]],
        prompts: dict[str, dict[str, Any]],
        overrides: dict[str, dict[str, Any]],
    ) -> dict[str, str]:
        step_outputs: dict[str, str] = {}
        previous_output = ""

        for step in steps:
            step_id = str(step["id"])
            prompt = prompts.get(str(step["prompt_id"]))
            override = overrides.get(step_id)
            # Access may have changed since the step was added
            if prompt and not (override or {}).get("custom_content"):
                check_linkable(prompt, user_id)
            content = resolve_step_content(step, prompt, override, req.variables)
            text = with_previous_output(content, previous_output)
            output = await self._dispatch(req, text)
            logger.info(
                "executor.flow_step_completed",
                flow_id=req.flow_id,
                step_id=step_id,
                order_index=step["order_index"],
                prompt_tokens=estimate_tokens(text),
            )
            step_outputs[step_id] = output
            previous_output = output

        return step_outputs


@lru_cache
def get_flow_executor() -> FlowExecutor:
    """Get cached flow executor."""
    return FlowExecutor(get_supabase_client(), get_provider_registry(), get_api_key_store())
