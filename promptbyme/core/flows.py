"""Flow service — build and edit ordered prompt chains."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog

from promptbyme.core.errors import AuthorizationError, NotFoundError, ValidationError
from promptbyme.core.prompts import check_linkable
from promptbyme.db.client import SupabaseClient, get_supabase_client

logger = structlog.get_logger()


class FlowService:
    """CRUD for prompt_flows, flow_steps, and per-step overrides.

    Step ``order_index`` values are kept contiguous from 0 after every
    insert, delete, and reorder.
    """

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    # --- Flows ---

    def require_owned(self, flow_id: str, user_id: str) -> dict[str, Any]:
        rows = self.db.select("prompt_flows", filters={"id": flow_id})
        if not rows:
            raise NotFoundError("Flow not found")
        flow = rows[0]
        if str(flow["user_id"]) != user_id:
            raise AuthorizationError("Access denied: You do not have access to this flow")
        return flow

    def create_flow(self, user_id: str, name: str, description: str | None = None) -> dict[str, Any]:
        if not name or not name.strip():
            raise ValidationError("Flow name is required")
        flow = self.db.insert(
            "prompt_flows",
            {"user_id": user_id, "name": name.strip(), "description": description},
        )
        logger.info("flow.created", flow_id=flow["id"])
        return flow

    def list_flows(self, user_id: str) -> list[dict[str, Any]]:
        return self.db.select(
            "prompt_flows", filters={"user_id": user_id}, order_by="created_at", ascending=False
        )

    def get_flow(self, flow_id: str, user_id: str) -> dict[str, Any]:
        """Flow with its ordered steps, each carrying its override (if any)."""
        flow = self.require_owned(flow_id, user_id)
        steps = self.list_steps(flow_id)
        overrides = {
            str(o["flow_step_id"]): o
            for o in self.db.select_in("prompt_flow_step", "flow_step_id", [s["id"] for s in steps])
        }
        return {
            **flow,
            "steps": [{**s, "override": overrides.get(str(s["id"]))} for s in steps],
        }

    def update_flow(
        self,
        flow_id: str,
        user_id: str,
        name: str | None = None,
        description: str | None = None,
    ) -> dict[str, Any]:
        self.require_owned(flow_id, user_id)
        data: dict[str, Any] = {}
        if name is not None:
            if not name.strip():
                raise ValidationError("Flow name is required")
            data["name"] = name.strip()
        if description is not None:
            data["description"] = description
        if not data:
            raise ValidationError("Nothing to update")
        return self.db.update("prompt_flows", flow_id, data)

    def delete_flow(self, flow_id: str, user_id: str) -> None:
        self.require_owned(flow_id, user_id)
        for step in self.list_steps(flow_id):
            self.db.delete_where("prompt_flow_step", {"flow_step_id": step["id"]})
        self.db.delete_where("flow_steps", {"flow_id": flow_id})
        self.db.delete("prompt_flows", flow_id)
        logger.info("flow.deleted", flow_id=flow_id)

    # --- Steps ---

    def list_steps(self, flow_id: str) -> list[dict[str, Any]]:
        steps = self.db.select("flow_steps", filters={"flow_id": flow_id}, order_by="order_index")
        return sorted(steps, key=lambda s: s["order_index"])

    def _require_step(self, step_id: str, user_id: str) -> dict[str, Any]:
        rows = self.db.select("flow_steps", filters={"id": step_id})
        if not rows:
            raise NotFoundError("Step not found")
        step = rows[0]
        self.require_owned(str(step["flow_id"]), user_id)
        return step

    def _require_prompt(self, prompt_id: str, user_id: str) -> None:
        rows = self.db.select("prompts", filters={"id": prompt_id})
        if not rows:
            raise NotFoundError("Prompt not found")
        check_linkable(rows[0], user_id)

    def _reindex(self, ordered: list[dict[str, Any]]) -> None:
        for i, step in enumerate(ordered):
            if step["order_index"] != i:
                self.db.update("flow_steps", step["id"], {"order_index": i})
                step["order_index"] = i

    def add_step(
        self,
        flow_id: str,
        user_id: str,
        prompt_id: str,
        step_title: str | None = None,
        order_index: int | None = None,
    ) -> dict[str, Any]:
        """Append a step, or insert it at ``order_index`` shifting later steps down."""
        self.require_owned(flow_id, user_id)
        self._require_prompt(prompt_id, user_id)

        steps = self.list_steps(flow_id)
        index = len(steps) if order_index is None else max(0, min(order_index, len(steps)))
        # Shift from the back so (flow_id, order_index) never collides mid-update
        for step in reversed(steps[index:]):
            self.db.update("flow_steps", step["id"], {"order_index": step["order_index"] + 1})

        step = self.db.insert(
            "flow_steps",
            {
                "flow_id": flow_id,
                "prompt_id": prompt_id,
                "step_title": step_title or f"Step {index + 1}",
                "order_index": index,
            },
        )
        logger.info("flow.step_added", flow_id=flow_id, step_id=step["id"], order_index=index)
        return step

    def update_step(
        self,
        step_id: str,
        user_id: str,
        step_title: str | None = None,
        prompt_id: str | None = None,
    ) -> dict[str, Any]:
        self._require_step(step_id, user_id)
        data: dict[str, Any] = {}
        if step_title is not None:
            data["step_title"] = step_title
        if prompt_id is not None:
            self._require_prompt(prompt_id, user_id)
            data["prompt_id"] = prompt_id
        if not data:
            raise ValidationError("Nothing to update")
        return self.db.update("flow_steps", step_id, data)

    def delete_step(self, step_id: str, user_id: str) -> None:
        step = self._require_step(step_id, user_id)
        self.db.delete_where("prompt_flow_step", {"flow_step_id": step_id})
        self.db.delete("flow_steps", step_id)
        self._reindex(self.list_steps(str(step["flow_id"])))
        logger.info("flow.step_deleted", flow_id=step["flow_id"], step_id=step_id)

    def reorder_steps(self, flow_id: str, user_id: str, step_ids: list[str]) -> list[dict[str, Any]]:
        """Apply a full new ordering; ``step_ids`` must name every step exactly once."""
        self.require_owned(flow_id, user_id)
        steps = {str(s["id"]): s for s in self.list_steps(flow_id)}
        if len(step_ids) != len(set(step_ids)) or set(step_ids) != set(steps):
            raise ValidationError("Step order must list every step of the flow exactly once")

        ordered = [steps[sid] for sid in step_ids]
        self._reindex(ordered)
        logger.info("flow.steps_reordered", flow_id=flow_id, count=len(ordered))
        return ordered

    def set_step_override(
        self,
        step_id: str,
        user_id: str,
        custom_content: str | None = None,
        variables: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create or replace the custom content and variables for one step."""
        self._require_step(step_id, user_id)
        data = {"custom_content": custom_content, "variables": variables or {}}
        existing = self.db.select("prompt_flow_step", filters={"flow_step_id": step_id})
        if existing:
            return self.db.update("prompt_flow_step", existing[0]["id"], data)
        return self.db.insert("prompt_flow_step", {"flow_step_id": step_id, **data})

    def clear_step_override(self, step_id: str, user_id: str) -> None:
        self._require_step(step_id, user_id)
        self.db.delete_where("prompt_flow_step", {"flow_step_id": step_id})


@lru_cache
def get_flow_service() -> FlowService:
    """Get cached flow service instance."""
    return FlowService(get_supabase_client())
