"""Flow and flow-step endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from promptbyme.api.deps import current_user_id
from promptbyme.api.models import (
    FlowCreate,
    FlowUpdate,
    StepCreate,
    StepOverride,
    StepReorder,
    StepUpdate,
)
from promptbyme.core.flows import FlowService, get_flow_service
from promptbyme.db.models import FlowRow, FlowStepOverrideRow, FlowStepRow

router = APIRouter()


@router.post("", status_code=201)
async def create_flow(
    data: FlowCreate,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> FlowRow:
    return FlowRow(**service.create_flow(user_id, data.name, data.description))


@router.get("")
async def list_flows(
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> list[FlowRow]:
    return [FlowRow(**f) for f in service.list_flows(user_id)]


@router.get("/{flow_id}")
async def get_flow(
    flow_id: str,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> dict[str, Any]:
    """Flow with ordered steps and their overrides."""
    return service.get_flow(flow_id, user_id)


@router.patch("/{flow_id}")
async def update_flow(
    flow_id: str,
    data: FlowUpdate,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> FlowRow:
    return FlowRow(**service.update_flow(flow_id, user_id, name=data.name, description=data.description))


@router.delete("/{flow_id}", status_code=204)
async def delete_flow(
    flow_id: str,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> None:
    service.delete_flow(flow_id, user_id)


@router.post("/{flow_id}/steps", status_code=201)
async def add_step(
    flow_id: str,
    data: StepCreate,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> FlowStepRow:
    step = service.add_step(
        flow_id, user_id, data.prompt_id, step_title=data.step_title, order_index=data.order_index
    )
    return FlowStepRow(**step)


@router.put("/{flow_id}/steps/order")
async def reorder_steps(
    flow_id: str,
    data: StepReorder,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> list[FlowStepRow]:
    return [FlowStepRow(**s) for s in service.reorder_steps(flow_id, user_id, data.step_ids)]


@router.patch("/steps/{step_id}")
async def update_step(
    step_id: str,
    data: StepUpdate,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> FlowStepRow:
    step = service.update_step(step_id, user_id, step_title=data.step_title, prompt_id=data.prompt_id)
    return FlowStepRow(**step)


@router.delete("/steps/{step_id}", status_code=204)
async def delete_step(
    step_id: str,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> None:
    service.delete_step(step_id, user_id)


@router.put("/steps/{step_id}/override")
async def set_step_override(
    step_id: str,
    data: StepOverride,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> FlowStepOverrideRow:
    """Set custom content and/or variables used when this step runs."""
    return FlowStepOverrideRow(
        **service.set_step_override(step_id, user_id, data.custom_content, data.variables)
    )


@router.delete("/steps/{step_id}/override", status_code=204)
async def clear_step_override(
    step_id: str,
    user_id: str = Depends(current_user_id),
    service: FlowService = Depends(get_flow_service),
) -> None:
    service.clear_step_override(step_id, user_id)
