"""Database models / type definitions.

These mirror the Supabase tables for type safety in Python code.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

# Used as ``user_id`` on audit rows when the caller could not be identified.
ANONYMOUS_USER_ID = "00000000-0000-0000-0000-000000000000"

API_KEY_TYPE = "pbm_api_key"


class PromptVersionRow(BaseModel):
    """Row from the prompt_versions table. Never mutated except for is_current."""

    id: UUID
    prompt_id: UUID
    version_number: int
    title: str | None = None
    content: str
    commit_message: str
    created_by: UUID | None = None
    is_current: bool
    created_at: datetime


class FlowRow(BaseModel):
    """Row from the prompt_flows table."""

    id: UUID
    user_id: UUID
    name: str
    description: str | None = None
    created_at: datetime


class FlowStepRow(BaseModel):
    """Row from the flow_steps table."""

    id: UUID
    flow_id: UUID
    prompt_id: UUID
    order_index: int
    step_title: str


class FlowStepOverrideRow(BaseModel):
    """Row from the prompt_flow_step table — per-step content/variable overrides."""

    id: UUID
    flow_step_id: UUID
    custom_content: str | None = None
    variables: dict[str, str] | None = None


class FolderRow(BaseModel):
    """Row from the folders table."""

    id: UUID
    user_id: UUID
    name: str
    color: str
    icon: str | None = None
    description: str | None = None
    parent_id: UUID | None = None
    position: int = 0
    is_shared: bool = False
    created_at: datetime
