"""Pydantic request/response models for the management API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from promptbyme.db.models import PromptVersionRow


# --- Prompts ---


class PromptCreate(BaseModel):
    """Create a new prompt (version 1 is written alongside it)."""

    content: str = Field(..., min_length=1)
    title: str | None = Field(None, max_length=200)
    access: str = Field("private", pattern=r"^(public|private)$")
    tags: list[str] = Field(default_factory=list)
    folder_id: str | None = None
    notes: str | None = None
    output_sample: str | None = None
    media_urls: list[str] | None = None


class PromptUpdate(BaseModel):
    """Update a prompt's metadata; title/content changes go through versions."""

    access: str | None = Field(None, pattern=r"^(public|private)$")
    tags: list[str] | None = None
    folder_id: str | None = None
    notes: str | None = None
    output_sample: str | None = None
    media_urls: list[str] | None = None


class PasswordRequest(BaseModel):
    password: str = Field(..., min_length=1)


class ForkRequest(BaseModel):
    title: str | None = None
    password: str | None = None


class MovePromptRequest(BaseModel):
    folder_id: str | None = None


# --- Versions ---


class VersionCreate(BaseModel):
    content: str = Field(..., min_length=1)
    title: str | None = None
    commit_message: str | None = None


class VersionResponse(PromptVersionRow):
    """A saved version, plus warnings about its content."""

    warnings: list[str] | None = None


class RevertRequest(BaseModel):
    version_number: int = Field(..., ge=1)


class DiffLine(BaseModel):
    type: str
    content: str
    line_number: int


class DiffResponse(BaseModel):
    """Positional line diff between two versions."""

    from_version: int
    to_version: int
    lines: list[DiffLine]
    summary: dict[str, int]
    similarity: float


# --- Folders ---


class FolderCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = "#6366f1"
    icon: str = "folder"
    description: str | None = None
    parent_id: str | None = None
    is_shared: bool = False


class FolderUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    color: str | None = None
    icon: str | None = None
    description: str | None = None
    is_shared: bool | None = None


class FolderMove(BaseModel):
    parent_id: str | None = None
    position: int | None = Field(None, ge=0)


# --- Flows ---


class FlowCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None


class FlowUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class StepCreate(BaseModel):
    prompt_id: str
    step_title: str | None = None
    order_index: int | None = Field(None, ge=0)


class StepUpdate(BaseModel):
    step_title: str | None = None
    prompt_id: str | None = None


class StepReorder(BaseModel):
    step_ids: list[str]


class StepOverride(BaseModel):
    """Per-step custom content and variables used by flow execution."""

    custom_content: str | None = None
    variables: dict[str, str] = Field(default_factory=dict)


# --- Logs / keys ---


class ApiKeyResponse(BaseModel):
    api_key: str
    created_at: str | None = None


class ApiCallLogResponse(BaseModel):
    id: str
    endpoint: str
    method: str
    status: int
    duration_ms: int
    ip_address: str | None = None
    user_agent: str | None = None
    request_body: dict[str, Any] | None = None
    response_body: dict[str, Any] | None = None
    created_at: str | None = None
