"""Version history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from promptbyme.api.deps import current_user_id, prompt_password
from promptbyme.api.models import DiffResponse, RevertRequest, VersionCreate, VersionResponse
from promptbyme.core.errors import NotFoundError
from promptbyme.core.prompts import PromptService, get_prompt_service
from promptbyme.db.models import PromptVersionRow
from promptbyme.utils.security import content_warnings

router = APIRouter()


@router.post("/{prompt_id}/versions", status_code=201)
async def create_version(
    prompt_id: str,
    data: VersionCreate,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> VersionResponse:
    """Save new content as the current version; the title carries over unless given."""
    version = service.create_version(
        prompt_id, user_id, data.content, title=data.title, commit_message=data.commit_message
    )
    return VersionResponse(**version, warnings=content_warnings(data.content) or None)


@router.get("/{prompt_id}/versions")
async def list_versions(
    prompt_id: str,
    password: str | None = Depends(prompt_password),
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> list[PromptVersionRow]:
    """Version history, newest first."""
    service.require_unlocked(prompt_id, user_id, password)
    return [PromptVersionRow(**v) for v in service.version_history(prompt_id)]


@router.get("/{prompt_id}/versions/{version_number}")
async def get_version(
    prompt_id: str,
    version_number: int,
    password: str | None = Depends(prompt_password),
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> PromptVersionRow:
    service.require_unlocked(prompt_id, user_id, password)
    version = service.get_version(prompt_id, version_number)
    if not version:
        raise NotFoundError("Version not found")
    return PromptVersionRow(**version)


@router.post("/{prompt_id}/revert", status_code=201)
async def revert_version(
    prompt_id: str,
    data: RevertRequest,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> PromptVersionRow:
    """Restore an earlier version as a new version."""
    return PromptVersionRow(**service.revert_to_version(prompt_id, user_id, data.version_number))


@router.get("/{prompt_id}/diff", response_model=DiffResponse)
async def diff_versions(
    prompt_id: str,
    from_version: int = Query(..., alias="from", ge=1),
    to_version: int = Query(..., alias="to", ge=1),
    password: str | None = Depends(prompt_password),
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> DiffResponse:
    service.require_unlocked(prompt_id, user_id, password)
    return DiffResponse(**service.diff_versions(prompt_id, from_version, to_version))
