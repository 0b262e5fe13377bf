"""Prompt CRUD, forking, password protection, and likes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from promptbyme.api.deps import current_user_id, prompt_password
from promptbyme.api.models import (
    ForkRequest,
    MovePromptRequest,
    PasswordRequest,
    PromptCreate,
    PromptUpdate,
)
from promptbyme.core.folders import FolderService, get_folder_service
from promptbyme.core.prompts import PromptService, get_prompt_service, is_locked
from promptbyme.utils.security import content_warnings

router = APIRouter()


def _public_view(prompt: dict[str, Any]) -> dict[str, Any]:
    """Never expose the bcrypt hash."""
    return {k: v for k, v in prompt.items() if k != "password_hash"}


def _viewer_view(prompt: dict[str, Any], user_id: str) -> dict[str, Any]:
    """Public view, minus the content when the caller has not unlocked it."""
    view = _public_view(prompt)
    if is_locked(prompt, user_id):
        view.pop("content", None)
    return view


@router.post("", status_code=201)
async def create_prompt(
    data: PromptCreate,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    """Create a prompt with an initial version."""
    prompt = service.create_prompt(user_id, **data.model_dump())
    return {**_public_view(prompt), "warnings": content_warnings(data.content) or None}


@router.get("")
async def list_prompts(
    tag: str | None = None,
    search: str | None = None,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> list[dict[str, Any]]:
    """List the caller's prompts."""
    return [_public_view(p) for p in service.list_user_prompts(user_id, tag=tag, search=search)]


@router.get("/public")
async def list_public_prompts(
    tag: str | None = None,
    search: str | None = None,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> list[dict[str, Any]]:
    liked = service.liked_prompt_ids(user_id)
    return [
        {**_viewer_view(p, user_id), "liked": str(p["id"]) in liked}
        for p in service.list_public_prompts(tag=tag, search=search, user_id=user_id)
    ]


@router.get("/{prompt_id}")
async def get_prompt(
    prompt_id: str,
    password: str | None = Depends(prompt_password),
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    """A prompt. Content of a protected prompt needs its password unless the caller owns it."""
    if password:
        return _public_view(service.require_unlocked(prompt_id, user_id, password))
    return _viewer_view(service.require_readable(prompt_id, user_id), user_id)


@router.patch("/{prompt_id}")
async def update_prompt(
    prompt_id: str,
    data: PromptUpdate,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    """Update metadata. Use the versions endpoints to change title or content."""
    return _public_view(
        service.update_prompt(prompt_id, user_id, **data.model_dump(exclude_unset=True))
    )


@router.delete("/{prompt_id}", status_code=204)
async def delete_prompt(
    prompt_id: str,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> None:
    service.delete_prompt(prompt_id, user_id)


@router.post("/{prompt_id}/fork", status_code=201)
async def fork_prompt(
    prompt_id: str,
    data: ForkRequest | None = None,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    """Fork an original prompt into the caller's library."""
    title = data.title if data else None
    password = data.password if data else None
    return _public_view(service.fork_prompt(prompt_id, user_id, title=title, password=password))


@router.put("/{prompt_id}/folder")
async def move_prompt(
    prompt_id: str,
    data: MovePromptRequest,
    user_id: str = Depends(current_user_id),
    folders: FolderService = Depends(get_folder_service),
) -> dict[str, Any]:
    return _public_view(folders.move_prompt(prompt_id, user_id, data.folder_id))


@router.put("/{prompt_id}/password")
async def set_password(
    prompt_id: str,
    data: PasswordRequest,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    """Protect a public prompt with a password."""
    service.set_password(prompt_id, user_id, data.password)
    return {"success": True, "is_password_protected": True}


@router.delete("/{prompt_id}/password")
async def remove_password(
    prompt_id: str,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    service.remove_password(prompt_id, user_id)
    return {"success": True, "is_password_protected": False}


@router.post("/{prompt_id}/password/verify")
async def verify_password(
    prompt_id: str,
    data: PasswordRequest,
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    return {"success": True, "valid": service.verify_password(prompt_id, data.password)}


@router.post("/{prompt_id}/like")
async def toggle_like(
    prompt_id: str,
    user_id: str = Depends(current_user_id),
    service: PromptService = Depends(get_prompt_service),
) -> dict[str, Any]:
    return {"success": True, "liked": service.toggle_like(prompt_id, user_id)}
