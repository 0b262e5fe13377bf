"""Folder endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from promptbyme.api.deps import current_user_id
from promptbyme.api.models import FolderCreate, FolderMove, FolderUpdate
from promptbyme.core.folders import FolderService, get_folder_service
from promptbyme.db.models import FolderRow

router = APIRouter()


@router.post("", status_code=201)
async def create_folder(
    data: FolderCreate,
    user_id: str = Depends(current_user_id),
    service: FolderService = Depends(get_folder_service),
) -> FolderRow:
    return FolderRow(**service.create_folder(user_id, **data.model_dump()))


@router.get("")
async def list_folders(
    tree: bool = False,
    user_id: str = Depends(current_user_id),
    service: FolderService = Depends(get_folder_service),
) -> list[dict[str, Any]]:
    """Flat list by position, or nested when ``tree=true``."""
    folders = service.list_folders(user_id)
    return service.build_tree(folders) if tree else folders


@router.get("/{folder_id}")
async def get_folder(
    folder_id: str,
    user_id: str = Depends(current_user_id),
    service: FolderService = Depends(get_folder_service),
) -> dict[str, Any]:
    folder = service.require_owned(folder_id, user_id)
    return {**folder, "path": service.folder_path(folder_id)}


@router.patch("/{folder_id}")
async def update_folder(
    folder_id: str,
    data: FolderUpdate,
    user_id: str = Depends(current_user_id),
    service: FolderService = Depends(get_folder_service),
) -> FolderRow:
    return FolderRow(**service.update_folder(folder_id, user_id, **data.model_dump(exclude_none=True)))


@router.post("/{folder_id}/move")
async def move_folder(
    folder_id: str,
    data: FolderMove,
    user_id: str = Depends(current_user_id),
    service: FolderService = Depends(get_folder_service),
) -> FolderRow:
    return FolderRow(**service.move_folder(folder_id, user_id, data.parent_id, data.position))


@router.delete("/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: str,
    user_id: str = Depends(current_user_id),
    service: FolderService = Depends(get_folder_service),
) -> None:
    """Delete a folder; contained prompts and subfolders move to the root."""
    service.delete_folder(folder_id, user_id)
