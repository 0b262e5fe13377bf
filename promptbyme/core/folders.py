"""Folder service — hierarchical organisation of a user's prompts."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog

from promptbyme.core.errors import AuthorizationError, NotFoundError, ValidationError
from promptbyme.db.client import SupabaseClient, get_supabase_client

logger = structlog.get_logger()

DEFAULT_COLOR = "#6366f1"
DEFAULT_ICON = "folder"
UPDATABLE_FIELDS = {"name", "color", "icon", "description", "is_shared"}


class FolderService:
    """Folders form a per-user tree; deleting one never deletes its contents."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def require_owned(self, folder_id: str, user_id: str) -> dict[str, Any]:
        rows = self.db.select("folders", filters={"id": folder_id})
        if not rows:
            raise NotFoundError("Folder not found")
        folder = rows[0]
        if str(folder["user_id"]) != user_id:
            raise AuthorizationError("Access denied: You do not own this folder")
        return folder

    def list_folders(self, user_id: str) -> list[dict[str, Any]]:
        """Folders ordered by position, each annotated with ``prompt_count``."""
        folders = self.db.select("folders", filters={"user_id": user_id}, order_by="position")
        counts: dict[str, int] = {}
        for prompt in self.db.select("prompts", filters={"user_id": user_id}):
            if prompt.get("folder_id"):
                key = str(prompt["folder_id"])
                counts[key] = counts.get(key, 0) + 1
        return [{**f, "prompt_count": counts.get(str(f["id"]), 0)} for f in folders]

    def _next_position(self, user_id: str, parent_id: str | None) -> int:
        siblings = self.db.select("folders", filters={"user_id": user_id, "parent_id": parent_id})
        if not siblings:
            return 0
        return max(s.get("position") or 0 for s in siblings) + 1

    def create_folder(
        self,
        user_id: str,
        name: str,
        color: str = DEFAULT_COLOR,
        icon: str = DEFAULT_ICON,
        description: str | None = None,
        parent_id: str | None = None,
        is_shared: bool = False,
    ) -> dict[str, Any]:
        if not name or not name.strip():
            raise ValidationError("Folder name is required")
        if parent_id:
            self.require_owned(parent_id, user_id)

        folder = self.db.insert(
            "folders",
            {
                "user_id": user_id,
                "name": name.strip(),
                "color": color,
                "icon": icon,
                "description": description,
                "parent_id": parent_id,
                "position": self._next_position(user_id, parent_id),
                "is_shared": is_shared,
            },
        )
        logger.info("folder.created", folder_id=folder["id"], parent_id=parent_id)
        return folder

    def update_folder(self, folder_id: str, user_id: str, **fields: Any) -> dict[str, Any]:
        self.require_owned(folder_id, user_id)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
        return self.db.update("folders", folder_id, fields)

    def delete_folder(self, folder_id: str, user_id: str) -> None:
        """Delete a folder; its prompts and subfolders move to the root."""
        self.require_owned(folder_id, user_id)
        self.db.update_where("prompts", {"folder_id": folder_id}, {"folder_id": None})
        self.db.update_where("folders", {"parent_id": folder_id}, {"parent_id": None})
        self.db.delete("folders", folder_id)
        logger.info("folder.deleted", folder_id=folder_id)

    def move_folder(
        self,
        folder_id: str,
        user_id: str,
        parent_id: str | None,
        position: int | None = None,
    ) -> dict[str, Any]:
        """Re-parent a folder and slot it in at ``position`` among its new siblings."""
        self.require_owned(folder_id, user_id)
        if parent_id:
            self.require_owned(parent_id, user_id)
            if folder_id in self._ancestor_ids(parent_id) or parent_id == folder_id:
                raise ValidationError("Cannot move a folder into itself or one of its subfolders")

        siblings = [
            s
            for s in self.db.select(
                "folders", filters={"user_id": user_id, "parent_id": parent_id}, order_by="position"
            )
            if s["id"] != folder_id
        ]
        index = len(siblings) if position is None else max(0, min(position, len(siblings)))
        ordered_ids = [s["id"] for s in siblings]
        ordered_ids.insert(index, folder_id)

        moved: dict[str, Any] = {}
        for i, fid in enumerate(ordered_ids):
            data: dict[str, Any] = {"position": i}
            if fid == folder_id:
                data["parent_id"] = parent_id
                moved = self.db.update("folders", fid, data)
            else:
                self.db.update("folders", fid, data)
        logger.info("folder.moved", folder_id=folder_id, parent_id=parent_id, position=index)
        return moved

    def move_prompt(self, prompt_id: str, user_id: str, folder_id: str | None) -> dict[str, Any]:
        rows = self.db.select("prompts", filters={"id": prompt_id})
        if not rows:
            raise NotFoundError("Prompt not found")
        if str(rows[0]["user_id"]) != user_id:
            raise AuthorizationError("Access denied: You do not own this prompt")
        if folder_id:
            self.require_owned(folder_id, user_id)
        return self.db.update("prompts", prompt_id, {"folder_id": folder_id})

    def _ancestors(self, folder_id: str) -> list[dict[str, Any]]:
        """The folder itself followed by each parent up to the root."""
        chain: list[dict[str, Any]] = []
        seen: set[str] = set()
        next_id: str | None = folder_id
        while next_id and next_id not in seen:
            rows = self.db.select("folders", filters={"id": next_id})
            if not rows:
                break
            seen.add(next_id)
            chain.append(rows[0])
            next_id = rows[0].get("parent_id")
        return chain

    def _ancestor_ids(self, folder_id: str) -> list[str]:
        return [str(f["id"]) for f in self._ancestors(folder_id)]

    def folder_path(self, folder_id: str) -> str:
        """Slash-separated names from the root down to ``folder_id``."""
        return "/".join(f["name"] for f in reversed(self._ancestors(folder_id)))

    @staticmethod
    def build_tree(folders: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Nest flat folder rows; folders whose parent is missing become roots."""
        nodes = {str(f["id"]): {**f, "children": []} for f in folders}
        roots: list[dict[str, Any]] = []
        for node in nodes.values():
            parent = nodes.get(str(node.get("parent_id"))) if node.get("parent_id") else None
            (parent["children"] if parent else roots).append(node)

        def _sort(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
            items.sort(key=lambda n: n.get("position") or 0)
            for item in items:
                _sort(item["children"])
            return items

        return _sort(roots)


@lru_cache
def get_folder_service() -> FolderService:
    """Get cached folder service instance."""
    return FolderService(get_supabase_client())
