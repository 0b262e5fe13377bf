"""Prompt service — CRUD, version history, forking, passwords, and likes."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog

from promptbyme.core.differ import LineDiffer
from promptbyme.core.errors import AuthorizationError, NotFoundError, PasswordError, ValidationError
from promptbyme.db.client import SupabaseClient, get_supabase_client
from promptbyme.utils.security import hash_password, verify_password

logger = structlog.get_logger()

# Metadata that can change without producing a new version
UPDATABLE_FIELDS = {"access", "tags", "folder_id", "notes", "output_sample", "media_urls"}


def is_owner(prompt: dict[str, Any], user_id: str | None) -> bool:
    return str(prompt.get("user_id")) == user_id


def is_locked(prompt: dict[str, Any], user_id: str | None) -> bool:
    """True when the caller needs the prompt's password to see its content."""
    return bool(prompt.get("is_password_protected")) and not is_owner(prompt, user_id)


def check_access(prompt: dict[str, Any], user_id: str | None) -> None:
    if prompt.get("access") != "public" and not is_owner(prompt, user_id):
        raise AuthorizationError("Access denied: This prompt is private")


def check_password(prompt: dict[str, Any], user_id: str | None, password: str | None) -> None:
    """Non-owners of a protected prompt must supply its password."""
    if not is_locked(prompt, user_id):
        return
    if not password:
        raise PasswordError("Password required for this prompt")
    if not verify_password(password, prompt.get("password_hash")):
        raise PasswordError("Invalid password")


def check_linkable(prompt: dict[str, Any], user_id: str) -> None:
    """A flow can only use prompts its owner reads without a password."""
    check_access(prompt, user_id)
    if is_locked(prompt, user_id):
        raise AuthorizationError(
            "Access denied: Password-protected prompts can only be used in flows by their owner"
        )


class PromptService:
    """Manages prompt lifecycle. Title/content edits always go through versions."""

    def __init__(self, db: SupabaseClient, differ: LineDiffer | None = None) -> None:
        self.db = db
        self.differ = differ or LineDiffer()

    # --- Lookup ---

    def get_prompt(self, prompt_id: str) -> dict[str, Any] | None:
        rows = self.db.select("prompts", filters={"id": prompt_id})
        return rows[0] if rows else None

    def require_prompt(self, prompt_id: str) -> dict[str, Any]:
        prompt = self.get_prompt(prompt_id)
        if not prompt:
            raise NotFoundError("Prompt not found")
        return prompt

    def require_owned(self, prompt_id: str, user_id: str) -> dict[str, Any]:
        prompt = self.require_prompt(prompt_id)
        if str(prompt["user_id"]) != user_id:
            raise AuthorizationError("Access denied: You do not own this prompt")
        return prompt

    def require_readable(self, prompt_id: str, user_id: str) -> dict[str, Any]:
        """Prompt visible to the caller. Its content may still be locked."""
        prompt = self.require_prompt(prompt_id)
        check_access(prompt, user_id)
        return prompt

    def require_unlocked(
        self, prompt_id: str, user_id: str, password: str | None = None
    ) -> dict[str, Any]:
        """Prompt whose content the caller may read, checking the password for non-owners."""
        prompt = self.require_readable(prompt_id, user_id)
        check_password(prompt, user_id, password)
        return prompt

    def list_user_prompts(
        self,
        user_id: str,
        tag: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        rows = self.db.select(
            "prompts", filters={"user_id": user_id}, order_by="created_at", ascending=False
        )
        return self._filter(rows, tag, search)

    def list_public_prompts(
        self,
        tag: str | None = None,
        search: str | None = None,
        user_id: str | None = None,
    ) -> list[dict[str, Any]]:
        rows = self.db.select(
            "prompts", filters={"access": "public"}, order_by="created_at", ascending=False
        )
        return self._filter(rows, tag, search, user_id)

    @staticmethod
    def _filter(
        rows: list[dict[str, Any]],
        tag: str | None,
        search: str | None,
        user_id: str | None = None,
    ) -> list[dict[str, Any]]:
        # Client-side filtering for tags and search (Supabase array contains)
        if tag:
            rows = [r for r in rows if tag in (r.get("tags") or [])]
        if search:
            needle = search.lower()
            # Locked content is not searchable, only its title
            rows = [
                r
                for r in rows
                if needle in (r.get("title") or "").lower()
                or (not is_locked(r, user_id) and needle in (r.get("content") or "").lower())
            ]
        return rows

    # --- Create / update / delete ---

    def create_prompt(
        self,
        user_id: str,
        content: str,
        title: str | None = None,
        access: str = "private",
        tags: list[str] | None = None,
        folder_id: str | None = None,
        notes: str | None = None,
        output_sample: str | None = None,
        media_urls: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a prompt together with its initial version."""
        prompt = self.db.insert(
            "prompts",
            {
                "user_id": user_id,
                "title": title,
                "content": content,
                "access": access,
                "tags": tags or [],
                "folder_id": folder_id,
                "notes": notes,
                "output_sample": output_sample,
                "media_urls": media_urls,
                "views": 0,
                "like_count": 0,
                "fork_count": 0,
                "original_prompt_id": None,
                "is_password_protected": False,
                "password_hash": None,
                "current_version": 1,
                "total_versions": 1,
            },
        )
        self._insert_version(prompt, 1, "Initial version", user_id)
        logger.info("prompt.created", prompt_id=prompt["id"], user_id=user_id)
        return prompt

    def update_prompt(self, prompt_id: str, user_id: str, **fields: Any) -> dict[str, Any]:
        """Update metadata fields; unknown fields are rejected."""
        self.require_owned(prompt_id, user_id)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated directly: {', '.join(sorted(unknown))}")
        if fields.get("access") == "private":
            # Password protection only applies to public prompts
            fields.update(is_password_protected=False, password_hash=None)
        updated = self.db.update("prompts", prompt_id, fields)
        logger.info("prompt.updated", prompt_id=prompt_id, fields=sorted(fields))
        return updated

    def delete_prompt(self, prompt_id: str, user_id: str) -> None:
        self.require_owned(prompt_id, user_id)
        self.db.delete_where("prompt_versions", {"prompt_id": prompt_id})
        self.db.delete_where("likes", {"prompt_id": prompt_id})
        self.db.delete("prompts", prompt_id)
        logger.info("prompt.deleted", prompt_id=prompt_id)

    # --- Versions ---

    def _insert_version(
        self, prompt: dict[str, Any], number: int, message: str, created_by: str
    ) -> dict[str, Any]:
        return self.db.insert(
            "prompt_versions",
            {
                "prompt_id": prompt["id"],
                "version_number": number,
                "title": prompt.get("title"),
                "content": prompt["content"],
                "commit_message": message,
                "created_by": created_by,
                "is_current": True,
            },
        )

    def create_version(
        self,
        prompt_id: str,
        user_id: str,
        content: str,
        title: str | None = None,
        commit_message: str | None = None,
    ) -> dict[str, Any]:
        """Snapshot new content as the current version; the title carries over unless given."""
        prompt = self.require_owned(prompt_id, user_id)
        if title is None:
            title = prompt.get("title")
        number = (prompt.get("current_version") or 1) + 1
        total = (prompt.get("total_versions") or 1) + 1

        self.db.update_where("prompt_versions", {"prompt_id": prompt_id}, {"is_current": False})
        version = self.db.insert(
            "prompt_versions",
            {
                "prompt_id": prompt_id,
                "version_number": number,
                "title": title,
                "content": content,
                "commit_message": commit_message or f"Version {number}",
                "created_by": str(prompt["user_id"]),
                "is_current": True,
            },
        )
        self.db.update(
            "prompts",
            prompt_id,
            {"title": title, "content": content, "current_version": number, "total_versions": total},
        )
        logger.info("prompt.version_created", prompt_id=prompt_id, version=number)
        return version

    def revert_to_version(self, prompt_id: str, user_id: str, version_number: int) -> dict[str, Any]:
        """Restore an old version's content as a brand-new version."""
        target = self.get_version(prompt_id, version_number)
        if not target:
            raise NotFoundError("Version not found")
        return self.create_version(
            prompt_id,
            user_id,
            content=target["content"],
            title=target.get("title"),
            commit_message=f"Reverted to version {version_number}",
        )

    def version_history(self, prompt_id: str) -> list[dict[str, Any]]:
        return self.db.select(
            "prompt_versions",
            filters={"prompt_id": prompt_id},
            order_by="version_number",
            ascending=False,
        )

    def get_version(self, prompt_id: str, version_number: int) -> dict[str, Any] | None:
        rows = self.db.select(
            "prompt_versions", filters={"prompt_id": prompt_id, "version_number": version_number}
        )
        return rows[0] if rows else None

    def diff_versions(self, prompt_id: str, from_version: int, to_version: int) -> dict[str, Any]:
        old = self.get_version(prompt_id, from_version)
        new = self.get_version(prompt_id, to_version)
        if not old or not new:
            raise NotFoundError("Version not found")
        result = self.differ.diff(old["content"], new["content"])
        return {"from_version": from_version, "to_version": to_version, **result}

    # --- Forking ---

    def fork_prompt(
        self,
        original_prompt_id: str,
        user_id: str,
        title: str | None = None,
        password: str | None = None,
    ) -> dict[str, Any]:
        """Copy a prompt into the caller's library as a private fork.

        Forking a protected prompt someone else owns needs its password, since the
        fork itself is unprotected.
        """
        original = self.require_unlocked(original_prompt_id, user_id, password)
        if original.get("original_prompt_id") is not None:
            raise ValidationError("Cannot fork a forked prompt. Only original prompts can be forked.")

        fork = self.db.insert(
            "prompts",
            {
                "user_id": user_id,
                "title": title or f"Fork of: {original.get('title') or 'Untitled'}",
                "content": original["content"],
                "access": "private",
                "tags": original.get("tags") or [],
                "original_prompt_id": original_prompt_id,
                "folder_id": None,
                "views": 0,
                "like_count": 0,
                "fork_count": 0,
                "is_password_protected": False,
                "password_hash": None,
                "current_version": 1,
                "total_versions": 1,
            },
        )
        self._insert_version(fork, 1, "Forked from original prompt", user_id)
        logger.info("prompt.forked", original_id=original_prompt_id, fork_id=fork["id"])
        return fork

    # --- Password protection ---

    def set_password(self, prompt_id: str, user_id: str, password: str) -> dict[str, Any]:
        prompt = self.require_owned(prompt_id, user_id)
        if not password:
            raise ValidationError("Password is required")
        if prompt.get("access") != "public":
            raise ValidationError("Only public prompts can be password protected")
        updated = self.db.update(
            "prompts",
            prompt_id,
            {"password_hash": hash_password(password), "is_password_protected": True},
        )
        logger.info("prompt.password_set", prompt_id=prompt_id)
        return updated

    def remove_password(self, prompt_id: str, user_id: str) -> dict[str, Any]:
        self.require_owned(prompt_id, user_id)
        updated = self.db.update(
            "prompts", prompt_id, {"password_hash": None, "is_password_protected": False}
        )
        logger.info("prompt.password_removed", prompt_id=prompt_id)
        return updated

    def verify_password(self, prompt_id: str, password: str) -> bool:
        prompt = self.require_prompt(prompt_id)
        if not prompt.get("is_password_protected") or not prompt.get("password_hash"):
            raise ValidationError("This prompt is not password protected")
        return verify_password(password, prompt["password_hash"])

    # --- Likes ---

    def toggle_like(self, prompt_id: str, user_id: str) -> bool:
        """Flip the caller's like; returns True if the prompt is now liked."""
        self.require_readable(prompt_id, user_id)
        existing = self.db.select("likes", filters={"user_id": user_id, "prompt_id": prompt_id})
        if existing:
            self.db.delete_where("likes", {"user_id": user_id, "prompt_id": prompt_id})
            return False
        self.db.insert("likes", {"user_id": user_id, "prompt_id": prompt_id})
        return True

    def liked_prompt_ids(self, user_id: str) -> set[str]:
        return {str(row["prompt_id"]) for row in self.db.select("likes", filters={"user_id": user_id})}


@lru_cache
def get_prompt_service() -> PromptService:
    """Get cached prompt service instance."""
    return PromptService(get_supabase_client())
