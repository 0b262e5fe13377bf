"""Shared request dependencies."""

from __future__ import annotations

from fastapi import Depends, Header

from promptbyme.core.api_keys import ApiKeyStore, get_api_key_store


async def current_user_id(
    authorization: str | None = Header(None),
    api_keys: ApiKeyStore = Depends(get_api_key_store),
) -> str:
    """Resolve the caller from ``Authorization: Bearer <pbm key>``.

    Raises ``AuthError`` (401) which the app-level handler renders.
    """
    return api_keys.authenticate_header(authorization)


async def prompt_password(x_prompt_password: str | None = Header(None)) -> str | None:
    """Password for someone else's protected prompt, sent as ``X-Prompt-Password``."""
    return x_prompt_password
