"""Caller API keys — bearer credentials for this service's own endpoints."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog

from promptbyme.core.errors import AuthError
from promptbyme.db.client import SupabaseClient, get_supabase_client
from promptbyme.db.models import API_KEY_TYPE
from promptbyme.utils.security import generate_api_key

logger = structlog.get_logger()


def bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization`` header value."""
    if not authorization:
        raise AuthError("No authorization header provided")
    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise AuthError("Invalid API key")
    return token


class ApiKeyStore:
    """Looks up and rotates ``pbm_api_key`` rows."""

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    def authenticate(self, token: str) -> str:
        """Return the owning user id for ``token`` or raise ``AuthError``."""
        rows = self.db.select("api_keys", filters={"key": token, "key_type": API_KEY_TYPE})
        if not rows:
            raise AuthError("Invalid API key")
        return str(rows[0]["user_id"])

    def authenticate_header(self, authorization: str | None) -> str:
        return self.authenticate(bearer_token(authorization))

    def get_key(self, user_id: str) -> str | None:
        rows = self.db.select("api_keys", filters={"user_id": user_id, "key_type": API_KEY_TYPE})
        return rows[0]["key"] if rows else None

    def rotate(self, user_id: str) -> dict[str, Any]:
        """Replace the user's key with a fresh one, creating it if absent."""
        key = generate_api_key()
        rows = self.db.select("api_keys", filters={"user_id": user_id, "key_type": API_KEY_TYPE})
        if rows:
            row = self.db.update("api_keys", rows[0]["id"], {"key": key})
        else:
            row = self.db.insert(
                "api_keys", {"user_id": user_id, "key": key, "key_type": API_KEY_TYPE}
            )
        logger.info("api_key.rotated", user_id=user_id)
        return row


@lru_cache
def get_api_key_store() -> ApiKeyStore:
    """Get cached API key store."""
    return ApiKeyStore(get_supabase_client())
