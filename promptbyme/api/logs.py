"""API call log and API key endpoints."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query

from promptbyme.api.deps import current_user_id
from promptbyme.api.models import ApiCallLogResponse, ApiKeyResponse
from promptbyme.core.api_keys import ApiKeyStore, get_api_key_store
from promptbyme.core.audit import ApiCallLogger, get_audit_logger

router = APIRouter()


@router.get("/logs", response_model=list[ApiCallLogResponse])
async def list_logs(
    endpoint: str | None = None,
    status: int | None = None,
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(current_user_id),
    audit: ApiCallLogger = Depends(get_audit_logger),
) -> list[ApiCallLogResponse]:
    """The caller's execution history, newest first."""
    entries = audit.query(user_id, endpoint=endpoint, status=status, limit=limit)
    return [ApiCallLogResponse(**asdict(e)) for e in entries]


@router.post("/api-key/rotate", response_model=ApiKeyResponse)
async def rotate_api_key(
    user_id: str = Depends(current_user_id),
    api_keys: ApiKeyStore = Depends(get_api_key_store),
) -> ApiKeyResponse:
    """Issue a new key; the old one stops working immediately."""
    row = api_keys.rotate(user_id)
    created_at = row.get("created_at")
    return ApiKeyResponse(api_key=row["key"], created_at=str(created_at) if created_at else None)
