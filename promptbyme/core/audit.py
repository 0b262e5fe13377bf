"""API call audit log — best-effort, append-only record of every execution request."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import structlog

from promptbyme.db.client import SupabaseClient, get_supabase_client
from promptbyme.db.models import ANONYMOUS_USER_ID

logger = structlog.get_logger()

TABLE = "api_call_logs"


@dataclass
class CallMetadata:
    """Transport-level facts about an inbound call."""

    endpoint: str
    method: str = "POST"
    ip_address: str = "unknown"
    user_agent: str = "unknown"

    @classmethod
    def from_headers(cls, endpoint: str, method: str, headers: Any) -> CallMetadata:
        """Build from a header mapping, preferring proxy-supplied client IPs."""
        ip = headers.get("x-forwarded-for") or headers.get("cf-connecting-ip") or "unknown"
        return cls(
            endpoint=endpoint,
            method=method,
            ip_address=ip,
            user_agent=headers.get("user-agent") or "unknown",
        )


@dataclass
class AuditEntry:
    """An api_call_logs row as returned by queries."""

    id: str
    user_id: str
    endpoint: str
    method: str
    status: int
    request_body: dict[str, Any]
    response_body: dict[str, Any]
    duration_ms: int
    ip_address: str
    user_agent: str
    created_at: str


class ApiCallLogger:
    """Builds, writes, and queries api_call_logs entries.

    ``record`` never raises: a failed insert is reported through structlog and
    otherwise ignored, so it cannot alter a response that was already computed.
    """

    def __init__(self, db: SupabaseClient) -> None:
        self.db = db

    @staticmethod
    def build_entry(
        meta: CallMetadata,
        user_id: str | None,
        status: int,
        request_body: dict[str, Any],
        response_body: dict[str, Any],
        duration_ms: int,
    ) -> dict[str, Any]:
        return {
            "user_id": user_id or ANONYMOUS_USER_ID,
            "endpoint": meta.endpoint,
            "method": meta.method,
            "status": status,
            "request_body": request_body,
            "response_body": response_body,
            "duration_ms": duration_ms,
            "ip_address": meta.ip_address,
            "user_agent": meta.user_agent,
        }

    def record(self, entry: dict[str, Any]) -> None:
        """Insert one log row; failures are logged and swallowed."""
        try:
            self.db.insert(TABLE, entry)
        except Exception as e:
            logger.warning(
                "audit.insert_failed",
                endpoint=entry.get("endpoint"),
                status=entry.get("status"),
                error=str(e),
            )
            return
        logger.info("audit.logged", endpoint=entry.get("endpoint"), status=entry.get("status"))

    def query(
        self,
        user_id: str,
        endpoint: str | None = None,
        status: int | None = None,
        limit: int = 50,
    ) -> list[AuditEntry]:
        """Most recent log entries for a user, newest first."""
        filters: dict[str, Any] = {"user_id": user_id}
        if status is not None:
            filters["status"] = status

        rows = self.db.select(TABLE, filters=filters, order_by="created_at", ascending=False)

        # Endpoint is stored as the full request URL, so match by suffix
        if endpoint:
            rows = [r for r in rows if str(r.get("endpoint", "")).rstrip("/").endswith(endpoint)]

        return [
            AuditEntry(
                id=str(row["id"]),
                user_id=str(row["user_id"]),
                endpoint=row["endpoint"],
                method=row["method"],
                status=row["status"],
                request_body=row.get("request_body") or {},
                response_body=row.get("response_body") or {},
                duration_ms=row.get("duration_ms", 0),
                ip_address=row.get("ip_address", "unknown"),
                user_agent=row.get("user_agent", "unknown"),
                created_at=str(row.get("created_at", "")),
            )
            for row in rows[:limit]
        ]


@lru_cache
def get_audit_logger() -> ApiCallLogger:
    """Get cached audit logger instance."""
    return ApiCallLogger(get_supabase_client())
