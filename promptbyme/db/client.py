"""Supabase client initialization and helper methods."""

from __future__ import annotations

from functools import lru_cache
from typing import Any

import structlog
from supabase import Client, create_client

from promptbyme.config import get_settings

logger = structlog.get_logger()


def _apply_filters(query: Any, filters: dict[str, Any] | None) -> Any:
    """Add equality filters to a query; ``None`` values match SQL NULL."""
    if filters:
        for key, value in filters.items():
            if value is None:
                query = query.is_(key, "null")
            else:
                query = query.eq(key, value)
    return query


class SupabaseClient:
    """Wrapper around the Supabase client with convenience methods."""

    def __init__(self, client: Client) -> None:
        self._client = client

    @property
    def client(self) -> Client:
        """Access the raw Supabase client."""
        return self._client

    def insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return the created row."""
        result = self._client.table(table).insert(data).execute()
        return result.data[0]

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select records with optional filters, ordering, and limit."""
        query = _apply_filters(self._client.table(table).select("*"), filters)

        if order_by:
            query = query.order(order_by, desc=not ascending)

        if limit:
            query = query.limit(limit)

        result = query.execute()
        return result.data

    def select_in(self, table: str, column: str, values: list[Any]) -> list[dict[str, Any]]:
        """Select records whose ``column`` is one of ``values``."""
        if not values:
            return []
        result = self._client.table(table).select("*").in_(column, values).execute()
        return result.data

    def update(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update a record by ID."""
        result = self._client.table(table).update(data).eq("id", id).execute()
        return result.data[0]

    def update_where(
        self, table: str, filters: dict[str, Any], data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Update every record matching ``filters``; returns the updated rows."""
        query = _apply_filters(self._client.table(table).update(data), filters)
        return query.execute().data

    def delete(self, table: str, id: str) -> None:
        """Delete a record by ID."""
        self._client.table(table).delete().eq("id", id).execute()

    def delete_where(self, table: str, filters: dict[str, Any]) -> None:
        """Delete every record matching ``filters``."""
        _apply_filters(self._client.table(table).delete(), filters).execute()


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """Get cached Supabase client instance."""
    settings = get_settings()
    client = create_client(settings.supabase_url, settings.supabase_service_role_key)
    logger.info("supabase.connected", url=settings.supabase_url)
    return SupabaseClient(client)
