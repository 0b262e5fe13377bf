"""Test fixtures — mock Supabase client, fake provider registry, and shared test data."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from promptbyme.config import Settings
from promptbyme.core.api_keys import ApiKeyStore
from promptbyme.core.audit import ApiCallLogger, CallMetadata
from promptbyme.core.errors import ProviderError
from promptbyme.core.executor import InboundCall, PromptExecutor
from promptbyme.core.flow_executor import FlowExecutor
from promptbyme.db.client import SupabaseClient
from promptbyme.db.models import API_KEY_TYPE

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
CALLER_KEY = "pbm_0123abcd-4567ef01-89abcdef-01234567"


class MockSupabaseClient(SupabaseClient):
    """In-memory mock of the Supabase client for testing."""

    def __init__(self):
        self._tables: dict[str, list[dict[str, Any]]] = {
            "prompts": [],
            "prompt_versions": [],
            "folders": [],
            "likes": [],
            "prompt_flows": [],
            "flow_steps": [],
            "prompt_flow_step": [],
            "api_keys": [],
            "api_call_logs": [],
        }
        # Tables whose inserts raise, to simulate an outage
        self.failing_tables: set[str] = set()

    @property
    def client(self):
        raise NotImplementedError("MockSupabaseClient has no raw client")

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self._tables.setdefault(table, [])

    @staticmethod
    def _matches(row: dict[str, Any], filters: dict[str, Any] | None) -> bool:
        return all(row.get(key) == value for key, value in (filters or {}).items())

    def insert(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        if table in self.failing_tables:
            raise ConnectionError(f"insert into {table} failed")
        now = datetime.now(timezone.utc).isoformat()
        record = {"id": str(uuid4()), "created_at": now, "updated_at": now, **data}
        self.rows(table).append(record)
        return record

    def select(
        self,
        table: str,
        filters: dict[str, Any] | None = None,
        order_by: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        rows = [r for r in self.rows(table) if self._matches(r, filters)]
        if order_by:
            rows = sorted(rows, key=lambda r: r.get(order_by, 0), reverse=not ascending)
        if limit:
            rows = rows[:limit]
        return rows

    def select_in(self, table: str, column: str, values: list[Any]) -> list[dict[str, Any]]:
        return [r for r in self.rows(table) if r.get(column) in values]

    def update(self, table: str, id: str, data: dict[str, Any]) -> dict[str, Any]:
        for row in self.rows(table):
            if row["id"] == id:
                row.update(data)
                row["updated_at"] = datetime.now(timezone.utc).isoformat()
                return row
        raise ValueError(f"Row {id} not found in {table}")

    def update_where(
        self, table: str, filters: dict[str, Any], data: dict[str, Any]
    ) -> list[dict[str, Any]]:
        updated = [r for r in self.rows(table) if self._matches(r, filters)]
        for row in updated:
            row.update(data)
        return updated

    def delete(self, table: str, id: str) -> None:
        self._tables[table] = [r for r in self.rows(table) if r["id"] != id]

    def delete_where(self, table: str, filters: dict[str, Any]) -> None:
        self._tables[table] = [r for r in self.rows(table) if not self._matches(r, filters)]


class FakeProviderRegistry:
    """Stands in for ProviderRegistry; records every dispatched prompt."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.outputs: list[str] = []
        self.error: Exception | None = None
        self.fail_on_call: int | None = None

    async def execute(
        self,
        provider: str,
        api_key: str,
        model: str,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        self.calls.append(
            {
                "provider": provider,
                "api_key": api_key,
                "model": model,
                "prompt": prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        if self.fail_on_call == len(self.calls):
            raise ProviderError("Groq API error: rate limited")
        if self.outputs:
            return self.outputs.pop(0)
        return f"output {len(self.calls)}"

    @property
    def prompts(self) -> list[str]:
        return [c["prompt"] for c in self.calls]

    async def aclose(self) -> None:
        return None


@pytest.fixture
def mock_db() -> MockSupabaseClient:
    """Fresh mock database seeded with the caller's API key."""
    db = MockSupabaseClient()
    db.insert("api_keys", {"user_id": USER_ID, "key": CALLER_KEY, "key_type": API_KEY_TYPE})
    return db


@pytest.fixture
def settings() -> Settings:
    return Settings(supabase_url="http://supabase.test", supabase_service_role_key="test")


@pytest.fixture
def providers() -> FakeProviderRegistry:
    return FakeProviderRegistry()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CALLER_KEY}"}


@pytest.fixture
def make_prompt(mock_db):
    """Factory inserting a prompt row with sensible defaults."""

    def _make(content: str = "Hello {{name}}", **overrides: Any) -> dict[str, Any]:
        return mock_db.insert(
            "prompts",
            {
                "user_id": USER_ID,
                "title": "Greeting",
                "content": content,
                "access": "private",
                "tags": [],
                "views": 0,
                "like_count": 0,
                "fork_count": 0,
                "original_prompt_id": None,
                "is_password_protected": False,
                "password_hash": None,
                "current_version": 1,
                "total_versions": 1,
                "folder_id": None,
                **overrides,
            },
        )

    return _make


@pytest.fixture
def make_flow(mock_db, make_prompt):
    """Factory for a flow whose steps are given as (title, content) pairs."""

    def _make(steps: list[tuple[str, str]], user_id: str = USER_ID, name: str = "Pipeline"):
        flow = mock_db.insert("prompt_flows", {"user_id": user_id, "name": name})
        rows = []
        for i, (title, content) in enumerate(steps):
            prompt = make_prompt(content, title=title, user_id=user_id)
            rows.append(
                mock_db.insert(
                    "flow_steps",
                    {
                        "flow_id": flow["id"],
                        "prompt_id": prompt["id"],
                        "step_title": title,
                        "order_index": i,
                    },
                )
            )
        return flow, rows

    return _make


@pytest.fixture
def prompt_executor(mock_db, providers, settings) -> PromptExecutor:
    return PromptExecutor(mock_db, providers, ApiKeyStore(mock_db), settings)


@pytest.fixture
def flow_executor(mock_db, providers, settings) -> FlowExecutor:
    return FlowExecutor(mock_db, providers, ApiKeyStore(mock_db), settings)


@pytest.fixture
def make_call():
    """Factory for InboundCall; dict bodies are JSON-encoded."""

    def _make(
        body: Any,
        authorization: str | None = f"Bearer {CALLER_KEY}",
        endpoint: str = "http://testserver/run-prompt-api",
    ) -> InboundCall:
        raw = json.dumps(body) if isinstance(body, (dict, list)) else body
        return InboundCall(
            meta=CallMetadata(endpoint=endpoint, ip_address="203.0.113.9", user_agent="pytest"),
            authorization=authorization,
            body=raw,
        )

    return _make


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID


@pytest.fixture
def app(mock_db, providers, settings):
    """FastAPI test app with mocked dependencies."""
    from promptbyme.core.api_keys import get_api_key_store
    from promptbyme.core.audit import get_audit_logger
    from promptbyme.core.executor import get_prompt_executor
    from promptbyme.core.flow_executor import get_flow_executor
    from promptbyme.core.flows import FlowService, get_flow_service
    from promptbyme.core.folders import FolderService, get_folder_service
    from promptbyme.core.prompts import PromptService, get_prompt_service
    from promptbyme.db.client import get_supabase_client
    from promptbyme.main import app as _app

    api_keys = ApiKeyStore(mock_db)
    prompt_exec = PromptExecutor(mock_db, providers, api_keys, settings)
    flow_exec = FlowExecutor(mock_db, providers, api_keys, settings)
    audit = ApiCallLogger(mock_db)

    _app.dependency_overrides[get_supabase_client] = lambda: mock_db
    _app.dependency_overrides[get_api_key_store] = lambda: api_keys
    _app.dependency_overrides[get_prompt_executor] = lambda: prompt_exec
    _app.dependency_overrides[get_flow_executor] = lambda: flow_exec
    _app.dependency_overrides[get_audit_logger] = lambda: audit
    _app.dependency_overrides[get_prompt_service] = lambda: PromptService(mock_db)
    _app.dependency_overrides[get_folder_service] = lambda: FolderService(mock_db)
    _app.dependency_overrides[get_flow_service] = lambda: FlowService(mock_db)

    yield _app

    _app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """HTTP test client."""
    return TestClient(app)
