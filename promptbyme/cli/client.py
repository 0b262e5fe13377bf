"""API client for the promptbyme REST API."""

from __future__ import annotations

from typing import Any

import httpx


class PromptByMeClient:
    """HTTP client wrapping the execution and management endpoints."""

    def __init__(
        self, base_url: str = "http://localhost:8400", api_key: str | None = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(base_url=self.base_url, headers=headers, timeout=120)

    def _handle(self, resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            try:
                body = resp.json()
                detail = body.get("error") or body.get("detail") or resp.text
            except ValueError:
                detail = resp.text
            raise RuntimeError(f"API error ({resp.status_code}): {detail}")
        if resp.status_code == 204:
            return None
        return resp.json()

    # --- Execution ---

    def run_prompt(self, data: dict[str, Any]) -> dict:
        return self._handle(self._client.post("/run-prompt-api", json=data))

    def run_flow(self, data: dict[str, Any]) -> dict:
        return self._handle(self._client.post("/run-prompt-flow-api", json=data))

    # --- Prompts ---

    def list_prompts(self, **params: Any) -> list[dict]:
        return self._handle(self._client.get("/api/v1/prompts", params=params))

    def get_prompt(self, prompt_id: str, password: str | None = None) -> dict:
        headers = {"X-Prompt-Password": password} if password else None
        return self._handle(self._client.get(f"/api/v1/prompts/{prompt_id}", headers=headers))

    def create_prompt(self, data: dict[str, Any]) -> dict:
        return self._handle(self._client.post("/api/v1/prompts", json=data))

    def fork_prompt(
        self, prompt_id: str, title: str | None = None, password: str | None = None
    ) -> dict:
        return self._handle(
            self._client.post(
                f"/api/v1/prompts/{prompt_id}/fork", json={"title": title, "password": password}
            )
        )

    # --- Versions ---

    def commit_version(self, prompt_id: str, data: dict[str, Any]) -> dict:
        return self._handle(self._client.post(f"/api/v1/prompts/{prompt_id}/versions", json=data))

    def list_versions(self, prompt_id: str) -> list[dict]:
        return self._handle(self._client.get(f"/api/v1/prompts/{prompt_id}/versions"))

    def diff_versions(self, prompt_id: str, v1: int, v2: int) -> dict:
        return self._handle(
            self._client.get(f"/api/v1/prompts/{prompt_id}/diff", params={"from": v1, "to": v2})
        )

    def revert(self, prompt_id: str, version: int) -> dict:
        return self._handle(
            self._client.post(
                f"/api/v1/prompts/{prompt_id}/revert", json={"version_number": version}
            )
        )

    # --- Flows ---

    def list_flows(self) -> list[dict]:
        return self._handle(self._client.get("/api/v1/flows"))

    def get_flow(self, flow_id: str) -> dict:
        return self._handle(self._client.get(f"/api/v1/flows/{flow_id}"))

    # --- Logs / keys ---

    def list_logs(self, **params: Any) -> list[dict]:
        return self._handle(self._client.get("/api/v1/logs", params=params))

    def rotate_key(self) -> dict:
        return self._handle(self._client.post("/api/v1/api-key/rotate"))
