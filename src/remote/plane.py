"""Plane client (source system): work items and their comments."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import httpx

from src.infra.errors import RemoteFetchError
from src.matching.contracts import Record
from src.matching.text import strip_html
from src.remote.base import JsonApiClient

if TYPE_CHECKING:
    from src.config.settings import HttpSettings, PlaneSettings

_PAGE_SIZE = 100


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def issue_to_record(issue: dict[str, Any]) -> Record:
    if not isinstance(issue, dict) or issue.get("id") is None:
        raise RemoteFetchError("plane work item without an id", system="plane")
    state = issue.get("state_detail") or {}
    return Record(
        record_id=str(issue["id"]),
        name=issue.get("name") or "",
        description=strip_html(issue.get("description_html")),
        state=state.get("name") if isinstance(state, dict) else None,
        modified_at=parse_timestamp(issue.get("updated_at")),
    )


class PlaneClient(JsonApiClient):
    """Work-item listing for one Plane workspace."""

    name = "plane"

    def __init__(self, http: httpx.AsyncClient, workspace_slug: str) -> None:
        super().__init__(http)
        self._workspace = workspace_slug

    @classmethod
    def from_settings(cls, settings: PlaneSettings, http: HttpSettings) -> PlaneClient:
        client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={"x-api-key": settings.api_key, "Content-Type": "application/json"},
            timeout=http.timeout_s,
        )
        return cls(client, settings.workspace_slug)

    def _path(self, endpoint: str) -> str:
        return f"/workspaces/{self._workspace}{endpoint}"

    async def list_records(self, container_id: str) -> list[Record]:
        """All work items of a project, states expanded."""
        records: list[Record] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"expand": "state", "per_page": _PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor
            data = await self._request(
                "GET", self._path(f"/projects/{container_id}/work-items/"), params=params
            )
            records.extend(issue_to_record(issue) for issue in data.get("results", []))
            cursor = data.get("next_cursor")
            if not data.get("next_page_results") or not cursor:
                return records

    async def list_secondary(self, container_id: str, record_id: str) -> list[dict[str, Any]]:
        """Comments of one work item."""
        data = await self._request(
            "GET", self._path(f"/projects/{container_id}/work-items/{record_id}/comments/")
        )
        return list(data.get("results", []))
