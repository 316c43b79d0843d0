"""Asana client (target system): project/section tasks and comment stories."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from src.infra.errors import RemoteFetchError
from src.matching.contracts import Record
from src.remote.base import JsonApiClient
from src.remote.plane import parse_timestamp

if TYPE_CHECKING:
    from src.config.settings import AsanaSettings, HttpSettings

_TASK_FIELDS = "gid,name,notes,completed,modified_at"
_STORY_FIELDS = "gid,type,text,created_at"


def task_to_record(task: dict[str, Any]) -> Record:
    if not isinstance(task, dict) or task.get("gid") is None:
        raise RemoteFetchError("asana task without a gid", system="asana")
    return Record(
        record_id=str(task["gid"]),
        name=task.get("name") or "",
        description=task.get("notes") or "",
        completed=bool(task.get("completed", False)),
        modified_at=parse_timestamp(task.get("modified_at")),
    )


class AsanaClient(JsonApiClient):
    """Task listing for Asana projects, optionally narrowed to one section."""

    name = "asana"

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        section_id: str | None = None,
        page_size: int = 100,
    ) -> None:
        super().__init__(http)
        self._section_id = section_id
        self._page_size = page_size

    @classmethod
    def from_settings(
        cls, settings: AsanaSettings, http: HttpSettings, *, section_id: str | None = None
    ) -> AsanaClient:
        client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {settings.access_token}"},
            timeout=http.timeout_s,
        )
        return cls(client, section_id=section_id, page_size=settings.page_size)

    async def list_records(self, container_id: str) -> list[Record]:
        """All tasks of a project (or of the configured section)."""
        path = (
            f"/sections/{self._section_id}/tasks"
            if self._section_id
            else f"/projects/{container_id}/tasks"
        )
        records: list[Record] = []
        offset: str | None = None
        while True:
            params: dict[str, Any] = {"opt_fields": _TASK_FIELDS, "limit": self._page_size}
            if offset:
                params["offset"] = offset
            data = await self._request("GET", path, params=params)
            records.extend(task_to_record(task) for task in data.get("data", []))
            next_page = data.get("next_page") or {}
            offset = next_page.get("offset")
            if not offset:
                return records

    async def list_secondary(self, container_id: str, record_id: str) -> list[dict[str, Any]]:
        """Comment stories of one task (system stories are dropped)."""
        data = await self._request(
            "GET", f"/tasks/{record_id}/stories", params={"opt_fields": _STORY_FIELDS}
        )
        return [story for story in data.get("data", []) if story.get("type") == "comment"]
