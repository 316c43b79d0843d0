"""Remote system contract plus the shared httpx request helper.

The core treats both task systems as black boxes exposing a bulk listing and
a per-record secondary listing (comments). Listing failures are degraded to
an empty list at the boundary so reconciliation still yields partial results.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog

from src.infra.errors import RemoteFetchError
from src.matching.contracts import Record

logger = structlog.get_logger()


class RemoteSystem(Protocol):
    name: str

    async def list_records(self, container_id: str) -> list[Record]:
        ...

    async def list_secondary(self, container_id: str, record_id: str) -> list[dict[str, Any]]:
        ...


async def fetch_records_safe(system: RemoteSystem, container_id: str) -> list[Record]:
    """Bulk-list records, returning [] on any remote failure."""
    try:
        return await system.list_records(container_id)
    except RemoteFetchError as e:
        logger.warning(
            "remote_list_failed",
            system=system.name,
            container_id=container_id,
            status_code=e.status_code,
            error=str(e),
        )
        return []


class JsonApiClient:
    """Thin async JSON request wrapper shared by the concrete clients."""

    name = "remote"

    def __init__(self, http: httpx.AsyncClient) -> None:
        self._http = http

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteFetchError(
                f"{self.name} request failed: {e}", system=self.name
            ) from e
        if resp.is_error:
            raise RemoteFetchError(
                f"{self.name} API error: {resp.status_code} - {resp.text[:200]}",
                system=self.name,
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as e:
            raise RemoteFetchError(
                f"{self.name} returned a non-JSON body: {resp.text[:200]}",
                system=self.name,
                status_code=resp.status_code,
            ) from e
        if not isinstance(payload, dict):
            raise RemoteFetchError(
                f"{self.name} returned {type(payload).__name__}, expected a JSON object",
                system=self.name,
                status_code=resp.status_code,
            )
        return payload

    async def aclose(self) -> None:
        await self._http.aclose()
