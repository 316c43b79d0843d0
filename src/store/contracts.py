"""Persistence-side contract types and store protocols.

The core only depends on these protocols. SQL implementations live in
src.store.sql, in-memory ones in src.store.memory.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from src.changes.contracts import ChangeRecord

SyncStatus = Literal["UNMATCHED", "MATCHED"]
LinkMethod = Literal["exact", "fuzzy", "description", "manual", "import"]


@dataclass(frozen=True)
class ProjectLink:
    """A source container paired with a target container."""

    project_id: str
    source_container_id: str
    target_container_id: str
    source_container_name: str = ""
    target_container_name: str = ""
    target_section_id: str | None = None


@dataclass
class LinkedPair:
    """Durable association between a source record and a target record.

    Either side may be None while the pair is one-sided, never both.
    """

    pair_id: str
    project_id: str
    source_id: str | None = None
    source_name: str | None = None
    target_id: str | None = None
    target_name: str | None = None
    match_method: LinkMethod | None = None
    confidence: float | None = None
    sync_status: SyncStatus = "UNMATCHED"
    last_synced_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.source_id is None and self.target_id is None:
            raise ValueError(f"LinkedPair {self.pair_id} must hold at least one side")

    @property
    def is_linked(self) -> bool:
        return self.source_id is not None and self.target_id is not None


@dataclass(frozen=True)
class SideSnapshot:
    """Field values of one side as observed at snapshot time."""

    name: str | None
    description: str
    status: str | bool | None  # state label (source) or completion flag (target)
    modified_at: datetime | None
    comment_count: int | None = None  # None: no baseline recorded yet


@dataclass(frozen=True)
class PairSnapshot:
    source: SideSnapshot
    target: SideSnapshot
    taken_at: datetime


@dataclass(frozen=True)
class LinkHistoryEntry:
    pair_id: str
    action: str  # manual_link | auto_link
    details: dict[str, Any]
    created_at: datetime


@dataclass
class ChangeHistoryPage:
    changes: list[ChangeRecord] = field(default_factory=list)
    total: int = 0
    limit: int = 100
    offset: int = 0

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.changes) < self.total


class SnapshotStore(Protocol):
    """Point-in-time field capture per fully linked pair."""

    async def get(self, pair_id: str) -> PairSnapshot | None:
        ...

    async def get_many(self, pair_ids: list[str]) -> dict[str, PairSnapshot]:
        ...

    async def upsert(self, pair_id: str, snapshot: PairSnapshot) -> None:
        ...


class ChangeLog(Protocol):
    """Append-only log of detected changes."""

    async def append(self, project_id: str, records: list[ChangeRecord]) -> int:
        ...

    async def history(
        self, project_id: str, *, limit: int = 100, offset: int = 0
    ) -> ChangeHistoryPage:
        ...

    async def clear(self, project_id: str) -> int:
        ...


class LinkRepository(Protocol):
    """Linked-pair persistence used by the link service and the CLI."""

    async def get_project(self, project_id: str) -> ProjectLink | None:
        ...

    async def list_pairs(self, project_id: str) -> list[LinkedPair]:
        ...

    async def find_by_source(self, source_id: str) -> LinkedPair | None:
        """Pair holding source_id in any project; ids are unique across projects."""
        ...

    async def find_by_target(self, target_id: str) -> LinkedPair | None:
        ...

    async def create_pair(self, pair: LinkedPair) -> LinkedPair:
        ...

    async def save_pair(self, pair: LinkedPair) -> LinkedPair:
        ...

    async def delete_pair(self, pair_id: str) -> None:
        ...

    async def add_history(self, entry: LinkHistoryEntry) -> None:
        ...
