"""In-process store implementing all store protocols.

Used for dry runs and tests. Deleting a pair drops its snapshot, mirroring
the ON DELETE CASCADE of the SQL schema.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import TYPE_CHECKING

from src.store.contracts import ChangeHistoryPage, LinkedPair

if TYPE_CHECKING:
    from src.changes.contracts import ChangeRecord
    from src.store.contracts import LinkHistoryEntry, PairSnapshot, ProjectLink


class InMemoryStore:
    def __init__(self) -> None:
        self.projects: dict[str, ProjectLink] = {}
        self.pairs: dict[str, LinkedPair] = {}
        self.snapshots: dict[str, PairSnapshot] = {}
        self.change_log: dict[str, list[ChangeRecord]] = {}
        self.link_history: list[LinkHistoryEntry] = []

    # SnapshotStore

    async def get(self, pair_id: str) -> PairSnapshot | None:
        return self.snapshots.get(pair_id)

    async def get_many(self, pair_ids: list[str]) -> dict[str, PairSnapshot]:
        return {pid: self.snapshots[pid] for pid in pair_ids if pid in self.snapshots}

    async def upsert(self, pair_id: str, snapshot: PairSnapshot) -> None:
        self.snapshots[pair_id] = snapshot

    # ChangeLog

    async def append(self, project_id: str, records: list[ChangeRecord]) -> int:
        self.change_log.setdefault(project_id, []).extend(records)
        return len(records)

    async def history(
        self, project_id: str, *, limit: int = 100, offset: int = 0
    ) -> ChangeHistoryPage:
        entries = self.change_log.get(project_id, [])
        newest_first = sorted(
            enumerate(entries), key=lambda item: (item[1].detected_at, item[0]), reverse=True
        )
        page = [record for _, record in newest_first[offset : offset + limit]]
        return ChangeHistoryPage(changes=page, total=len(entries), limit=limit, offset=offset)

    async def clear(self, project_id: str) -> int:
        return len(self.change_log.pop(project_id, []))

    # LinkRepository

    async def create_project(self, project: ProjectLink) -> ProjectLink:
        self.projects[project.project_id] = project
        return project

    async def get_project(self, project_id: str) -> ProjectLink | None:
        return self.projects.get(project_id)

    async def list_pairs(self, project_id: str) -> list[LinkedPair]:
        return [replace(p) for p in self.pairs.values() if p.project_id == project_id]

    async def find_by_source(self, source_id: str) -> LinkedPair | None:
        for pair in self.pairs.values():
            if pair.source_id == source_id:
                return replace(pair)
        return None

    async def find_by_target(self, target_id: str) -> LinkedPair | None:
        for pair in self.pairs.values():
            if pair.target_id == target_id:
                return replace(pair)
        return None

    async def create_pair(self, pair: LinkedPair) -> LinkedPair:
        if not pair.pair_id:
            pair.pair_id = uuid.uuid4().hex
        self._check_unique(pair)
        self.pairs[pair.pair_id] = replace(pair)
        return pair

    async def save_pair(self, pair: LinkedPair) -> LinkedPair:
        if pair.pair_id not in self.pairs:
            raise LookupError(f"task link {pair.pair_id} does not exist")
        self._check_unique(pair)
        self.pairs[pair.pair_id] = replace(pair)
        return pair

    async def delete_pair(self, pair_id: str) -> None:
        self.pairs.pop(pair_id, None)
        self.snapshots.pop(pair_id, None)

    async def add_history(self, entry: LinkHistoryEntry) -> None:
        self.link_history.append(entry)

    def _check_unique(self, pair: LinkedPair) -> None:
        for other in self.pairs.values():
            if other.pair_id == pair.pair_id:
                continue
            if pair.source_id is not None and other.source_id == pair.source_id:
                raise ValueError(f"source id {pair.source_id} already held by {other.pair_id}")
            if pair.target_id is not None and other.target_id == pair.target_id:
                raise ValueError(f"target id {pair.target_id} already held by {other.pair_id}")
