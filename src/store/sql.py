"""PostgreSQL implementations of the snapshot store, change log and link repository."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert

from src.changes.contracts import ChangeRecord
from src.store.contracts import (
    ChangeHistoryPage,
    LinkedPair,
    LinkHistoryEntry,
    PairSnapshot,
    ProjectLink,
    SideSnapshot,
)
from src.store.models import (
    ChangeLogRecord,
    LinkHistoryRecord,
    ProjectLinkRecord,
    TaskLinkRecord,
    TaskSnapshotRecord,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()


def _snapshot_from_row(row: TaskSnapshotRecord) -> PairSnapshot:
    return PairSnapshot(
        source=SideSnapshot(
            name=row.source_name,
            description=row.source_description or "",
            status=row.source_state,
            modified_at=row.source_modified_at,
            comment_count=row.source_comments_count,
        ),
        target=SideSnapshot(
            name=row.target_name,
            description=row.target_description or "",
            status=row.target_completed,
            modified_at=row.target_modified_at,
            comment_count=row.target_comments_count,
        ),
        taken_at=row.taken_at,
    )


def _snapshot_values(snapshot: PairSnapshot) -> dict:
    target_status = snapshot.target.status
    return {
        "source_name": snapshot.source.name,
        "source_description": snapshot.source.description,
        "source_state": None if snapshot.source.status is None else str(snapshot.source.status),
        "source_modified_at": snapshot.source.modified_at,
        "source_comments_count": snapshot.source.comment_count,
        "target_name": snapshot.target.name,
        "target_description": snapshot.target.description,
        "target_completed": None if target_status is None else bool(target_status),
        "target_modified_at": snapshot.target.modified_at,
        "target_comments_count": snapshot.target.comment_count,
        "taken_at": snapshot.taken_at,
    }


def _pair_from_row(row: TaskLinkRecord) -> LinkedPair:
    return LinkedPair(
        pair_id=row.id,
        project_id=row.project_id,
        source_id=row.source_id,
        source_name=row.source_name,
        target_id=row.target_id,
        target_name=row.target_name,
        match_method=row.match_method,  # type: ignore[arg-type]
        confidence=row.match_confidence,
        sync_status=row.sync_status,  # type: ignore[arg-type]
        last_synced_at=row.last_synced_at,
    )


def _change_from_row(row: ChangeLogRecord) -> ChangeRecord:
    return ChangeRecord(
        pair_id=row.task_link_id or "",
        source_name=row.source_name,
        target_name=row.target_name,
        side=row.side,  # type: ignore[arg-type]
        field=row.field,
        old_value=row.old_value,
        new_value=row.new_value,
        changed_at=row.changed_at,
        detected_at=row.detected_at,
    )


class SqlSnapshotStore:
    """task_snapshots table, one row per linked pair."""

    def __init__(self, db_session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._db_factory = db_session_factory

    async def get(self, pair_id: str) -> PairSnapshot | None:
        async with self._db_factory() as db:
            row = await db.scalar(
                select(TaskSnapshotRecord).where(TaskSnapshotRecord.task_link_id == pair_id)
            )
            return _snapshot_from_row(row) if row is not None else None

    async def get_many(self, pair_ids: list[str]) -> dict[str, PairSnapshot]:
        if not pair_ids:
            return {}
        async with self._db_factory() as db:
            rows = await db.scalars(
                select(TaskSnapshotRecord).where(TaskSnapshotRecord.task_link_id.in_(pair_ids))
            )
            return {row.task_link_id: _snapshot_from_row(row) for row in rows}

    async def upsert(self, pair_id: str, snapshot: PairSnapshot) -> None:
        values = _snapshot_values(snapshot)
        stmt = insert(TaskSnapshotRecord).values(task_link_id=pair_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TaskSnapshotRecord.task_link_id],
            set_=values,
        )
        async with self._db_factory() as db:
            await db.execute(stmt)
            await db.commit()


class SqlChangeLog:
    """change_log table: append, page through, clear per project."""

    def __init__(self, db_session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._db_factory = db_session_factory

    async def append(self, project_id: str, records: list[ChangeRecord]) -> int:
        if not records:
            return 0
        async with self._db_factory() as db:
            for record in records:
                db.add(
                    ChangeLogRecord(
                        project_id=project_id,
                        task_link_id=record.pair_id,
                        source_name=record.source_name,
                        target_name=record.target_name,
                        side=record.side,
                        field=record.field,
                        old_value=record.old_value,
                        new_value=record.new_value,
                        changed_at=record.changed_at,
                        detected_at=record.detected_at,
                    )
                )
            await db.commit()
        logger.info("change_log_appended", project_id=project_id, entries=len(records))
        return len(records)

    async def history(
        self, project_id: str, *, limit: int = 100, offset: int = 0
    ) -> ChangeHistoryPage:
        """Newest first."""
        async with self._db_factory() as db:
            total = await db.scalar(
                select(func.count())
                .select_from(ChangeLogRecord)
                .where(ChangeLogRecord.project_id == project_id)
            )
            rows = await db.scalars(
                select(ChangeLogRecord)
                .where(ChangeLogRecord.project_id == project_id)
                .order_by(ChangeLogRecord.detected_at.desc(), ChangeLogRecord.id.desc())
                .limit(limit)
                .offset(offset)
            )
            changes = [_change_from_row(row) for row in rows]
        return ChangeHistoryPage(changes=changes, total=total or 0, limit=limit, offset=offset)

    async def clear(self, project_id: str) -> int:
        async with self._db_factory() as db:
            result = await db.execute(
                delete(ChangeLogRecord).where(ChangeLogRecord.project_id == project_id)
            )
            await db.commit()
        logger.info("change_log_cleared", project_id=project_id, deleted=result.rowcount)
        return result.rowcount or 0


class SqlLinkRepository:
    """project_links / task_links / link_history tables."""

    def __init__(self, db_session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._db_factory = db_session_factory

    async def create_project(self, project: ProjectLink) -> ProjectLink:
        async with self._db_factory() as db:
            db.add(
                ProjectLinkRecord(
                    id=project.project_id,
                    source_container_id=project.source_container_id,
                    source_container_name=project.source_container_name,
                    target_container_id=project.target_container_id,
                    target_container_name=project.target_container_name,
                    target_section_id=project.target_section_id,
                )
            )
            await db.commit()
        return project

    async def get_project(self, project_id: str) -> ProjectLink | None:
        async with self._db_factory() as db:
            row = await db.get(ProjectLinkRecord, project_id)
            if row is None:
                return None
            return ProjectLink(
                project_id=row.id,
                source_container_id=row.source_container_id,
                target_container_id=row.target_container_id,
                source_container_name=row.source_container_name,
                target_container_name=row.target_container_name,
                target_section_id=row.target_section_id,
            )

    async def list_pairs(self, project_id: str) -> list[LinkedPair]:
        async with self._db_factory() as db:
            rows = await db.scalars(
                select(TaskLinkRecord)
                .where(TaskLinkRecord.project_id == project_id)
                .order_by(TaskLinkRecord.created_at, TaskLinkRecord.id)
            )
            return [_pair_from_row(row) for row in rows]

    async def find_by_source(self, source_id: str) -> LinkedPair | None:
        async with self._db_factory() as db:
            row = await db.scalar(
                select(TaskLinkRecord).where(TaskLinkRecord.source_id == source_id)
            )
            return _pair_from_row(row) if row is not None else None

    async def find_by_target(self, target_id: str) -> LinkedPair | None:
        async with self._db_factory() as db:
            row = await db.scalar(
                select(TaskLinkRecord).where(TaskLinkRecord.target_id == target_id)
            )
            return _pair_from_row(row) if row is not None else None

    async def create_pair(self, pair: LinkedPair) -> LinkedPair:
        if not pair.pair_id:
            pair.pair_id = uuid.uuid4().hex
        async with self._db_factory() as db:
            db.add(
                TaskLinkRecord(
                    id=pair.pair_id,
                    project_id=pair.project_id,
                    source_id=pair.source_id,
                    source_name=pair.source_name,
                    target_id=pair.target_id,
                    target_name=pair.target_name,
                    match_method=pair.match_method,
                    match_confidence=pair.confidence,
                    sync_status=pair.sync_status,
                    last_synced_at=pair.last_synced_at,
                )
            )
            await db.commit()
        return pair

    async def save_pair(self, pair: LinkedPair) -> LinkedPair:
        async with self._db_factory() as db:
            row = await db.get(TaskLinkRecord, pair.pair_id)
            if row is None:
                raise LookupError(f"task link {pair.pair_id} does not exist")
            row.source_id = pair.source_id
            row.source_name = pair.source_name
            row.target_id = pair.target_id
            row.target_name = pair.target_name
            row.match_method = pair.match_method
            row.match_confidence = pair.confidence
            row.sync_status = pair.sync_status
            row.last_synced_at = pair.last_synced_at
            await db.commit()
        return pair

    async def delete_pair(self, pair_id: str) -> None:
        async with self._db_factory() as db:
            await db.execute(delete(TaskLinkRecord).where(TaskLinkRecord.id == pair_id))
            await db.commit()

    async def add_history(self, entry: LinkHistoryEntry) -> None:
        async with self._db_factory() as db:
            db.add(
                LinkHistoryRecord(
                    task_link_id=entry.pair_id,
                    action=entry.action,
                    details=entry.details,
                    created_at=entry.created_at,
                )
            )
            await db.commit()
