"""Change-detection engine: diff live remote state against stored snapshots.

Per linked pair:
    NO_SNAPSHOT -> SNAPSHOTTED -> (DRIFTED | IN_SYNC)

A pair without a snapshot yields one synthetic "new" change. A pair whose
record is absent from either fresh listing is counted as missing and skipped;
absence is not treated as deletion.

Every pair that drifted gets its snapshot overwritten once the whole pass is
done, so a second run without remote edits reports nothing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from src.changes.contracts import (
    NEW_FIELD,
    ChangeRecord,
    ChangeReport,
    PairState,
    SecondaryCounts,
    Side,
    SnapshotResult,
)
from src.changes.fetcher import SecondaryFieldFetcher, plan_secondary_fetch, snapshot_jobs
from src.remote.base import fetch_records_safe
from src.store.contracts import PairSnapshot, SideSnapshot

if TYPE_CHECKING:
    from src.config.settings import ChangeDetectionSettings
    from src.matching.contracts import Record
    from src.remote.base import RemoteSystem
    from src.store.contracts import ChangeLog, LinkedPair, ProjectLink, SnapshotStore

logger = structlog.get_logger()

NEW_PAIR_MESSAGE = "New linked task - take a snapshot to start tracking"


@dataclass(frozen=True)
class _Live:
    pair: LinkedPair
    source: Record
    target: Record


def _utcnow() -> datetime:
    return datetime.now(UTC)


def preview(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def side_status(side: Side, record: Record) -> str | bool | None:
    """State label on the source side, completion flag on the target side."""
    if side == "source":
        return record.state
    return bool(record.completed)


def capture_side(
    side: Side, record: Record, comment_count: int | None
) -> SideSnapshot:
    return SideSnapshot(
        name=record.name,
        description=record.description or "",
        status=side_status(side, record),
        modified_at=record.modified_at,
        comment_count=comment_count,
    )


class ChangeDetector:
    """Detect drift of linked pairs and maintain their snapshots.

    Remote systems, stores and pacing are passed in explicitly; the detector
    keeps no state between calls.
    """

    def __init__(
        self,
        source: RemoteSystem,
        target: RemoteSystem,
        snapshots: SnapshotStore,
        *,
        settings: ChangeDetectionSettings,
        change_log: ChangeLog | None = None,
        fetcher: SecondaryFieldFetcher | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._target = target
        self._snapshots = snapshots
        self._settings = settings
        self._change_log = change_log
        self._fetcher = fetcher or SecondaryFieldFetcher.from_settings(source, target, settings)
        self._clock = clock

    async def detect_changes(
        self, project: ProjectLink, pairs: Sequence[LinkedPair]
    ) -> ChangeReport:
        """Compare live records with snapshots, log drift, refresh drifted snapshots."""
        report = ChangeReport()
        linked = [pair for pair in pairs if pair.is_linked]
        report.summary.total_linked = len(linked)
        if not linked:
            return report

        source_by_id, target_by_id = await self._list_both(project)
        snapshots = await self._snapshots.get_many([pair.pair_id for pair in linked])

        jobs = plan_secondary_fetch(
            linked,
            source_by_id,
            target_by_id,
            snapshots,
            trusted_side=self._settings.trusted_modified_side,
        )
        counts = await self._fetcher.fetch(project, jobs)

        detected_at = self._clock()
        refreshed: dict[str, PairSnapshot] = {}

        for pair in linked:
            live = self._resolve(pair, source_by_id, target_by_id)
            if live is None:
                report.pair_states[pair.pair_id] = PairState.MISSING
                report.summary.missing += 1
                continue

            snapshot = snapshots.get(pair.pair_id)
            if snapshot is None:
                report.source_changes.append(
                    ChangeRecord(
                        pair_id=pair.pair_id,
                        source_name=live.source.name,
                        target_name=live.target.name,
                        side="source",
                        field=NEW_FIELD,
                        old_value=None,
                        new_value=NEW_PAIR_MESSAGE,
                        changed_at=detected_at,
                        detected_at=detected_at,
                    )
                )
                report.pair_states[pair.pair_id] = PairState.NO_SNAPSHOT
                continue

            source_changes = self._diff_side(
                "source", live, snapshot.source, counts, detected_at
            )
            target_changes = self._diff_side(
                "target", live, snapshot.target, counts, detected_at
            )
            report.source_changes.extend(source_changes)
            report.target_changes.extend(target_changes)

            if source_changes or target_changes:
                report.pair_states[pair.pair_id] = PairState.DRIFTED
                refreshed[pair.pair_id] = self._refresh(live, snapshot, counts, detected_at)
            else:
                report.pair_states[pair.pair_id] = PairState.IN_SYNC

        # Persist only after the full pass: an abandoned run leaves no partial writes.
        for pair_id, new_snapshot in refreshed.items():
            await self._snapshots.upsert(pair_id, new_snapshot)

        logged = [c for c in report.changes if c.field != NEW_FIELD]
        if self._change_log is not None and logged:
            await self._change_log.append(project.project_id, logged)

        report.summary.source_changes = len(report.source_changes)
        report.summary.target_changes = len(report.target_changes)
        report.summary.snapshots_updated = len(refreshed)

        logger.info(
            "changes_detected",
            project_id=project.project_id,
            linked=report.summary.total_linked,
            source_changes=report.summary.source_changes,
            target_changes=report.summary.target_changes,
            missing=report.summary.missing,
            snapshots_updated=report.summary.snapshots_updated,
        )
        return report

    async def take_snapshot(
        self, project: ProjectLink, pairs: Sequence[LinkedPair]
    ) -> SnapshotResult:
        """Capture current state (comment counts included) for every linked pair."""
        result = SnapshotResult()
        linked = [pair for pair in pairs if pair.is_linked]
        if not linked:
            return result

        source_by_id, target_by_id = await self._list_both(project)

        present: list[_Live] = []
        for pair in linked:
            live = self._resolve(pair, source_by_id, target_by_id)
            if live is None:
                result.missing_count += 1
            else:
                present.append(live)

        counts = await self._fetcher.fetch(project, snapshot_jobs([live.pair for live in present]))
        taken_at = self._clock()

        for live in present:
            snapshot = PairSnapshot(
                source=capture_side(
                    "source", live.source, counts.source.get(live.source.record_id, 0)
                ),
                target=capture_side(
                    "target", live.target, counts.target.get(live.target.record_id, 0)
                ),
                taken_at=taken_at,
            )
            await self._snapshots.upsert(live.pair.pair_id, snapshot)
            result.snapshot_count += 1

        logger.info(
            "snapshots_taken",
            project_id=project.project_id,
            snapshots=result.snapshot_count,
            missing=result.missing_count,
        )
        return result

    async def _list_both(
        self, project: ProjectLink
    ) -> tuple[dict[str, Record], dict[str, Record]]:
        source_records, target_records = await asyncio.gather(
            fetch_records_safe(self._source, project.source_container_id),
            fetch_records_safe(self._target, project.target_container_id),
        )
        return (
            {record.record_id: record for record in source_records},
            {record.record_id: record for record in target_records},
        )

    @staticmethod
    def _resolve(
        pair: LinkedPair,
        source_by_id: dict[str, Record],
        target_by_id: dict[str, Record],
    ) -> _Live | None:
        source = source_by_id.get(pair.source_id)  # type: ignore[arg-type]
        target = target_by_id.get(pair.target_id)  # type: ignore[arg-type]
        if source is None or target is None:
            return None
        return _Live(pair=pair, source=source, target=target)

    def _diff_side(
        self,
        side: Side,
        live: _Live,
        baseline: SideSnapshot,
        counts: SecondaryCounts,
        detected_at: datetime,
    ) -> list[ChangeRecord]:
        record = live.source if side == "source" else live.target
        limit = self._settings.description_preview_chars
        diffs: list[tuple[str, str | None, str | None]] = []

        if baseline.name != record.name:
            diffs.append(("name", baseline.name, record.name))

        old_desc = baseline.description or ""
        new_desc = record.description or ""
        if old_desc != new_desc:
            diffs.append(("description", preview(old_desc, limit), preview(new_desc, limit)))

        current_status = side_status(side, record)
        if side == "source":
            if baseline.status != current_status:
                diffs.append(("state", _str_or_none(baseline.status), _str_or_none(current_status)))
        elif bool(baseline.status) != current_status:
            diffs.append(
                ("completed", _completion_label(baseline.status), _completion_label(current_status))
            )

        current_comments = counts.for_side(side).get(record.record_id)
        if (
            current_comments is not None
            and baseline.comment_count is not None
            and baseline.comment_count != current_comments
        ):
            diffs.append(
                (
                    "comments",
                    f"{baseline.comment_count} comments",
                    f"{current_comments} comments",
                )
            )

        return [
            ChangeRecord(
                pair_id=live.pair.pair_id,
                source_name=live.source.name,
                target_name=live.target.name,
                side=side,
                field=field_name,
                old_value=old,
                new_value=new,
                changed_at=record.modified_at,
                detected_at=detected_at,
            )
            for field_name, old, new in diffs
        ]

    @staticmethod
    def _refresh(
        live: _Live,
        snapshot: PairSnapshot,
        counts: SecondaryCounts,
        taken_at: datetime,
    ) -> PairSnapshot:
        source_count = counts.source.get(live.source.record_id, snapshot.source.comment_count)
        target_count = counts.target.get(live.target.record_id, snapshot.target.comment_count)
        return PairSnapshot(
            source=capture_side("source", live.source, source_count),
            target=capture_side("target", live.target, target_count),
            taken_at=taken_at,
        )


def _str_or_none(value: str | bool | None) -> str | None:
    return None if value is None else str(value)


def _completion_label(value: str | bool | None) -> str:
    return "Completed" if value else "Open"
