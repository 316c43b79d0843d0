"""Secondary-field fetcher: rate-limited batch fetch of comment counts.

Comment counts are not part of either bulk listing, so they are fetched one
record at a time. Only one side's modified timestamp moves on comment
activity (the "trusted" side); the plan below uses it to skip unchanged
records there, and re-fetches every baselined record on the other side.

Requests run in fixed-size concurrent batches with a fixed delay between
batches. A failing request is recorded as 0 and never aborts its batch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from src.changes.contracts import SecondaryCounts, Side

if TYPE_CHECKING:
    from src.config.settings import ChangeDetectionSettings
    from src.matching.contracts import Record
    from src.remote.base import RemoteSystem
    from src.store.contracts import LinkedPair, PairSnapshot, ProjectLink

logger = structlog.get_logger()


@dataclass(frozen=True)
class FetchJob:
    side: Side
    record_id: str


def modified_since(live: datetime | None, baseline: datetime | None) -> bool:
    """True when live is newer than baseline; a missing timestamp counts as modified."""
    if live is None or baseline is None:
        return True
    return live > baseline


def plan_secondary_fetch(
    pairs: Sequence[LinkedPair],
    source_records: Mapping[str, Record],
    target_records: Mapping[str, Record],
    snapshots: Mapping[str, PairSnapshot],
    *,
    trusted_side: Side = "target",
) -> list[FetchJob]:
    """Select which records need a comment-count fetch for a detection run.

    Pairs without a snapshot, or with a record missing from the fresh listing,
    need nothing: they are reported as "new" or "missing" instead.
    """
    jobs: list[FetchJob] = []
    for pair in pairs:
        if not pair.is_linked:
            continue
        snapshot = snapshots.get(pair.pair_id)
        source = source_records.get(pair.source_id)  # type: ignore[arg-type]
        target = target_records.get(pair.target_id)  # type: ignore[arg-type]
        if snapshot is None or source is None or target is None:
            continue

        for side, live, baseline in (
            ("source", source, snapshot.source),
            ("target", target, snapshot.target),
        ):
            if side == trusted_side:
                needed = modified_since(live.modified_at, baseline.modified_at)
            else:
                needed = baseline.comment_count is not None
            if needed:
                jobs.append(FetchJob(side=side, record_id=live.record_id))  # type: ignore[arg-type]
    return jobs


def snapshot_jobs(pairs: Sequence[LinkedPair]) -> list[FetchJob]:
    """Every linked record on both sides (used when taking snapshots)."""
    jobs: list[FetchJob] = []
    for pair in pairs:
        if not pair.is_linked:
            continue
        jobs.append(FetchJob(side="source", record_id=pair.source_id))  # type: ignore[arg-type]
        jobs.append(FetchJob(side="target", record_id=pair.target_id))  # type: ignore[arg-type]
    return jobs


class SecondaryFieldFetcher:
    """Fetch comment counts in paced batches from both remote systems."""

    def __init__(
        self,
        source: RemoteSystem,
        target: RemoteSystem,
        *,
        batch_size: int = 3,
        batch_delay_s: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        self._systems: dict[Side, RemoteSystem] = {"source": source, "target": target}
        self._batch_size = batch_size
        self._batch_delay_s = batch_delay_s
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        source: RemoteSystem,
        target: RemoteSystem,
        settings: ChangeDetectionSettings,
    ) -> SecondaryFieldFetcher:
        return cls(
            source,
            target,
            batch_size=settings.batch_size,
            batch_delay_s=settings.batch_delay_s,
        )

    async def fetch(self, project: ProjectLink, jobs: Sequence[FetchJob]) -> SecondaryCounts:
        """Run jobs batch by batch; results within a batch are unordered."""
        counts = SecondaryCounts()
        unique = list(dict.fromkeys(jobs))
        if not unique:
            return counts

        containers: dict[Side, str] = {
            "source": project.source_container_id,
            "target": project.target_container_id,
        }
        failures = 0
        for start in range(0, len(unique), self._batch_size):
            if start > 0:
                await self._sleep(self._batch_delay_s)
            batch = unique[start : start + self._batch_size]
            results = await asyncio.gather(
                *(self._count(job, containers[job.side]) for job in batch)
            )
            for job, (count, ok) in zip(batch, results, strict=True):
                counts.for_side(job.side)[job.record_id] = count
                failures += 0 if ok else 1

        logger.info(
            "secondary_fetch_complete",
            project_id=project.project_id,
            requests=len(unique),
            batches=-(-len(unique) // self._batch_size),
            failures=failures,
        )
        return counts

    async def _count(self, job: FetchJob, container_id: str) -> tuple[int, bool]:
        system = self._systems[job.side]
        try:
            items = await system.list_secondary(container_id, job.record_id)
        except Exception as e:  # noqa: BLE001
            logger.warning(
                "secondary_fetch_failed",
                system=system.name,
                record_id=job.record_id,
                error=str(e),
            )
            return 0, False
        return len(items), True
