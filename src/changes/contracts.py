"""Change-detection DTOs: change records, per-pair states and run reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Literal

Side = Literal["source", "target"]

NEW_FIELD = "new"


class PairState(StrEnum):
    """Per-pair outcome of one detection run."""

    NO_SNAPSHOT = "no_snapshot"
    IN_SYNC = "in_sync"
    DRIFTED = "drifted"
    MISSING = "missing"


@dataclass(frozen=True)
class ChangeRecord:
    """One detected field divergence. Append-only once logged."""

    pair_id: str
    source_name: str | None
    target_name: str | None
    side: Side
    field: str
    old_value: str | None
    new_value: str | None
    changed_at: datetime | None  # edit time reported by the remote side
    detected_at: datetime


@dataclass
class SecondaryCounts:
    """Comment counts keyed by record id, one mapping per side."""

    source: dict[str, int] = field(default_factory=dict)
    target: dict[str, int] = field(default_factory=dict)

    def for_side(self, side: Side) -> dict[str, int]:
        return self.source if side == "source" else self.target


@dataclass
class ChangeSummary:
    source_changes: int = 0
    target_changes: int = 0
    total_linked: int = 0
    missing: int = 0
    snapshots_updated: int = 0


@dataclass
class ChangeReport:
    """Result of detect_changes()."""

    source_changes: list[ChangeRecord] = field(default_factory=list)
    target_changes: list[ChangeRecord] = field(default_factory=list)
    pair_states: dict[str, PairState] = field(default_factory=dict)
    summary: ChangeSummary = field(default_factory=ChangeSummary)

    @property
    def changes(self) -> list[ChangeRecord]:
        return [*self.source_changes, *self.target_changes]


@dataclass
class SnapshotResult:
    """Result of take_snapshot()."""

    snapshot_count: int = 0
    missing_count: int = 0

    @property
    def message(self) -> str:
        text = f"Created/updated {self.snapshot_count} snapshots"
        if self.missing_count:
            text += f" ({self.missing_count} tasks no longer exist)"
        return text
