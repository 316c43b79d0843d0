"""Change detection: snapshot diffing with rate-limited secondary fetches."""

from src.changes.contracts import (
    ChangeRecord,
    ChangeReport,
    ChangeSummary,
    PairState,
    SecondaryCounts,
    SnapshotResult,
)
from src.changes.detector import ChangeDetector
from src.changes.fetcher import FetchJob, SecondaryFieldFetcher, plan_secondary_fetch

__all__ = [
    "ChangeDetector",
    "ChangeRecord",
    "ChangeReport",
    "ChangeSummary",
    "FetchJob",
    "PairState",
    "SecondaryCounts",
    "SecondaryFieldFetcher",
    "SnapshotResult",
    "plan_secondary_fetch",
]
