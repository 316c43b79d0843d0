"""Matching-side shared contract types.

Records are transient copies of remote rows, held for one reconciliation pass.
Remote clients map their payloads into Record at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

MatchMethod = Literal["exact", "fuzzy", "description"]


@dataclass(frozen=True)
class Record:
    """One unit of work as listed by a remote system."""

    record_id: str
    name: str
    description: str = ""
    state: str | None = None  # workflow state label (source side)
    completed: bool | None = None  # completion flag (target side)
    modified_at: datetime | None = None


@dataclass(frozen=True)
class MatchCandidate:
    """A proposed target for some source record, not yet accepted."""

    target_id: str
    target_name: str
    confidence: float
    method: MatchMethod
    reason: str


@dataclass(frozen=True)
class SuggestedMatch:
    """A candidate bound to a specific source record.

    Unit accepted or rejected by a human or by bulk-apply.
    """

    source_id: str
    source_name: str
    target_id: str
    target_name: str
    confidence: float
    method: MatchMethod
    reason: str

    @classmethod
    def from_candidate(cls, source: Record, candidate: MatchCandidate) -> SuggestedMatch:
        return cls(
            source_id=source.record_id,
            source_name=source.name,
            target_id=candidate.target_id,
            target_name=candidate.target_name,
            confidence=candidate.confidence,
            method=candidate.method,
            reason=candidate.reason,
        )
