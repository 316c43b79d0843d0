"""Link service: turn accepted suggestions and manual links into linked pairs.

Conflicts are checked here, at acceptance time, not when suggestions are
produced: suggestions may have gone stale since they were computed.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

import structlog

from src.infra.errors import LinkConflictError, LinkValidationError
from src.store.contracts import LinkedPair, LinkHistoryEntry

if TYPE_CHECKING:
    from src.matching.contracts import SuggestedMatch
    from src.store.contracts import LinkMethod, LinkRepository

logger = structlog.get_logger()

ALREADY_LINKED = "Already linked"


@dataclass(frozen=True)
class AcceptResult:
    suggestion: SuggestedMatch
    status: Literal["linked", "skipped"]
    pair_id: str | None = None
    reason: str | None = None


@dataclass
class AcceptSummary:
    results: list[AcceptResult]

    @property
    def linked(self) -> int:
        return sum(1 for r in self.results if r.status == "linked")

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == "skipped")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LinkService:
    def __init__(
        self,
        repository: LinkRepository,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repo = repository
        self._clock = clock

    async def accept_suggestions(
        self, project_id: str, suggestions: Sequence[SuggestedMatch]
    ) -> AcceptSummary:
        """Apply suggestions in order; stale ones are skipped as already linked."""
        results: list[AcceptResult] = []
        for suggestion in suggestions:
            try:
                pair = await self._bind(
                    project_id,
                    source_id=suggestion.source_id,
                    source_name=suggestion.source_name,
                    target_id=suggestion.target_id,
                    target_name=suggestion.target_name,
                    method=suggestion.method,
                    confidence=suggestion.confidence,
                )
            except LinkConflictError as e:
                results.append(AcceptResult(suggestion=suggestion, status="skipped", reason=str(e)))
                continue

            await self._repo.add_history(
                LinkHistoryEntry(
                    pair_id=pair.pair_id,
                    action="auto_link",
                    details={
                        "matchMethod": suggestion.method,
                        "confidence": suggestion.confidence,
                        "reason": suggestion.reason,
                    },
                    created_at=self._clock(),
                )
            )
            results.append(
                AcceptResult(suggestion=suggestion, status="linked", pair_id=pair.pair_id)
            )

        summary = AcceptSummary(results=results)
        logger.info(
            "suggestions_applied",
            project_id=project_id,
            linked=summary.linked,
            skipped=summary.skipped,
        )
        return summary

    async def link(
        self,
        project_id: str,
        *,
        source_id: str,
        source_name: str,
        target_id: str,
        target_name: str,
    ) -> LinkedPair:
        """Manually link two records. Raises LinkConflictError if either is bound."""
        if not source_id or not target_id:
            raise LinkValidationError("Both source_id and target_id are required")

        pair = await self._bind(
            project_id,
            source_id=source_id,
            source_name=source_name,
            target_id=target_id,
            target_name=target_name,
            method="manual",
            confidence=1.0,
        )
        await self._repo.add_history(
            LinkHistoryEntry(
                pair_id=pair.pair_id,
                action="manual_link",
                details={
                    "sourceId": source_id,
                    "sourceName": source_name,
                    "targetId": target_id,
                    "targetName": target_name,
                },
                created_at=self._clock(),
            )
        )
        logger.info("manual_link", project_id=project_id, pair_id=pair.pair_id)
        return pair

    async def _bind(
        self,
        project_id: str,
        *,
        source_id: str,
        source_name: str,
        target_id: str,
        target_name: str,
        method: LinkMethod,
        confidence: float,
    ) -> LinkedPair:
        by_source = await self._repo.find_by_source(source_id)
        by_target = await self._repo.find_by_target(target_id)

        for held in (by_source, by_target):
            # Record ids are unique across projects, not only within one.
            if held is not None and (held.is_linked or held.project_id != project_id):
                raise LinkConflictError(ALREADY_LINKED)

        if by_source is not None:
            # Complete the source-only pair; the target-only pair becomes redundant.
            if by_target is not None:
                await self._repo.delete_pair(by_target.pair_id)
            by_source.target_id = target_id
            by_source.target_name = target_name
            pair = by_source
        elif by_target is not None:
            by_target.source_id = source_id
            by_target.source_name = source_name
            pair = by_target
        else:
            pair = LinkedPair(
                pair_id="",
                project_id=project_id,
                source_id=source_id,
                source_name=source_name,
                target_id=target_id,
                target_name=target_name,
                match_method=method,
                confidence=confidence,
                sync_status="MATCHED",
            )
            return await self._repo.create_pair(pair)

        pair.match_method = method
        pair.confidence = confidence
        pair.sync_status = "MATCHED"
        return await self._repo.save_pair(pair)
