"""Reconciler: wires remote systems, stores and engines for one project link.

Entry point used by the CLI. Every call rebuilds its lookup structures from a
fresh bulk listing; nothing is cached between calls.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from src.changes.detector import ChangeDetector
from src.infra.errors import ProjectNotFoundError
from src.links.service import LinkService
from src.matching.assignment import AutoMatcher, build_strategy
from src.matching.scorer import CandidateScorer
from src.remote.base import fetch_records_safe

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.changes.contracts import ChangeReport, SnapshotResult
    from src.config.settings import ChangeDetectionSettings, MatchingSettings
    from src.links.service import AcceptSummary
    from src.matching.assignment import AutoMatchResult
    from src.matching.contracts import MatchCandidate, Record, SuggestedMatch
    from src.remote.base import RemoteSystem
    from src.store.contracts import (
        ChangeLog,
        LinkedPair,
        LinkRepository,
        ProjectLink,
        SnapshotStore,
    )

logger = structlog.get_logger()


class Reconciler:
    def __init__(
        self,
        source: RemoteSystem,
        target: RemoteSystem,
        *,
        links: LinkRepository,
        snapshots: SnapshotStore,
        change_log: ChangeLog,
        matching: MatchingSettings,
        changes: ChangeDetectionSettings,
    ) -> None:
        self._source = source
        self._target = target
        self._links = links
        self._matching = matching
        self._scorer = CandidateScorer.from_settings(matching)
        self._link_service = LinkService(links)
        self._detector = ChangeDetector(
            source, target, snapshots, settings=changes, change_log=change_log
        )

    async def project(self, project_id: str) -> ProjectLink:
        project = await self._links.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def suggest(
        self, project_id: str, source_id: str, *, min_confidence: float | None = None
    ) -> list[MatchCandidate]:
        """Ranked target candidates for one source record."""
        project = await self.project(project_id)
        sources, targets = await self._list_both(project)
        source = next((r for r in sources if r.record_id == source_id), None)
        if source is None:
            logger.warning("suggest_source_missing", project_id=project_id, source_id=source_id)
            return []
        threshold = (
            self._matching.suggest_min_confidence if min_confidence is None else min_confidence
        )
        return self._scorer.score(
            source.name, source.description, targets, min_confidence=threshold
        )

    async def auto_match(
        self,
        project_id: str,
        *,
        min_confidence: float | None = None,
        strategy: str | None = None,
    ) -> AutoMatchResult:
        """Suggest one-to-one matches for every unlinked record of the project."""
        project = await self.project(project_id)
        sources, targets = await self._list_both(project)
        pairs = await self._links.list_pairs(project_id)

        matcher = AutoMatcher(build_strategy(self._matching, name=strategy))
        return matcher.auto_match_all(
            sources,
            targets,
            {p.source_id for p in pairs if p.source_id is not None},
            {p.target_id for p in pairs if p.target_id is not None},
            min_confidence=min_confidence,
            already_linked=sum(1 for p in pairs if p.is_linked),
        )

    async def apply(
        self, project_id: str, suggestions: Sequence[SuggestedMatch]
    ) -> AcceptSummary:
        await self.project(project_id)
        return await self._link_service.accept_suggestions(project_id, suggestions)

    async def link(
        self,
        project_id: str,
        *,
        source_id: str,
        source_name: str,
        target_id: str,
        target_name: str,
    ) -> LinkedPair:
        await self.project(project_id)
        return await self._link_service.link(
            project_id,
            source_id=source_id,
            source_name=source_name,
            target_id=target_id,
            target_name=target_name,
        )

    async def detect_changes(self, project_id: str) -> ChangeReport:
        project = await self.project(project_id)
        pairs = await self._links.list_pairs(project_id)
        return await self._detector.detect_changes(project, pairs)

    async def take_snapshot(self, project_id: str) -> SnapshotResult:
        project = await self.project(project_id)
        pairs = await self._links.list_pairs(project_id)
        return await self._detector.take_snapshot(project, pairs)

    async def _list_both(self, project: ProjectLink) -> tuple[list[Record], list[Record]]:
        sources, targets = await asyncio.gather(
            fetch_records_safe(self._source, project.source_container_id),
            fetch_records_safe(self._target, project.target_container_id),
        )
        return sources, targets
