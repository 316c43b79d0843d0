"""Tests for Reconciler wiring with in-memory stores and fake remotes."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from src.config.settings import ChangeDetectionSettings, MatchingSettings
from src.infra.errors import ProjectNotFoundError, RemoteFetchError
from src.matching.contracts import Record
from src.reconciler import Reconciler
from src.store.contracts import LinkedPair, ProjectLink
from src.store.memory import InMemoryStore

PROJECT = ProjectLink(project_id="p1", source_container_id="src", target_container_id="tgt")

SOURCES = [
    Record(record_id="s1", name="Fix login bug", state="Open"),
    Record(record_id="s2", name="Export report", state="Open"),
    Record(record_id="s3", name="Quarterly planning", state="Open"),
]
TARGETS = [
    Record(record_id="t1", name="Fix login bug", completed=False),
    Record(record_id="t2", name="Export report", completed=False),
    Record(record_id="t3", name="Office move", completed=False),
]


def _remote(name: str, records: list[Record]) -> AsyncMock:
    remote = AsyncMock()
    remote.name = name
    remote.list_records.return_value = records
    remote.list_secondary.return_value = []
    return remote


async def _make_reconciler(**matching_overrides) -> tuple[Reconciler, InMemoryStore, AsyncMock]:
    store = InMemoryStore()
    await store.create_project(PROJECT)
    source = _remote("plane", SOURCES)
    target = _remote("asana", TARGETS)
    reconciler = Reconciler(
        source,
        target,
        links=store,
        snapshots=store,
        change_log=store,
        matching=MatchingSettings(**matching_overrides),
        changes=ChangeDetectionSettings(batch_delay_s=0),
    )
    return reconciler, store, source


class TestProjectLookup:
    @pytest.mark.asyncio
    async def test_unknown_project(self) -> None:
        reconciler, _, _ = await _make_reconciler()
        with pytest.raises(ProjectNotFoundError) as exc_info:
            await reconciler.auto_match("nope")
        assert exc_info.value.code == "PROJECT_NOT_FOUND"


class TestAutoMatch:
    @pytest.mark.asyncio
    async def test_suggests_unlinked_pairs(self) -> None:
        reconciler, _, source = await _make_reconciler()

        result = await reconciler.auto_match("p1")

        assert {(s.source_id, s.target_id) for s in result.suggestions} == {
            ("s1", "t1"),
            ("s2", "t2"),
        }
        assert result.stats.total_sources == 3
        source.list_records.assert_awaited_once_with("src")

    @pytest.mark.asyncio
    async def test_existing_links_excluded(self) -> None:
        reconciler, store, _ = await _make_reconciler()
        await store.create_pair(
            LinkedPair(pair_id="x", project_id="p1", source_id="s1", target_id="t1")
        )

        result = await reconciler.auto_match("p1")

        assert [(s.source_id, s.target_id) for s in result.suggestions] == [("s2", "t2")]
        assert result.stats.already_linked == 1

    @pytest.mark.asyncio
    async def test_apply_links_suggestions(self) -> None:
        reconciler, store, _ = await _make_reconciler()
        result = await reconciler.auto_match("p1")

        summary = await reconciler.apply("p1", result.suggestions)

        assert summary.linked == 2
        assert len([p for p in store.pairs.values() if p.is_linked]) == 2

    @pytest.mark.asyncio
    async def test_source_listing_failure_yields_no_suggestions(self) -> None:
        reconciler, _, source = await _make_reconciler()
        source.list_records.side_effect = RemoteFetchError("down", system="plane")

        result = await reconciler.auto_match("p1")

        assert result.suggestions == []


class TestSuggest:
    @pytest.mark.asyncio
    async def test_ranked_candidates(self) -> None:
        reconciler, _, _ = await _make_reconciler()

        candidates = await reconciler.suggest("p1", "s1")

        assert [c.target_id for c in candidates] == ["t1"]
        assert candidates[0].method == "exact"

    @pytest.mark.asyncio
    async def test_unknown_source(self) -> None:
        reconciler, _, _ = await _make_reconciler()
        assert await reconciler.suggest("p1", "missing") == []


class TestLinkAndDetect:
    @pytest.mark.asyncio
    async def test_manual_link_then_snapshot_cycle(self) -> None:
        reconciler, store, source = await _make_reconciler()
        await reconciler.link(
            "p1",
            source_id="s3",
            source_name="Quarterly planning",
            target_id="t3",
            target_name="Office move",
        )

        first = await reconciler.detect_changes("p1")
        snap = await reconciler.take_snapshot("p1")
        source.list_records.return_value = [
            *SOURCES[:2],
            Record(record_id="s3", name="Quarterly planning", state="Done"),
        ]
        second = await reconciler.detect_changes("p1")

        assert [c.field for c in first.changes] == ["new"]
        assert snap.snapshot_count == 1
        assert [(c.field, c.new_value) for c in second.changes] == [("state", "Done")]
        assert len(store.change_log["p1"]) == 1
