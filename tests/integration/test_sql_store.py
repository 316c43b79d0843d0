"""Integration tests for the PostgreSQL stores (requires a database)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from src.changes.contracts import ChangeRecord
from src.links.service import LinkService
from src.matching.contracts import SuggestedMatch
from src.store.contracts import LinkedPair, PairSnapshot, ProjectLink, SideSnapshot
from src.store.sql import SqlChangeLog, SqlLinkRepository, SqlSnapshotStore

pytestmark = pytest.mark.integration

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
PROJECT = ProjectLink(
    project_id="p1",
    source_container_id="plane-proj",
    target_container_id="asana-proj",
    target_section_id="sec-1",
)


def _snapshot(state: str, comments: int | None, taken_at: datetime = T0) -> PairSnapshot:
    return PairSnapshot(
        source=SideSnapshot(
            name="Fix login bug",
            description="Users cannot log in",
            status=state,
            modified_at=T0,
            comment_count=comments,
        ),
        target=SideSnapshot(
            name="Fix login bug", description="", status=True, modified_at=None, comment_count=1
        ),
        taken_at=taken_at,
    )


def _change(pair_id: str, field: str, detected_at: datetime) -> ChangeRecord:
    return ChangeRecord(
        pair_id=pair_id,
        source_name="Fix login bug",
        target_name="Fix login bug",
        side="source",
        field=field,
        old_value="Open",
        new_value="Done",
        changed_at=T0,
        detected_at=detected_at,
    )


async def _linked_pair(repo: SqlLinkRepository, pair_id: str = "pair-1") -> LinkedPair:
    return await repo.create_pair(
        LinkedPair(
            pair_id=pair_id,
            project_id="p1",
            source_id=f"s-{pair_id}",
            target_id=f"t-{pair_id}",
            sync_status="MATCHED",
        )
    )


class TestSqlLinkRepository:
    @pytest.mark.asyncio
    async def test_project_round_trip(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        await repo.create_project(PROJECT)

        assert await repo.get_project("p1") == PROJECT
        assert await repo.get_project("nope") is None

    @pytest.mark.asyncio
    async def test_find_and_save(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        await repo.create_project(PROJECT)
        pair = await repo.create_pair(LinkedPair(pair_id="", project_id="p1", source_id="s1"))

        found = await repo.find_by_source("s1")
        assert found is not None
        assert found.pair_id == pair.pair_id
        assert not found.is_linked

        found.target_id = "t1"
        found.sync_status = "MATCHED"
        await repo.save_pair(found)

        by_target = await repo.find_by_target("t1")
        assert by_target is not None
        assert by_target.is_linked
        assert by_target.sync_status == "MATCHED"

    @pytest.mark.asyncio
    async def test_link_service_merges_one_sided_pairs(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        await repo.create_project(PROJECT)
        await repo.create_pair(LinkedPair(pair_id="src-half", project_id="p1", source_id="s1"))
        await repo.create_pair(LinkedPair(pair_id="tgt-half", project_id="p1", target_id="t1"))

        pair = await LinkService(repo).link(
            "p1", source_id="s1", source_name="A", target_id="t1", target_name="B"
        )

        pairs = await repo.list_pairs("p1")
        assert [p.pair_id for p in pairs] == ["src-half"]
        assert pair.match_method == "manual"

    @pytest.mark.asyncio
    async def test_accept_skips_id_linked_in_other_project(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        await repo.create_project(PROJECT)
        await repo.create_project(
            ProjectLink(project_id="p2", source_container_id="pp2", target_container_id="ap2")
        )
        await repo.create_pair(
            LinkedPair(pair_id="other", project_id="p2", source_id="s1", target_id="tX")
        )
        suggestions = [
            SuggestedMatch(
                source_id=source_id,
                source_name=source_id,
                target_id=target_id,
                target_name=target_id,
                confidence=0.8,
                method="fuzzy",
                reason="Shared name keywords",
            )
            for source_id, target_id in (("s1", "t1"), ("s2", "t2"))
        ]

        summary = await LinkService(repo).accept_suggestions("p1", suggestions)

        assert [r.status for r in summary.results] == ["skipped", "linked"]
        assert [p.source_id for p in await repo.list_pairs("p1")] == ["s2"]


class TestSqlSnapshotStore:
    @pytest.mark.asyncio
    async def test_upsert_and_get(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        store = SqlSnapshotStore(db_session_factory)
        await repo.create_project(PROJECT)
        await _linked_pair(repo)

        await store.upsert("pair-1", _snapshot("Open", 2))
        await store.upsert("pair-1", _snapshot("Done", None, T0 + timedelta(hours=1)))

        snapshot = await store.get("pair-1")
        assert snapshot is not None
        assert snapshot.source.status == "Done"
        assert snapshot.source.comment_count is None
        assert snapshot.target.status is True
        assert snapshot.taken_at == T0 + timedelta(hours=1)
        assert await store.get_many(["pair-1", "other"]) == {"pair-1": snapshot}

    @pytest.mark.asyncio
    async def test_deleting_pair_drops_snapshot(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        store = SqlSnapshotStore(db_session_factory)
        await repo.create_project(PROJECT)
        await _linked_pair(repo)
        await store.upsert("pair-1", _snapshot("Open", 2))

        await repo.delete_pair("pair-1")

        assert await store.get("pair-1") is None


class TestSqlChangeLog:
    @pytest.mark.asyncio
    async def test_history_newest_first_with_paging(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        log = SqlChangeLog(db_session_factory)
        await repo.create_project(PROJECT)
        await _linked_pair(repo)

        await log.append(
            "p1",
            [_change("pair-1", f"field-{i}", T0 + timedelta(minutes=i)) for i in range(3)],
        )

        page = await log.history("p1", limit=2)
        assert [c.field for c in page.changes] == ["field-2", "field-1"]
        assert page.total == 3
        assert page.has_more

        last = await log.history("p1", limit=2, offset=2)
        assert [c.field for c in last.changes] == ["field-0"]
        assert not last.has_more

    @pytest.mark.asyncio
    async def test_clear(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        log = SqlChangeLog(db_session_factory)
        await repo.create_project(PROJECT)
        await _linked_pair(repo)
        await log.append("p1", [_change("pair-1", "state", T0)])

        assert await log.clear("p1") == 1
        assert (await log.history("p1")).total == 0

    @pytest.mark.asyncio
    async def test_entries_survive_pair_deletion(self, db_session_factory) -> None:
        repo = SqlLinkRepository(db_session_factory)
        log = SqlChangeLog(db_session_factory)
        await repo.create_project(PROJECT)
        await _linked_pair(repo)
        await log.append("p1", [_change("pair-1", "state", T0)])

        await repo.delete_pair("pair-1")

        page = await log.history("p1")
        assert page.total == 1
        assert page.changes[0].pair_id == ""
