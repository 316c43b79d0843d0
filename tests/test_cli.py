"""Tests for the tasklink command line: argument parsing, dispatch and exit codes."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from src import cli
from src.config.settings import ChangeDetectionSettings, MatchingSettings, Settings
from src.matching.contracts import Record
from src.reconciler import Reconciler
from src.store.contracts import ProjectLink
from src.store.memory import InMemoryStore


def _remote(name: str, records: list[Record]) -> AsyncMock:
    remote = AsyncMock()
    remote.name = name
    remote.list_records.return_value = records
    remote.list_secondary.return_value = []
    return remote


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def run_in_memory(monkeypatch, store: InMemoryStore) -> None:
    """Route main() through an in-memory reconciler instead of PostgreSQL."""

    async def fake_run(args, settings: Settings) -> None:
        reconciler = Reconciler(
            _remote("plane", [Record(record_id="s1", name="Fix login bug")]),
            _remote("asana", [Record(record_id="t1", name="Fix login bug")]),
            links=store,
            snapshots=store,
            change_log=store,
            matching=MatchingSettings(),
            changes=ChangeDetectionSettings(batch_delay_s=0),
        )
        await cli._dispatch(reconciler, args)

    monkeypatch.setattr(cli, "_run", fake_run)
    monkeypatch.setattr(cli, "get_settings", lambda: Settings(log_json=False))


class TestParser:
    def test_auto_match_flags(self) -> None:
        args = cli._build_parser().parse_args(
            ["auto-match", "--project", "p1", "--strategy", "fuzzy", "--apply"]
        )
        assert args.command == "auto-match"
        assert args.strategy == "fuzzy"
        assert args.apply is True
        assert args.min_confidence is None

    def test_history_defaults(self) -> None:
        args = cli._build_parser().parse_args(["history", "--project", "p1"])
        assert (args.limit, args.offset, args.clear) == (100, 0, False)

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli._build_parser().parse_args(["auto-match", "--project", "p1", "--strategy", "x"])
        assert exc_info.value.code == 2

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args([])


@pytest.mark.usefixtures("run_in_memory")
class TestMain:
    def test_unknown_project_exits_one(self, capsys) -> None:
        exit_code = cli.main(["auto-match", "--project", "missing"])

        assert exit_code == 1
        payload = json.loads(capsys.readouterr().out)
        assert payload["code"] == "PROJECT_NOT_FOUND"

    def test_auto_match_apply(self, capsys, store: InMemoryStore) -> None:
        store.projects["p1"] = ProjectLink(
            project_id="p1", source_container_id="src", target_container_id="tgt"
        )

        exit_code = cli.main(["auto-match", "--project", "p1", "--apply"])

        assert exit_code == 0
        payload = json.loads(capsys.readouterr().out)
        assert [s["target_id"] for s in payload["suggestions"]] == ["t1"]
        assert payload["applied"]["linked"] == 1
        assert [p.source_id for p in store.pairs.values()] == ["s1"]

    def test_link_conflict_exits_one(self, capsys, store: InMemoryStore) -> None:
        store.projects["p1"] = ProjectLink(
            project_id="p1", source_container_id="src", target_container_id="tgt"
        )
        argv = [
            "link", "--project", "p1",
            "--source-id", "s1", "--source-name", "A",
            "--target-id", "t1", "--target-name", "B",
        ]  # fmt: skip

        assert cli.main(argv) == 0
        capsys.readouterr()
        assert cli.main(argv) == 1
        assert json.loads(capsys.readouterr().out)["code"] == "ALREADY_LINKED"
