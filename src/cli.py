"""tasklink command line: matching and change detection for one project link.

Usage:
    tasklink init-db
    tasklink add-project --project P --source-container S --target-container T
    tasklink auto-match --project P [--min-confidence 0.5] [--strategy rules|fuzzy] [--apply]
    tasklink suggest --project P --source-id ID
    tasklink link --project P --source-id A --source-name N --target-id B --target-name M
    tasklink take-snapshot --project P
    tasklink detect-changes --project P
    tasklink history --project P [--limit 100] [--offset 0] [--clear]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, is_dataclass
from typing import Any

import structlog

from src.config.settings import Settings, get_settings
from src.infra.errors import TaskLinkError
from src.infra.logging import command_context, setup_logging
from src.reconciler import Reconciler
from src.remote.asana import AsanaClient
from src.remote.plane import PlaneClient
from src.store.contracts import ProjectLink
from src.store.database import create_db_engine, ensure_schema, make_session_factory
from src.store.sql import SqlChangeLog, SqlLinkRepository, SqlSnapshotStore

logger = structlog.get_logger()


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return value


def _emit(payload: Any) -> None:
    print(json.dumps(_to_jsonable(payload), indent=2, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tasklink", description="Task link reconciliation")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create schema and tables")

    add = sub.add_parser("add-project", help="Register a source/target container pair")
    add.add_argument("--project", required=True)
    add.add_argument("--source-container", required=True)
    add.add_argument("--target-container", required=True)
    add.add_argument("--target-section", default=None)

    auto = sub.add_parser("auto-match", help="Suggest one-to-one matches for unlinked records")
    auto.add_argument("--project", required=True)
    auto.add_argument("--min-confidence", type=float, default=None)
    auto.add_argument("--strategy", choices=["rules", "fuzzy"], default=None)
    auto.add_argument("--apply", action="store_true", help="Accept every suggestion")

    suggest = sub.add_parser("suggest", help="Rank target candidates for one source record")
    suggest.add_argument("--project", required=True)
    suggest.add_argument("--source-id", required=True)
    suggest.add_argument("--min-confidence", type=float, default=None)

    link = sub.add_parser("link", help="Manually link two records")
    link.add_argument("--project", required=True)
    link.add_argument("--source-id", required=True)
    link.add_argument("--source-name", required=True)
    link.add_argument("--target-id", required=True)
    link.add_argument("--target-name", required=True)

    for name, help_text in (
        ("take-snapshot", "Capture current state of all linked pairs"),
        ("detect-changes", "Report drift since the last snapshot"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--project", required=True)

    history = sub.add_parser("history", help="Show or clear the change log")
    history.add_argument("--project", required=True)
    history.add_argument("--limit", type=int, default=100)
    history.add_argument("--offset", type=int, default=0)
    history.add_argument("--clear", action="store_true")

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> None:
    engine = await create_db_engine(settings.database)
    try:
        if args.command == "init-db":
            await ensure_schema(engine)
            _emit({"status": "ok"})
            return

        factory = make_session_factory(engine)
        links = SqlLinkRepository(factory)
        change_log = SqlChangeLog(factory)

        if args.command == "add-project":
            project = await links.create_project(
                ProjectLink(
                    project_id=args.project,
                    source_container_id=args.source_container,
                    target_container_id=args.target_container,
                    target_section_id=args.target_section,
                )
            )
            _emit(project)
            return

        if args.command == "history":
            if args.clear:
                _emit({"deleted": await change_log.clear(args.project)})
                return
            page = await change_log.history(args.project, limit=args.limit, offset=args.offset)
            _emit({**asdict(page), "has_more": page.has_more})
            return

        project = await links.get_project(args.project)
        section_id = project.target_section_id if project is not None else None
        source = PlaneClient.from_settings(settings.plane, settings.http)
        target = AsanaClient.from_settings(settings.asana, settings.http, section_id=section_id)
        try:
            reconciler = Reconciler(
                source,
                target,
                links=links,
                snapshots=SqlSnapshotStore(factory),
                change_log=change_log,
                matching=settings.matching,
                changes=settings.changes,
            )
            await _dispatch(reconciler, args)
        finally:
            await source.aclose()
            await target.aclose()
    finally:
        await engine.dispose()


async def _dispatch(reconciler: Reconciler, args: argparse.Namespace) -> None:
    if args.command == "auto-match":
        result = await reconciler.auto_match(
            args.project, min_confidence=args.min_confidence, strategy=args.strategy
        )
        payload: dict[str, Any] = asdict(result)
        if args.apply:
            summary = await reconciler.apply(args.project, result.suggestions)
            payload["applied"] = {
                "results": [asdict(r) for r in summary.results],
                "linked": summary.linked,
                "skipped": summary.skipped,
            }
        _emit(payload)
    elif args.command == "suggest":
        candidates = await reconciler.suggest(
            args.project, args.source_id, min_confidence=args.min_confidence
        )
        _emit([asdict(c) for c in candidates])
    elif args.command == "link":
        pair = await reconciler.link(
            args.project,
            source_id=args.source_id,
            source_name=args.source_name,
            target_id=args.target_id,
            target_name=args.target_name,
        )
        _emit(pair)
    elif args.command == "take-snapshot":
        result = await reconciler.take_snapshot(args.project)
        _emit({**asdict(result), "message": result.message})
    elif args.command == "detect-changes":
        _emit(await reconciler.detect_changes(args.project))


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(json_output=settings.log_json, log_level=settings.log_level)
    try:
        with command_context(args.command, getattr(args, "project", None)):
            asyncio.run(_run(args, settings))
    except TaskLinkError as e:
        logger.error("command_failed", command=args.command, code=e.code, error=str(e))
        _emit({"error": str(e), "code": e.code})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
