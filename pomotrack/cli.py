from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from . import db, notifier, presenter
from .config import get_settings
from .logging_setup import setup_logging
from .models import Outcome, StorageUnavailable
from .store import TaskStore

logger = logging.getLogger(__name__)

HELP_EPILOG = """\
examples:
  pt Make tea            add a task
  pt -p 1 2              start pomodoros for tasks 1 and 2
  pt -f 1                finish the pomodoro for task 1
  watch -n 1 pt --notify alert when a pomodoro runs out
"""


def _db_path_from_args(ns: argparse.Namespace) -> Path:
    if getattr(ns, "db", None):
        return Path(ns.db).expanduser().resolve()
    return ns.settings.db_path


def _load_store(ns: argparse.Namespace) -> TaskStore:
    tasks = db.load_tasks(_db_path_from_args(ns))
    return TaskStore(tasks, start_policy=ns.settings.start_policy)


def _print_tasks(store: TaskStore, now: datetime, archived: bool = False) -> None:
    for line in presenter.render_tasks(store.tasks, now, archived=archived):
        print(line)


def _report(outcomes: list[Outcome]) -> int:
    failed = False
    for o in outcomes:
        if o.ok:
            print(presenter.outcome_line(o))
        else:
            failed = True
            print(presenter.outcome_line(o), file=sys.stderr)
    return 1 if failed else 0


def _finish(ns: argparse.Namespace, store: TaskStore, code: int = 0) -> int:
    """Render the list, then persist if anything changed."""
    _print_tasks(store, ns.now)
    if store.dirty:
        db.save_tasks(_db_path_from_args(ns), store.tasks)
    return code


def cmd_list(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    _print_tasks(store, ns.now, archived=ns.list_archived)
    return 0


def cmd_add(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    task = store.add(" ".join(ns.description))
    print(presenter.summary_line("added", task.id))
    return _finish(ns, store)


def cmd_check(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    code = _report(store.apply(ns.check, "checked", store.check))
    return _finish(ns, store, code)


def cmd_pomodoro(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    code = _report(store.start_pomodoro(ns.pomodoro, ns.now))
    return _finish(ns, store, code)


def cmd_finish_pomodoro(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    outcomes = store.apply(
        ns.finish_pomodoro,
        "finished",
        lambda task_id: store.finish_pomodoro(task_id, ns.now),
    )
    return _finish(ns, store, _report(outcomes))


def cmd_archive(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    code = _report(store.apply(ns.archive, "archived", store.archive))
    return _finish(ns, store, code)


def cmd_unarchive(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    code = _report(store.apply(ns.unarchive, "unarchived", store.unarchive))
    return _finish(ns, store, code)


def cmd_archive_checked(ns: argparse.Namespace) -> int:
    store = _load_store(ns)
    for task in store.archive_checked():
        print(presenter.summary_line("archived", task.id))
    return _finish(ns, store)


def cmd_notify(ns: argparse.Namespace) -> int:
    tasks = db.load_tasks(_db_path_from_args(ns))
    expired = presenter.expired_tasks(tasks, ns.now)
    ledger = notifier.NotifiedLog(ns.settings.notified_path)
    fresh = ledger.fresh(expired)
    if fresh:
        logger.info("Pomodoro expired for tasks %s", [t.id for t in fresh])
    notifier.alert([presenter.notification_for(t) for t in fresh], ns.settings.alarm_path)
    ledger.update(expired)
    return 0


def cmd_test_notification(ns: argparse.Namespace) -> int:
    n = presenter.Notification(
        title="This is a test notification",
        body="Here is some information about this test notification",
    )
    notifier.alert([n], ns.settings.alarm_path)
    return 0


def cmd_export(ns: argparse.Namespace) -> int:
    data = db.export_json(db.load_tasks(_db_path_from_args(ns)))
    out = Path(ns.export).expanduser().resolve()
    out.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Exported to: {out}")
    return 0


def cmd_import(ns: argparse.Namespace) -> int:
    path = _db_path_from_args(ns)
    data_path = Path(ns.import_file).expanduser().resolve()
    try:
        tasks = db.import_json(json.loads(data_path.read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as e:
        print(f"Cannot import {data_path}: {e}", file=sys.stderr)
        return 1
    db.save_tasks(path, tasks)
    print(f"Imported {len(tasks)} tasks from: {data_path} into {path}")
    _print_tasks(TaskStore(tasks), ns.now)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pt",
        description="pt: a pomodoro task tracker. Without options, lists tasks; "
        "with words, adds them as a new task.",
        epilog=HELP_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument(
        "--db",
        help="Path to the task file (default: ~/.pt/tasks.db or PT_DB env var)",
    )
    p.add_argument("description", nargs="*", help="Description of a new task.")

    g = p.add_mutually_exclusive_group()
    g.add_argument("-l", "--list", action="store_true", help="List all tasks.")
    g.add_argument("--list-archived", action="store_true", help="List archived tasks.")
    g.add_argument("-c", "--check", nargs="+", type=int, metavar="ID", help="Check tasks.")
    g.add_argument("-p", "--pomodoro", nargs="+", type=int, metavar="ID", help="Start a pomodoro for tasks.")
    g.add_argument(
        "-f",
        "--finish-pomodoro",
        nargs="+",
        type=int,
        metavar="ID",
        help="Finish the running pomodoro for tasks.",
    )
    g.add_argument("-a", "--archive", nargs="+", type=int, metavar="ID", help="Archive tasks.")
    g.add_argument("--unarchive", nargs="+", type=int, metavar="ID", help="Unarchive tasks.")
    g.add_argument("--archive-checked", action="store_true", help="Archive all checked tasks.")
    g.add_argument("--notify", action="store_true", help="Alert for pomodoros that have run out.")
    g.add_argument("--test-notification", action="store_true", help="Send a test alert.")
    g.add_argument("--export", metavar="FILE", help="Export tasks to JSON.")
    g.add_argument("--import", dest="import_file", metavar="FILE", help="Replace tasks with a JSON export.")
    return p


def _select(ns: argparse.Namespace) -> Optional[Callable[[argparse.Namespace], int]]:
    commands: list[tuple[object, Callable[[argparse.Namespace], int]]] = [
        (ns.check, cmd_check),
        (ns.pomodoro, cmd_pomodoro),
        (ns.finish_pomodoro, cmd_finish_pomodoro),
        (ns.archive, cmd_archive),
        (ns.unarchive, cmd_unarchive),
        (ns.archive_checked, cmd_archive_checked),
        (ns.notify, cmd_notify),
        (ns.test_notification, cmd_test_notification),
        (ns.export, cmd_export),
        (ns.import_file, cmd_import),
        (ns.list or ns.list_archived, cmd_list),
    ]
    for value, func in commands:
        if value:
            return func
    return None


def main(argv: Optional[list[str]] = None, *, now: Optional[datetime] = None) -> int:
    settings = get_settings()
    setup_logging(
        log_dir=settings.home,
        console_level=getattr(logging, settings.log_level, logging.WARNING),
    )

    parser = build_parser()
    ns = parser.parse_args(argv)
    ns.settings = settings
    ns.now = now or datetime.now(timezone.utc)

    func = _select(ns)
    if func is not None and ns.description:
        parser.error("a task description cannot be combined with other options")
    if func is None:
        func = cmd_add if " ".join(ns.description).strip() else cmd_list

    try:
        return int(func(ns))
    except StorageUnavailable as e:
        logger.debug("Command aborted, nothing saved", exc_info=True)
        print(str(e), file=sys.stderr)
        print("Nothing was saved.", file=sys.stderr)
        return 2
