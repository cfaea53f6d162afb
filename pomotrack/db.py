from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from .models import StorageUnavailable, Task

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tasks (
    id                  INTEGER PRIMARY KEY,
    description         TEXT NOT NULL,
    checked             INTEGER NOT NULL DEFAULT 0,
    archived            INTEGER NOT NULL DEFAULT 0,
    accumulated_seconds INTEGER NOT NULL DEFAULT 0,
    pomodoro_started_at TEXT -- ISO UTC timestamp while a pomodoro runs (nullable)
);
"""


def format_ts(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"


def parse_ts(text: str) -> datetime:
    ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_started(text: Optional[str]) -> Optional[datetime]:
    if text is None:
        return None
    return parse_ts(text)


@contextmanager
def _storage_errors(db_path: Path) -> Iterator[None]:
    try:
        yield
    except (sqlite3.Error, OSError, ValueError, IndexError, KeyError) as e:
        logger.debug("Storage failure on %s", db_path, exc_info=True)
        raise StorageUnavailable(db_path, str(e)) from e


@contextmanager
def connect(db_path: Path) -> Iterator[sqlite3.Connection]:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=int(row["id"]),
        description=str(row["description"]),
        checked=bool(row["checked"]),
        archived=bool(row["archived"]),
        accumulated_seconds=int(row["accumulated_seconds"]),
        pomodoro_started_at=_parse_started(row["pomodoro_started_at"]),
    )


def _task_to_row(t: Task) -> tuple:
    started = format_ts(t.pomodoro_started_at) if t.pomodoro_started_at else None
    return (t.id, t.description, int(t.checked), int(t.archived), t.accumulated_seconds, started)


def load_tasks(db_path: Path) -> list[Task]:
    """
    Read the whole task list, ordered by id.

    A missing file is an empty store; nothing is created on disk.
    """
    if not db_path.exists():
        logger.debug("No task file at %s, starting empty", db_path)
        return []
    with _storage_errors(db_path), connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        rows = conn.execute("SELECT * FROM tasks ORDER BY id ASC").fetchall()
        return [_row_to_task(r) for r in rows]


def save_tasks(db_path: Path, tasks: list[Task]) -> None:
    """
    Replace the stored task list with `tasks` in a single transaction.
    """
    with _storage_errors(db_path), connect(db_path) as conn:
        conn.executescript(SCHEMA_SQL)
        conn.execute("DELETE FROM tasks")
        conn.executemany(
            """
            INSERT INTO tasks (id, description, checked, archived, accumulated_seconds, pomodoro_started_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [_task_to_row(t) for t in tasks],
        )
    logger.debug("Saved %d tasks to %s", len(tasks), db_path)


def export_json(tasks: list[Task]) -> dict:
    def task_to_dict(t: Task) -> dict:
        return {
            "id": t.id,
            "description": t.description,
            "checked": t.checked,
            "archived": t.archived,
            "accumulated_seconds": t.accumulated_seconds,
            "pomodoro_started_at": format_ts(t.pomodoro_started_at) if t.pomodoro_started_at else None,
        }

    return {"tasks": [task_to_dict(t) for t in sorted(tasks, key=lambda t: t.id)]}


def _legacy_task(raw: dict[str, Any]) -> Task:
    """
    Convert a record of the older tasks.json layout, which kept every
    pomodoro as {start_time, end_time}. Finished pomodoros add up to the
    accumulated total; an open one becomes the running pomodoro.
    """
    total = 0
    started: Optional[datetime] = None
    for p in raw.get("pomodoros", []):
        start = parse_ts(p["start_time"])
        end_text = p.get("end_time")
        if end_text is None:
            started = start
            continue
        total += max(0, int((parse_ts(end_text) - start).total_seconds()))
    return Task(
        id=int(raw["id"]),
        description=str(raw["description"]),
        checked=bool(raw.get("done", False)),
        archived=bool(raw.get("archived", False)),
        accumulated_seconds=total,
        pomodoro_started_at=started,
    )


def _require_records(records: list) -> None:
    for raw in records:
        if not isinstance(raw, dict):
            raise ValueError(f"task records must be objects, got {type(raw).__name__}")


def import_json(data: Union[dict, list]) -> list[Task]:
    """
    Build a task list from an export (`{"tasks": [...]}`) or from a
    legacy tasks.json list.
    """
    if isinstance(data, list):
        _require_records(data)
        return sorted((_legacy_task(raw) for raw in data), key=lambda t: t.id)
    if not isinstance(data, dict):
        raise ValueError(f"expected an object or a list, got {type(data).__name__}")

    records = data.get("tasks", [])
    if not isinstance(records, list):
        raise ValueError("\"tasks\" must be a list")
    _require_records(records)

    tasks: list[Task] = []
    for t in records:
        started = t.get("pomodoro_started_at")
        tasks.append(
            Task(
                id=int(t["id"]),
                description=str(t["description"]),
                checked=bool(t.get("checked", False)),
                archived=bool(t.get("archived", False)),
                accumulated_seconds=int(t.get("accumulated_seconds", 0)),
                pomodoro_started_at=parse_ts(started) if started else None,
            )
        )
    return sorted(tasks, key=lambda t: t.id)
