"""
Rendering of tasks and command summaries.

Everything here is a pure function of the task list and `now`; nothing
mutates tasks, and an expired pomodoro stays expired until it is
explicitly finished.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .models import POMODORO_DURATION, Outcome, Task

NO_TASKS = "No tasks found."

SUMMARIES = {
    "added": "Task {id} added.",
    "checked": "Task {id} checked.",
    "started": "Pomodoro started for task {id}.",
    "running": "Pomodoro already active for task {id}.",
    "finished": "Pomodoro finished for task {id}.",
    "archived": "Task {id} moved to archive.",
    "unarchived": "Task {id} moved out of archive.",
}


@dataclass(frozen=True)
class Notification:
    title: str
    body: str


def remaining(task: Task, now: datetime) -> Optional[timedelta]:
    if task.pomodoro_started_at is None:
        return None
    left = POMODORO_DURATION - (now - task.pomodoro_started_at)
    return max(left, timedelta(0))


def format_remaining(left: timedelta) -> str:
    seconds = int(left.total_seconds())
    return f"{seconds // 60}m {seconds % 60:02d}s"


def format_total(accumulated_seconds: int) -> str:
    return f"Σ{accumulated_seconds // 60} min"


def time_label(task: Task, now: datetime) -> str:
    left = remaining(task, now)
    if left is None:
        return format_total(task.accumulated_seconds)
    return format_remaining(left)


def render_task(task: Task, now: datetime) -> str:
    box = "x" if task.checked else " "
    return f"{task.id:03d} [{box}]: {task.description} ({time_label(task, now)})"


def render_tasks(tasks: Iterable[Task], now: datetime, archived: bool = False) -> list[str]:
    """Lines for every task in the chosen archive state, ascending by id."""
    visible = sorted((t for t in tasks if t.archived == archived), key=lambda t: t.id)
    if not visible:
        return [NO_TASKS]
    return [render_task(t, now) for t in visible]


def pomodoro_expired(task: Task, now: datetime) -> bool:
    left = remaining(task, now)
    return left is not None and left <= timedelta(0)


def expired_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    return sorted((t for t in tasks if pomodoro_expired(t, now)), key=lambda t: t.id)


def notification_for(task: Task) -> Notification:
    return Notification(title=f"Pomodoro finished for task {task.id}.", body=task.description)


def summary_line(action: str, task_id: int) -> str:
    return SUMMARIES[action].format(id=task_id)


def outcome_line(outcome: Outcome) -> str:
    if outcome.error is not None:
        return str(outcome.error)
    return summary_line(outcome.action, outcome.task_id)
