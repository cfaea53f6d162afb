from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Optional

POMODORO_DURATION = timedelta(minutes=25)


@dataclass
class Task:
    id: int
    description: str
    checked: bool = False
    accumulated_seconds: int = 0
    pomodoro_started_at: Optional[datetime] = None  # UTC, set while a pomodoro runs
    archived: bool = False

    @property
    def pomodoro_active(self) -> bool:
        return self.pomodoro_started_at is not None


class StartPolicy(str, Enum):
    """What starting a pomodoro does to a task that already has one running."""

    IGNORE = "ignore"
    RESET = "reset"
    REJECT = "reject"


class PtError(Exception):
    pass


class TaskError(PtError):
    def __init__(self, task_id: int) -> None:
        super().__init__(task_id)
        self.task_id = task_id


class NotFound(TaskError):
    def __str__(self) -> str:
        return f"Task {self.task_id} not found."


class NoActivePomodoro(TaskError):
    def __str__(self) -> str:
        return f"No pomodoro active for task {self.task_id}."


class PomodoroAlreadyActive(TaskError):
    def __str__(self) -> str:
        return f"Pomodoro already active for task {self.task_id}."


class StorageUnavailable(PtError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(path, reason)
        self.path = path
        self.reason = reason

    def __str__(self) -> str:
        return f"Task file {self.path} is unavailable: {self.reason}"


@dataclass(frozen=True)
class Outcome:
    """Result of one per-id operation in a batch command."""

    task_id: int
    action: str  # "added" | "checked" | "started" | "running" | "finished" | "archived" | "unarchived"
    error: Optional[TaskError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
