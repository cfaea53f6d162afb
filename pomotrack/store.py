from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from .models import (
    POMODORO_DURATION,
    NoActivePomodoro,
    NotFound,
    Outcome,
    PomodoroAlreadyActive,
    StartPolicy,
    Task,
    TaskError,
)

logger = logging.getLogger(__name__)


def credited_seconds(elapsed: timedelta) -> int:
    """
    Seconds credited for a finished pomodoro.

    Elapsed time is clamped to [0, POMODORO_DURATION] and rounded to the
    nearest whole minute (half up), so 52s credits 60s and 20s credits 0s.
    """
    seconds = int(elapsed.total_seconds())
    seconds = max(0, min(seconds, int(POMODORO_DURATION.total_seconds())))
    return ((seconds + 30) // 60) * 60


class TaskStore:
    """
    Ordered, in-memory task list with all mutations.

    Loading and saving live in db.py; the store never reads the clock,
    every time-dependent operation takes `now` explicitly.
    """

    def __init__(
        self,
        tasks: Optional[Iterable[Task]] = None,
        start_policy: StartPolicy = StartPolicy.IGNORE,
    ) -> None:
        self.tasks: list[Task] = sorted(tasks or [], key=lambda t: t.id)
        self.start_policy = start_policy
        self.dirty = False

    def _next_id(self) -> int:
        return max((t.id for t in self.tasks), default=0) + 1

    def get(self, task_id: int) -> Task:
        for t in self.tasks:
            if t.id == task_id:
                return t
        raise NotFound(task_id)

    def add(self, description: str) -> Task:
        task = Task(id=self._next_id(), description=description)
        self.tasks.append(task)
        self.dirty = True
        logger.debug("Added task %s: %r", task.id, description)
        return task

    def check(self, task_id: int) -> Task:
        task = self.get(task_id)
        task.checked = True
        self.dirty = True
        return task

    def archive(self, task_id: int) -> Task:
        task = self.get(task_id)
        task.archived = True
        self.dirty = True
        return task

    def unarchive(self, task_id: int) -> Task:
        task = self.get(task_id)
        task.archived = False
        self.dirty = True
        return task

    def archive_checked(self) -> list[Task]:
        moved = [t for t in self.tasks if t.checked and not t.archived]
        for t in moved:
            t.archived = True
        if moved:
            self.dirty = True
        return moved

    def _start_one(self, task_id: int, now: datetime) -> str:
        task = self.get(task_id)
        if task.pomodoro_active:
            if self.start_policy is StartPolicy.REJECT:
                raise PomodoroAlreadyActive(task_id)
            if self.start_policy is StartPolicy.IGNORE:
                return "running"
            logger.info("Resetting running pomodoro for task %s", task_id)
        task.pomodoro_started_at = now
        self.dirty = True
        return "started"

    def start_pomodoro(self, ids: Iterable[int], now: datetime) -> list[Outcome]:
        outcomes: list[Outcome] = []
        for task_id in _unique(ids):
            try:
                action = self._start_one(task_id, now)
            except TaskError as e:
                outcomes.append(Outcome(task_id, "started", error=e))
                continue
            outcomes.append(Outcome(task_id, action))
        return outcomes

    def finish_pomodoro(self, task_id: int, now: datetime) -> int:
        task = self.get(task_id)
        if task.pomodoro_started_at is None:
            raise NoActivePomodoro(task_id)
        credit = credited_seconds(now - task.pomodoro_started_at)
        task.accumulated_seconds += credit
        task.pomodoro_started_at = None
        self.dirty = True
        logger.debug("Finished pomodoro for task %s, credited %ss", task_id, credit)
        return credit

    def apply(
        self,
        ids: Iterable[int],
        action: str,
        fn: Callable[[int], object],
    ) -> list[Outcome]:
        """Run a single-id operation for each id; a failing id never stops the rest."""
        outcomes: list[Outcome] = []
        for task_id in _unique(ids):
            try:
                fn(task_id)
            except TaskError as e:
                outcomes.append(Outcome(task_id, action, error=e))
            else:
                outcomes.append(Outcome(task_id, action))
        return outcomes


def _unique(ids: Iterable[int]) -> list[int]:
    seen: list[int] = []
    for i in ids:
        if i not in seen:
            seen.append(i)
    return seen
