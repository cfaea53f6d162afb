"""
Desktop notification and alarm playback.

Both are best effort: a missing helper, sound file or audio device is
logged and never fails the command. The ledger in notified.json keeps
`pt --notify` (usually run every second under `watch`) from alerting
twice for the same running pomodoro.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Iterable, Optional

os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pygame  # noqa: E402
from plyer import notification as plyer_notification  # noqa: E402

from .db import format_ts  # noqa: E402
from .models import Task  # noqa: E402
from .presenter import Notification  # noqa: E402

logger = logging.getLogger(__name__)

APP_NAME = "pt"


def _run(cmd: list[str]) -> bool:
    try:
        subprocess.run(
            cmd,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning("%s failed: %s", cmd[0], e)
        return False
    return True


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def notification_command(n: Notification, platform: Optional[str] = None) -> Optional[list[str]]:
    """Helper command for macOS and Linux; None when no helper is installed."""
    platform = platform or sys.platform
    if platform == "darwin":
        if not shutil.which("osascript"):
            return None
        script = f"display notification {_applescript_quote(n.body)} with title {_applescript_quote(n.title)}"
        return ["osascript", "-e", script]
    if shutil.which("notify-send"):
        return ["notify-send", "-a", APP_NAME, "-t", "0", n.title, n.body]
    return None


def _notify_windows(n: Notification) -> bool:
    try:
        plyer_notification.notify(title=n.title, message=n.body, app_name=APP_NAME, timeout=10)
    except (NotImplementedError, OSError) as e:
        logger.warning("Desktop notification failed: %s", e)
        return False
    return True


def show_notification(n: Notification) -> bool:
    print(f"{n.title}: {n.body}")
    if sys.platform == "win32":
        return _notify_windows(n)
    cmd = notification_command(n)
    if cmd is None:
        logger.warning("No desktop notification helper found")
        return False
    return _run(cmd)


def _bell() -> None:
    print("\a", end="", flush=True)


def play_alarm(sound: Path) -> bool:
    """Play the alarm file once, blocking until it ends. Falls back to the terminal bell."""
    if not sound.is_file():
        logger.warning("Alarm sound %s not found", sound)
        _bell()
        return False
    try:
        pygame.mixer.init()
        pygame.mixer.music.load(str(sound))
        pygame.mixer.music.play()
        while pygame.mixer.music.get_busy():
            pygame.time.wait(100)
    except pygame.error as e:
        logger.warning("Cannot play alarm %s: %s", sound, e)
        _bell()
        return False
    finally:
        pygame.mixer.quit()
    return True


def _key(task: Task) -> str:
    if task.pomodoro_started_at is None:
        raise ValueError(f"task {task.id} has no running pomodoro")
    return f"{task.id}@{format_ts(task.pomodoro_started_at)}"


class NotifiedLog:
    """Pomodoros already alerted for, keyed by (task id, start time)."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.keys = self._read()

    def _read(self) -> set[str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return set()
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable notification log %s", self.path)
            return set()
        return {str(k) for k in data} if isinstance(data, list) else set()

    def fresh(self, expired: Iterable[Task]) -> list[Task]:
        return [t for t in expired if _key(t) not in self.keys]

    def update(self, expired: Iterable[Task]) -> None:
        """Remember exactly the currently expired pomodoros; finished ones drop out."""
        keys = {_key(t) for t in expired}
        if keys == self.keys:
            return
        self.keys = keys
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(sorted(keys), indent=2), encoding="utf-8")
        except OSError:
            logger.warning("Cannot write notification log %s", self.path, exc_info=True)


def alert(notifications: list[Notification], sound: Path) -> None:
    for n in notifications:
        show_notification(n)
    if notifications:
        play_alarm(sound)
