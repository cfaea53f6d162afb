from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .models import StartPolicy

logger = logging.getLogger(__name__)


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser().resolve()


def pt_home() -> Path:
    """
    Per-user config directory:
      ~/.pt

    Override with the PT_HOME env var.
    """
    return _env_path("PT_HOME", (Path.home() / ".pt").resolve())


def default_db_path() -> Path:
    """
    Default task file:
      ~/.pt/tasks.db

    Override with PT_DB env var or --db CLI option.
    """
    return _env_path("PT_DB", pt_home() / "tasks.db")


def default_alarm_path() -> Path:
    return _env_path("PT_ALARM", pt_home() / "alarm.mp3")


def start_policy() -> StartPolicy:
    raw = os.getenv("PT_START_POLICY", "").strip().lower()
    if not raw:
        return StartPolicy.IGNORE
    try:
        return StartPolicy(raw)
    except ValueError:
        logger.warning("Unknown PT_START_POLICY %r, using %r", raw, StartPolicy.IGNORE.value)
        return StartPolicy.IGNORE


@dataclass(frozen=True)
class Settings:
    home: Path
    db_path: Path
    alarm_path: Path
    start_policy: StartPolicy
    log_level: str

    @property
    def notified_path(self) -> Path:
        return self.home / "notified.json"


def get_settings() -> Settings:
    return Settings(
        home=pt_home(),
        db_path=default_db_path(),
        alarm_path=default_alarm_path(),
        start_policy=start_policy(),
        log_level=os.getenv("PT_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
    )
