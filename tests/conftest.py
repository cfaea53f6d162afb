from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

import pytest


@pytest.fixture(autouse=True)
def pt_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """
    Point every config path at a per-test directory so nothing touches ~/.pt.
    """
    home = tmp_path / "pt-home"
    monkeypatch.setenv("PT_HOME", str(home))
    for name in ("PT_DB", "PT_ALARM", "PT_START_POLICY", "PT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield home

    # main() installs handlers bound to this test's captured stderr
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_pt_handler", False):
            root.removeHandler(h)
            h.close()


@pytest.fixture()
def commands(monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
    """
    Capture helper-binary invocations made by the notifier instead of running them.
    """
    calls: list[list[str]] = []

    def fake_run(cmd, **kwargs):
        calls.append(list(cmd))

    monkeypatch.setattr("pomotrack.notifier.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("pomotrack.notifier.subprocess.run", fake_run)
    return calls


class FakeMixerError(Exception):
    pass


class FakePygame:
    """
    Stand-in for the pygame module: records played files, plays each for two polls.
    """

    error = FakeMixerError

    def __init__(self) -> None:
        self.played: list[str] = []
        self.waits = 0
        self.init_error: Optional[str] = None
        self.initialized = False
        self._polls_left = 0
        music = SimpleNamespace(load=self._load, play=self._play, get_busy=self._get_busy)
        self.mixer = SimpleNamespace(init=self._init, quit=self._quit, music=music)
        self.time = SimpleNamespace(wait=self._wait)

    def _init(self) -> None:
        if self.init_error:
            raise FakeMixerError(self.init_error)
        self.initialized = True

    def _quit(self) -> None:
        self.initialized = False

    def _load(self, path: str) -> None:
        self.played.append(path)

    def _play(self) -> None:
        self._polls_left = 2

    def _get_busy(self) -> bool:
        return self._polls_left > 0

    def _wait(self, ms: int) -> None:
        self.waits += 1
        self._polls_left -= 1


@pytest.fixture()
def mixer(monkeypatch: pytest.MonkeyPatch) -> FakePygame:
    fake = FakePygame()
    monkeypatch.setattr("pomotrack.notifier.pygame", fake)
    return fake
