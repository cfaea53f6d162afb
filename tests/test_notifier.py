from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from pomotrack import notifier
from pomotrack.models import Task
from pomotrack.presenter import Notification

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_linux_notification_command(commands):
    cmd = notifier.notification_command(Notification("Done", "Make tea"), platform="linux")
    assert cmd == ["notify-send", "-a", "pt", "-t", "0", "Done", "Make tea"]


def test_macos_notification_quotes_text(commands):
    cmd = notifier.notification_command(Notification("Done", 'say "hi"'), platform="darwin")
    assert cmd == ["osascript", "-e", 'display notification "say \\"hi\\"" with title "Done"']


def test_no_notification_helper(monkeypatch):
    monkeypatch.setattr("pomotrack.notifier.sys.platform", "linux")
    monkeypatch.setattr("pomotrack.notifier.shutil.which", lambda name: None)
    assert notifier.notification_command(Notification("a", "b"), platform="linux") is None
    assert notifier.show_notification(Notification("a", "b")) is False


def test_windows_notification_uses_plyer(commands, monkeypatch, capsys):
    sent = []
    monkeypatch.setattr("pomotrack.notifier.sys.platform", "win32")
    monkeypatch.setattr(
        "pomotrack.notifier.plyer_notification",
        SimpleNamespace(notify=lambda **kwargs: sent.append(kwargs)),
    )
    assert notifier.show_notification(Notification("Done", "Make tea")) is True
    assert sent == [{"title": "Done", "message": "Make tea", "app_name": "pt", "timeout": 10}]
    assert commands == []
    assert capsys.readouterr().out == "Done: Make tea\n"


def test_windows_notification_failure_is_not_fatal(monkeypatch):
    def no_backend(**kwargs):
        raise NotImplementedError("No usable implementation found!")

    monkeypatch.setattr("pomotrack.notifier.sys.platform", "win32")
    monkeypatch.setattr("pomotrack.notifier.plyer_notification", SimpleNamespace(notify=no_backend))
    assert notifier.show_notification(Notification("Done", "Make tea")) is False


def test_alert_shows_each_then_plays_once(commands, mixer, tmp_path: Path, capsys, monkeypatch):
    monkeypatch.setattr("pomotrack.notifier.sys.platform", "linux")
    sound = tmp_path / "alarm.mp3"
    sound.write_bytes(b"ID3")
    notifier.alert([Notification("one", "A"), Notification("two", "B")], sound)

    assert [c[0] for c in commands] == ["notify-send", "notify-send"]
    assert mixer.played == [str(sound)]
    assert capsys.readouterr().out == "one: A\ntwo: B\n"


def test_alarm_blocks_until_playback_ends(mixer, tmp_path: Path):
    sound = tmp_path / "alarm.mp3"
    sound.write_bytes(b"ID3")
    assert notifier.play_alarm(sound) is True
    assert mixer.waits == 2
    assert mixer.initialized is False


def test_missing_alarm_rings_bell(mixer, tmp_path: Path, capsys):
    assert notifier.play_alarm(tmp_path / "missing.mp3") is False
    assert mixer.played == []
    assert capsys.readouterr().out == "\a"


def test_no_audio_device_rings_bell(mixer, tmp_path: Path, capsys):
    mixer.init_error = "No available audio device"
    sound = tmp_path / "alarm.mp3"
    sound.write_bytes(b"ID3")
    assert notifier.play_alarm(sound) is False
    assert mixer.played == []
    assert capsys.readouterr().out == "\a"


def test_notified_log_rejects_idle_task(tmp_path: Path):
    log = notifier.NotifiedLog(tmp_path / "notified.json")
    with pytest.raises(ValueError):
        log.update([Task(id=1, description="A")])


def test_notified_log_remembers_current_pomodoros(tmp_path: Path):
    path = tmp_path / "notified.json"
    first = Task(id=1, description="A", pomodoro_started_at=T0)
    second = Task(id=2, description="B", pomodoro_started_at=T0)

    log = notifier.NotifiedLog(path)
    assert log.fresh([first]) == [first]
    log.update([first])

    log = notifier.NotifiedLog(path)
    assert log.fresh([first, second]) == [second]

    # same task, new pomodoro
    restarted = Task(id=1, description="A", pomodoro_started_at=T0 + timedelta(hours=1))
    assert log.fresh([restarted]) == [restarted]


def test_notified_log_ignores_garbage(tmp_path: Path):
    path = tmp_path / "notified.json"
    path.write_text("{not json", encoding="utf-8")
    assert notifier.NotifiedLog(path).keys == set()
