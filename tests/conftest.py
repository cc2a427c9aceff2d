import os
from datetime import datetime, timedelta
from pathlib import Path
import sys

import pytest

# Headless Qt for CI; must be set before pytest-qt creates the QApplication.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Ensure src/ is on sys.path for direct test invocation without an editable install
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from comm_timer.alert_dispatcher import AlertDispatcher
from comm_timer.channels import AlertChannels
from comm_timer.config import AlertToggles
from comm_timer.tone import ToneSynthesizer


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now

    def __call__(self) -> datetime:
        return self.now


class RecordingAudio:
    def __init__(self):
        self.clips = []

    def play(self, clip):
        self.clips.append(clip)


class RecordingVibrator:
    def __init__(self):
        self.patterns = []

    def vibrate(self, pattern_ms):
        self.patterns.append(tuple(pattern_ms))


class RecordingNotifier:
    def __init__(self, permission="granted"):
        self._permission = permission
        self.sent = []

    def permission(self):
        return self._permission

    def request_permission(self):
        return self._permission

    def notify(self, title, message, *, tag, require_interaction):
        self.sent.append((title, message, tag, require_interaction))


class RecordingTitle:
    def __init__(self):
        self.titles = []

    def set_title(self, title):
        self.titles.append(title)


class RecordingFocus:
    def __init__(self):
        self.calls = 0

    def focus(self):
        self.calls += 1


class FakeDispatcher:
    """Stands in for AlertDispatcher where only firing matters."""

    def __init__(self):
        self.fired = []

    def fire(self, settings, message="Alarm!", now=None):
        self.fired.append((settings, message, now))


@pytest.fixture()
def clock():
    return FakeClock(datetime(2025, 1, 1, 12, 0, 0))


@pytest.fixture()
def fake_dispatcher():
    return FakeDispatcher()


@pytest.fixture()
def channels():
    return AlertChannels(
        audio=RecordingAudio(),
        vibrator=RecordingVibrator(),
        notifier=RecordingNotifier(),
        title=RecordingTitle(),
        focus=RecordingFocus(),
    )


@pytest.fixture()
def dispatcher(qtbot, clock, channels):
    return AlertDispatcher(
        ToneSynthesizer(lambda: 8000),
        channels,
        AlertToggles(notifications=True, notification_permission="granted"),
        time_provider=clock,
    )
