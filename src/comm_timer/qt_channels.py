from __future__ import annotations

"""PyQt6 adapters for the alert channels.

QtMultimedia is imported lazily: a host without multimedia libraries still
runs, the audio channel just reports itself unavailable.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from PyQt6.QtCore import QBuffer, QByteArray, QIODevice, QObject, QUrl
from PyQt6.QtWidgets import QApplication, QSystemTrayIcon, QWidget

from .channels import ChannelUnavailable
from .config import PERMISSION_DENIED, PERMISSION_GRANTED
from .tone import ToneClip

logger = logging.getLogger(__name__)

NOTIFICATION_TIMEOUT_MS = 0  # stays until clicked where the platform allows it


def qt_sample_rate() -> Optional[int]:  # pragma: no cover - needs an audio device
    try:
        from PyQt6.QtMultimedia import QMediaDevices
    except ImportError as exc:
        logger.warning("QtMultimedia unavailable: %s", exc)
        return None
    device = QMediaDevices.defaultAudioOutput()
    if device.isNull():
        return None
    rate = device.preferredFormat().sampleRate()
    return rate or None


class QtAudioSink(QObject):  # pragma: no cover - needs an audio device
    """Plays WAV clips from memory; fire-and-forget."""

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._live: List[Tuple[object, object, QBuffer]] = []

    def play(self, clip: ToneClip) -> None:
        try:
            from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer
        except ImportError as exc:
            raise ChannelUnavailable(f"QtMultimedia unavailable: {exc}") from exc
        buffer = QBuffer(self)
        buffer.setData(QByteArray(clip.data))
        buffer.open(QIODevice.OpenModeFlag.ReadOnly)
        output = QAudioOutput(self)
        output.setVolume(1.0)
        player = QMediaPlayer(self)
        player.setAudioOutput(output)
        entry = (player, output, buffer)
        self._live.append(entry)

        def _cleanup(state) -> None:
            if state == QMediaPlayer.PlaybackState.StoppedState and entry in self._live:
                self._live.remove(entry)
                player.deleteLater()
                output.deleteLater()
                buffer.close()
                buffer.deleteLater()

        player.playbackStateChanged.connect(_cleanup)
        player.errorOccurred.connect(lambda _e, msg: logger.warning("tone playback error: %s", msg))
        player.setSourceDevice(buffer, QUrl("tone.wav"))
        player.play()


class NoVibrator:
    """Desktop hosts have no vibration motor."""

    def vibrate(self, pattern_ms: Sequence[int]) -> None:
        raise ChannelUnavailable("vibration not supported on this host")


class TrayNotifier:  # pragma: no cover - needs a system tray
    def __init__(self, tray: QSystemTrayIcon) -> None:
        self._tray = tray

    def permission(self) -> str:
        if QSystemTrayIcon.isSystemTrayAvailable() and self._tray.supportsMessages():
            return PERMISSION_GRANTED
        return PERMISSION_DENIED

    def request_permission(self) -> str:
        return self.permission()

    def notify(self, title: str, message: str, *, tag: str, require_interaction: bool) -> None:
        if self.permission() != PERMISSION_GRANTED:
            raise ChannelUnavailable("system tray messages not supported")
        timeout = NOTIFICATION_TIMEOUT_MS if require_interaction else 5000
        self._tray.showMessage(title, message, QSystemTrayIcon.MessageIcon.Information, timeout)


class WindowTitleSink:  # pragma: no cover - UI
    def __init__(self, window: QWidget) -> None:
        self._window = window

    def set_title(self, title: str) -> None:
        self._window.setWindowTitle(title)


class WindowFocusSink:  # pragma: no cover - UI
    def __init__(self, window: QWidget) -> None:
        self._window = window

    def focus(self) -> None:
        if self._window.isMinimized():
            self._window.showNormal()
        self._window.raise_()
        self._window.activateWindow()
        QApplication.alert(self._window)


__all__ = [
    "NoVibrator",
    "QtAudioSink",
    "TrayNotifier",
    "WindowFocusSink",
    "WindowTitleSink",
    "qt_sample_rate",
]
