from __future__ import annotations

"""Output channels an alert episode fans out to.

Each channel is a small protocol the host implements (see ``qt_channels`` for
the PyQt6 adapters). A channel that cannot act raises ``ChannelUnavailable``;
the dispatcher logs it and moves on to the next channel.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from .tone import ToneClip


class ChannelUnavailable(Exception):
    pass


class AudioSink(Protocol):
    def play(self, clip: ToneClip) -> None: ...


class Vibrator(Protocol):
    def vibrate(self, pattern_ms: Sequence[int]) -> None: ...


class Notifier(Protocol):
    def permission(self) -> str: ...

    def request_permission(self) -> str: ...

    def notify(self, title: str, message: str, *, tag: str, require_interaction: bool) -> None: ...


class TitleSink(Protocol):
    def set_title(self, title: str) -> None: ...


class FocusSink(Protocol):
    def focus(self) -> None: ...


@dataclass(slots=True)
class AlertChannels:
    """Host adapters; ``None`` marks a channel the host does not have."""

    audio: Optional[AudioSink] = None
    vibrator: Optional[Vibrator] = None
    notifier: Optional[Notifier] = None
    title: Optional[TitleSink] = None
    focus: Optional[FocusSink] = None


__all__ = [
    "AlertChannels",
    "AudioSink",
    "ChannelUnavailable",
    "FocusSink",
    "Notifier",
    "TitleSink",
    "Vibrator",
]
