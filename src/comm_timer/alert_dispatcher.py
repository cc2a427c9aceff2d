from __future__ import annotations

"""Alert dispatcher: drives one bounded, multi-channel alert episode at a time.

An episode starts with ``fire()``: one tone right away, then a repeat timer
every 5 s that replays the tone and the vibration pattern until six repeats
have elapsed (about 30 s). Alongside it a flash flag (30 s) and a title blink
(500 ms) run. Every channel is best-effort: a missing or failing channel is
reported through ``diagnostic`` and the rest of the episode carries on.

Timers are ``NamedTimer`` fields of the ``AlertEpisode`` and are advanced by
``tick(now)``; the Qt host calls it from a short ``QTimer``, tests call it with
synthetic timestamps.
"""

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Callable, List, Optional, Set

from PyQt6.QtCore import QObject, pyqtSignal

from .channels import AlertChannels, ChannelUnavailable
from .config import PERMISSION_DEFAULT, PERMISSION_GRANTED, AlertToggles
from .models import AlertSettings
from .scheduling import NamedTimer
from .tone import ToneSynthesizer

logger = logging.getLogger(__name__)

TimeProvider = Callable[[], datetime]

MAX_REPEATS = 6
REPEAT_INTERVAL_MS = 5000
FLASH_DURATION_MS = 30_000
TITLE_BLINK_MS = 500
VIBRATION_PATTERN_MS = (500, 200, 500, 200, 500)

DEFAULT_TITLE = "Comm Time"
NOTIFICATION_TITLE = "Comm Time"
NOTIFICATION_TAG = "comm-time-alarm"
DEFAULT_MESSAGE = "Alarm!"


def ringing_title(message: str) -> str:
    return f"\U0001F514\U0001F514\U0001F514 {message} \U0001F514\U0001F514\U0001F514"


TIME_UP_TITLE = "⚠️⚠️⚠️ TIME UP! ⚠️⚠️⚠️"


@dataclass(slots=True)
class AlertEpisode:
    settings: AlertSettings
    message: str
    active: bool = True
    repeats_fired: int = 0
    max_repeats: int = MAX_REPEATS
    interval_ms: int = REPEAT_INTERVAL_MS
    tones_played: int = 0
    title_blink_on: bool = False
    repeat_timer: NamedTimer = field(default_factory=lambda: NamedTimer("repeat"))
    flash_timer: NamedTimer = field(default_factory=lambda: NamedTimer("flash"))
    title_timer: NamedTimer = field(default_factory=lambda: NamedTimer("title"))

    def live_timers(self) -> List[str]:
        return [t.name for t in (self.repeat_timer, self.flash_timer, self.title_timer) if t.active]

    def cancel_timers(self) -> None:
        self.repeat_timer.cancel()
        self.flash_timer.cancel()
        self.title_timer.cancel()


class AlertDispatcher(QObject):
    ringing_changed = pyqtSignal(bool)
    flashing_changed = pyqtSignal(bool)
    title_changed = pyqtSignal(str)
    episode_started = pyqtSignal(str)  # message
    episode_finished = pyqtSignal(str)  # completed|acknowledged|replaced
    diagnostic = pyqtSignal(str, str)  # channel, detail

    def __init__(
        self,
        synthesizer: ToneSynthesizer,
        channels: Optional[AlertChannels] = None,
        toggles: Optional[AlertToggles] = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> None:
        super().__init__()
        self._synth = synthesizer
        self._channels = channels or AlertChannels()
        self._toggles = toggles or AlertToggles()
        self._time_provider: TimeProvider = time_provider or datetime.now
        self._episode: Optional[AlertEpisode] = None
        self._ringing = False
        self._flashing = False
        self._title = DEFAULT_TITLE
        self._reported: Set[str] = set()

    # --- Properties -----------------------------------------------------
    @property
    def episode(self) -> Optional[AlertEpisode]:
        return self._episode

    @property
    def is_ringing(self) -> bool:
        return self._ringing

    @property
    def is_flashing(self) -> bool:
        return self._flashing

    @property
    def title(self) -> str:
        return self._title

    @property
    def toggles(self) -> AlertToggles:
        return self._toggles

    def set_toggles(self, toggles: AlertToggles) -> None:
        self._toggles = toggles

    # --- Episode control ------------------------------------------------
    def fire(self, settings: AlertSettings, message: str = DEFAULT_MESSAGE, now: Optional[datetime] = None) -> AlertEpisode:
        now = now or self._time_provider()
        previous = self._episode
        if previous is not None and previous.active:
            previous.cancel_timers()
            previous.active = False
            self.episode_finished.emit("replaced")

        episode = AlertEpisode(settings=settings.clamped(), message=message)
        self._episode = episode
        self._set_ringing(True)
        logger.info("alert episode started", extra={"_json_message": message})
        self.episode_started.emit(message)

        self._play_tone(episode)
        episode.repeat_timer.start(now, episode.interval_ms)
        self._vibrate()

        if self._toggles.flash:
            self._set_flashing(True)
            episode.flash_timer.start(now, FLASH_DURATION_MS, repeating=False)
        else:
            self._set_flashing(False)

        if self._toggles.notifications and self._toggles.notification_permission == PERMISSION_GRANTED:
            self._run_channel("notification", lambda: self._require(self._channels.notifier, "notification").notify(
                NOTIFICATION_TITLE, message, tag=NOTIFICATION_TAG, require_interaction=True
            ))

        episode.title_timer.start(now, TITLE_BLINK_MS)

        if self._toggles.force_focus:
            self._run_channel("focus", lambda: self._require(self._channels.focus, "focus").focus())
        return episode

    def stop(self) -> None:
        """End the active episode, if any, and restore every channel."""
        self._finish("acknowledged")

    def acknowledge(self) -> None:
        self.stop()

    def acknowledge_by_click(self) -> bool:
        # While the flash overlay is up it owns dismissal.
        if self._ringing and not self._flashing:
            self.stop()
            return True
        return False

    def tick(self, now: datetime) -> None:
        episode = self._episode
        if episode is None or not episode.active:
            return
        if episode.flash_timer.poll(now):
            self._set_flashing(False)
        if episode.title_timer.poll(now):
            episode.title_blink_on = not episode.title_blink_on
            self._set_title(ringing_title(episode.message) if episode.title_blink_on else TIME_UP_TITLE)
        if episode.repeat_timer.poll(now):
            episode.repeats_fired += 1
            if episode.repeats_fired >= episode.max_repeats:
                self._finish("completed")
                return
            self._play_tone(episode)
            self._vibrate()

    # --- Extras used by the engine -------------------------------------
    def show_running_title(self, title: str) -> None:
        if not self._ringing:
            self._set_title(title)

    def play_tick_sound(self) -> None:
        if not self._toggles.tick_sound:
            return
        clip = self._synth.tick_click(self._toggles.tick_volume)
        if clip is None:
            self._report("tick", "no audio output")
            return
        self._run_channel("tick", lambda: self._require(self._channels.audio, "audio").play(clip))

    def request_notification_permission(self) -> str:
        notifier = self._channels.notifier
        if notifier is None:
            self._report("notification", "notifications are not supported on this host")
            return self._toggles.notification_permission
        try:
            permission = notifier.request_permission()
        except ChannelUnavailable as exc:
            self._report("notification", str(exc))
            return self._toggles.notification_permission
        self._toggles.notification_permission = permission
        if permission == PERMISSION_GRANTED:
            self._toggles.notifications = True
            self._run_channel("notification", lambda: notifier.notify(
                NOTIFICATION_TITLE, "Notifications enabled", tag="comm-time-test", require_interaction=False
            ))
        return permission

    def toggle_notifications(self) -> bool:
        if not self._toggles.notifications and self._toggles.notification_permission != PERMISSION_GRANTED:
            if self._toggles.notification_permission == PERMISSION_DEFAULT:
                self.request_notification_permission()
            else:
                self._report("notification", "permission denied")
        else:
            self._toggles.notifications = not self._toggles.notifications
        return self._toggles.notifications

    # --- Internal -------------------------------------------------------
    def _finish(self, reason: str) -> None:
        episode = self._episode
        if episode is not None and episode.active:
            episode.cancel_timers()
            episode.active = False
            logger.info("alert episode finished", extra={"_json_reason": reason})
            self.episode_finished.emit(reason)
        self._set_flashing(False)
        self._set_ringing(False)
        self._set_title(DEFAULT_TITLE)

    def _play_tone(self, episode: AlertEpisode) -> None:
        clip = self._synth.synthesize(episode.settings)
        if clip is None:
            self._report("audio", "no audio output")
            return
        if self._run_channel("audio", lambda: self._require(self._channels.audio, "audio").play(clip)):
            episode.tones_played += 1

    def _vibrate(self) -> None:
        if not self._toggles.vibration:
            return
        self._run_channel(
            "vibration",
            lambda: self._require(self._channels.vibrator, "vibration").vibrate(VIBRATION_PATTERN_MS),
        )

    def _set_ringing(self, value: bool) -> None:
        if value != self._ringing:
            self._ringing = value
            self.ringing_changed.emit(value)

    def _set_flashing(self, value: bool) -> None:
        if value != self._flashing:
            self._flashing = value
            self.flashing_changed.emit(value)

    def _set_title(self, title: str) -> None:
        if title == self._title:
            return
        self._title = title
        sink = self._channels.title
        if sink is not None:
            self._run_channel("title", lambda: sink.set_title(title))
        self.title_changed.emit(title)

    @staticmethod
    def _require(channel, name: str):
        if channel is None:
            raise ChannelUnavailable(f"{name} channel not available")
        return channel

    def _run_channel(self, channel: str, action: Callable[[], None]) -> bool:
        try:
            action()
            return True
        except ChannelUnavailable as exc:
            self._report(channel, str(exc))
        except Exception as exc:
            logger.exception("alert channel %s failed", channel)
            self._report(channel, f"{type(exc).__name__}: {exc}")
        return False

    def _report(self, channel: str, detail: str) -> None:
        if channel not in self._reported:
            self._reported.add(channel)
            logger.warning("alert channel %s skipped: %s", channel, detail)
        else:
            logger.debug("alert channel %s skipped: %s", channel, detail)
        self.diagnostic.emit(channel, detail)


__all__ = [
    "AlertDispatcher",
    "AlertEpisode",
    "DEFAULT_TITLE",
    "TIME_UP_TITLE",
    "MAX_REPEATS",
    "REPEAT_INTERVAL_MS",
    "FLASH_DURATION_MS",
    "TITLE_BLINK_MS",
    "VIBRATION_PATTERN_MS",
    "ringing_title",
]
