from __future__ import annotations

"""Typed engine configuration with tolerant conversion to/from flat mappings.

The engine never persists anything itself; a host that stores settings hands a
flat ``{"dotted.key": value}`` mapping to ``EngineConfig.from_mapping`` and gets
one back from ``to_mapping``. Unknown keys are ignored, missing keys fall back
to defaults and out-of-range values are clamped.
"""

from dataclasses import dataclass, field
import logging
import os
from typing import Any, Dict, Mapping

from .models import AlertSettings, clamp_minutes

logger = logging.getLogger(__name__)

LOG_LEVEL_ENV = "COMM_TIMER_LOG_LEVEL"

DEFAULT_ALARM_MINUTES = (30, 50, 60)
MEETING_ALERT = AlertSettings(volume_level=44, tone_frequency_hz=340)
WORK_ALERT = AlertSettings(volume_level=65, tone_frequency_hz=240)
BREAK_ALERT = AlertSettings(volume_level=36, tone_frequency_hz=740)
DEADLINE_ALERT = AlertSettings(volume_level=44, tone_frequency_hz=340)

PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"


def _as_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off", ""}:
            return False
    return fallback


@dataclass(slots=True)
class AlertToggles:
    vibration: bool = True
    flash: bool = True
    notifications: bool = False
    notification_permission: str = PERMISSION_DEFAULT
    force_focus: bool = False
    tick_sound: bool = False
    tick_volume: int = 5


@dataclass(slots=True)
class PomodoroConfig:
    work_minutes: int = 25
    break_minutes: int = 5
    cycles: int = 4
    infinite_mode: bool = False
    work_alert: AlertSettings = WORK_ALERT
    break_alert: AlertSettings = BREAK_ALERT

    def normalized(self) -> PomodoroConfig:
        return PomodoroConfig(
            work_minutes=clamp_minutes(self.work_minutes),
            break_minutes=clamp_minutes(self.break_minutes),
            cycles=clamp_minutes(self.cycles),
            infinite_mode=bool(self.infinite_mode),
            work_alert=self.work_alert.clamped(),
            break_alert=self.break_alert.clamped(),
        )


@dataclass(slots=True)
class DeadlineWatchConfig:
    enabled: bool = True
    threshold_minutes: int = 60


@dataclass(slots=True)
class EngineConfig:
    meeting_alert: AlertSettings = MEETING_ALERT
    deadline_alert: AlertSettings = DEADLINE_ALERT
    alarm_minutes: tuple[int, ...] = DEFAULT_ALARM_MINUTES
    pomodoro: PomodoroConfig = field(default_factory=PomodoroConfig)
    toggles: AlertToggles = field(default_factory=AlertToggles)
    deadline_watch: DeadlineWatchConfig = field(default_factory=DeadlineWatchConfig)

    # --- Flat mapping conversion ---------------------------------------
    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> EngineConfig:
        d = cls()

        def alert(prefix: str, default: AlertSettings) -> AlertSettings:
            return AlertSettings(
                volume_level=data.get(f"{prefix}.volume", default.volume_level),
                tone_frequency_hz=data.get(f"{prefix}.frequency", default.tone_frequency_hz),
            ).clamped()

        minutes_raw = data.get("meeting.alarm_minutes", d.alarm_minutes)
        try:
            if isinstance(minutes_raw, str):
                raise TypeError("alarm minutes must be a sequence")
            alarm_minutes = tuple(sorted(clamp_minutes(m) for m in minutes_raw))
        except TypeError:
            logger.info("invalid alarm minutes %r; using defaults", minutes_raw)
            alarm_minutes = d.alarm_minutes

        pomodoro = PomodoroConfig(
            work_minutes=data.get("pomodoro.work_minutes", d.pomodoro.work_minutes),
            break_minutes=data.get("pomodoro.break_minutes", d.pomodoro.break_minutes),
            cycles=data.get("pomodoro.cycles", d.pomodoro.cycles),
            infinite_mode=_as_bool(data.get("pomodoro.infinite_mode"), d.pomodoro.infinite_mode),
            work_alert=alert("pomodoro.work", d.pomodoro.work_alert),
            break_alert=alert("pomodoro.break", d.pomodoro.break_alert),
        ).normalized()

        permission = str(data.get("alerts.notification_permission", PERMISSION_DEFAULT))
        if permission not in {PERMISSION_DEFAULT, PERMISSION_GRANTED, PERMISSION_DENIED}:
            permission = PERMISSION_DEFAULT
        tick_volume = AlertSettings(volume_level=data.get("alerts.tick_volume", d.toggles.tick_volume)).clamped()
        toggles = AlertToggles(
            vibration=_as_bool(data.get("alerts.vibration"), d.toggles.vibration),
            flash=_as_bool(data.get("alerts.flash"), d.toggles.flash),
            notifications=_as_bool(data.get("alerts.notifications"), d.toggles.notifications),
            notification_permission=permission,
            force_focus=_as_bool(data.get("alerts.force_focus"), d.toggles.force_focus),
            tick_sound=_as_bool(data.get("alerts.tick_sound"), d.toggles.tick_sound),
            tick_volume=tick_volume.volume_level,
        )

        watch = DeadlineWatchConfig(
            enabled=_as_bool(data.get("deadline.enabled"), d.deadline_watch.enabled),
            threshold_minutes=clamp_minutes(
                data.get("deadline.threshold_minutes", d.deadline_watch.threshold_minutes)
            ),
        )
        return cls(
            meeting_alert=alert("meeting", d.meeting_alert),
            deadline_alert=alert("deadline", d.deadline_alert),
            alarm_minutes=alarm_minutes,
            pomodoro=pomodoro,
            toggles=toggles,
            deadline_watch=watch,
        )

    def to_mapping(self) -> Dict[str, Any]:
        p = self.pomodoro
        t = self.toggles
        return {
            "meeting.volume": self.meeting_alert.volume_level,
            "meeting.frequency": self.meeting_alert.tone_frequency_hz,
            "meeting.alarm_minutes": list(self.alarm_minutes),
            "deadline.volume": self.deadline_alert.volume_level,
            "deadline.frequency": self.deadline_alert.tone_frequency_hz,
            "deadline.enabled": self.deadline_watch.enabled,
            "deadline.threshold_minutes": self.deadline_watch.threshold_minutes,
            "pomodoro.work_minutes": p.work_minutes,
            "pomodoro.break_minutes": p.break_minutes,
            "pomodoro.cycles": p.cycles,
            "pomodoro.infinite_mode": p.infinite_mode,
            "pomodoro.work.volume": p.work_alert.volume_level,
            "pomodoro.work.frequency": p.work_alert.tone_frequency_hz,
            "pomodoro.break.volume": p.break_alert.volume_level,
            "pomodoro.break.frequency": p.break_alert.tone_frequency_hz,
            "alerts.vibration": t.vibration,
            "alerts.flash": t.flash,
            "alerts.notifications": t.notifications,
            "alerts.notification_permission": t.notification_permission,
            "alerts.force_focus": t.force_focus,
            "alerts.tick_sound": t.tick_sound,
            "alerts.tick_volume": t.tick_volume,
        }


def log_level_from_env(default: int = logging.INFO) -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


__all__ = [
    "AlertToggles",
    "DeadlineWatchConfig",
    "EngineConfig",
    "PomodoroConfig",
    "DEFAULT_ALARM_MINUTES",
    "MEETING_ALERT",
    "WORK_ALERT",
    "BREAK_ALERT",
    "DEADLINE_ALERT",
    "PERMISSION_DEFAULT",
    "PERMISSION_GRANTED",
    "PERMISSION_DENIED",
    "log_level_from_env",
]
