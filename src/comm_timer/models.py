from __future__ import annotations

"""Dataclass models shared by the timer, alarm and alert components."""

from dataclasses import dataclass
from datetime import date, datetime, time
import logging
from typing import Any, Literal, Mapping, Optional

logger = logging.getLogger(__name__)

TimerMode = Literal["count_up", "count_down"]
TimerState = Literal["idle", "running", "paused"]
Phase = Literal["work", "break"]
AlertKind = Literal["meeting", "work", "break", "deadline"]

MIN_VOLUME = 0
MAX_VOLUME = 100
MIN_FREQUENCY_HZ = 100
MAX_FREQUENCY_HZ = 1000


def _clamp(value: Any, lo: int, hi: int, fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        logger.info("invalid numeric value %r; using %s", value, fallback)
        return fallback
    return max(lo, min(hi, number))


def clamp_minutes(minutes: Any) -> int:
    """Alarm and phase lengths are whole minutes, never below one."""
    try:
        value = int(minutes)
    except (TypeError, ValueError):
        logger.info("invalid minutes %r; using 1", minutes)
        return 1
    return max(1, value)


def parse_ymd(text: Optional[str]) -> Optional[date]:
    if not text or not isinstance(text, str):
        if text:
            logger.debug("ignoring non-text date %r", text)
        return None
    try:
        return datetime.strptime(text.strip(), "%Y-%m-%d").date()
    except ValueError:
        logger.debug("ignoring malformed date %r", text)
        return None


def parse_hhmm(text: Optional[str]) -> Optional[time]:
    if not text or not isinstance(text, str):
        if text:
            logger.debug("ignoring non-text time %r", text)
        return None
    try:
        hh, mm = text.strip().split(":")[:2]
        return time(int(hh), int(mm))
    except ValueError:
        logger.debug("ignoring malformed time %r", text)
        return None


@dataclass(slots=True, frozen=True)
class AlertSettings:
    volume_level: int = 50
    tone_frequency_hz: int = 440

    def clamped(self) -> AlertSettings:
        return AlertSettings(
            volume_level=_clamp(self.volume_level, MIN_VOLUME, MAX_VOLUME, 50),
            tone_frequency_hz=_clamp(self.tone_frequency_hz, MIN_FREQUENCY_HZ, MAX_FREQUENCY_HZ, 440),
        )


@dataclass(slots=True)
class AlarmPoint:
    id: str
    target_minutes: int
    remaining_seconds: int
    done: bool = False
    linked_task_id: Optional[str] = None

    @classmethod
    def create(cls, point_id: str, minutes: Any) -> AlarmPoint:
        m = clamp_minutes(minutes)
        return cls(id=point_id, target_minutes=m, remaining_seconds=m * 60)

    def rearm(self) -> None:
        self.remaining_seconds = self.target_minutes * 60
        self.done = False


@dataclass(slots=True, frozen=True)
class TaskRecord:
    """Snapshot of a task as handed over by the task store."""

    id: str
    is_completed: bool = False
    text: str = ""
    due_date: Optional[str] = None  # YYYY-MM-DD
    due_time: Optional[str] = None  # HH:MM

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TaskRecord:
        return cls(
            id=str(data["id"]),
            is_completed=bool(data.get("isCompleted", data.get("is_completed", False))),
            text=str(data.get("text", "") or ""),
            due_date=data.get("dueDate", data.get("due_date")) or None,
            due_time=data.get("dueTime", data.get("due_time")) or None,
        )


__all__ = [
    "AlarmPoint",
    "AlertKind",
    "AlertSettings",
    "Phase",
    "TaskRecord",
    "TimerMode",
    "TimerState",
    "clamp_minutes",
    "parse_hhmm",
    "parse_ymd",
]
