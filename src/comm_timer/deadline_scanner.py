from __future__ import annotations

"""Deadline watch: alert once when a task's due moment comes within a threshold.

The scan runs at most once per distinct wall-clock minute. Tasks already past
their deadline are skipped (overdue state is a display concern, there is no
catch-up alert). The registry remembers which deadline each task was alerted
for, so a changed due date re-arms the task and a deleted task is forgotten.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence

from PyQt6.QtCore import QObject, pyqtSignal

from .alert_dispatcher import AlertDispatcher
from .config import DEADLINE_ALERT, DeadlineWatchConfig
from .models import AlertSettings, TaskRecord, clamp_minutes, parse_hhmm, parse_ymd

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59)
PREVIEW_CHARS = 20


def deadline_of(task: TaskRecord) -> Optional[datetime]:
    """Due date combined with due time (23:59 when absent); None if unusable."""
    due = parse_ymd(task.due_date)
    if due is None:
        return None
    return datetime.combine(due, parse_hhmm(task.due_time) or END_OF_DAY)


def preview(text: str) -> str:
    return text[:PREVIEW_CHARS] + "..." if len(text) > PREVIEW_CHARS else text


def deadline_message(task: TaskRecord, minutes_left: int) -> str:
    return f"Deadline approaching: {preview(task.text)} (in {minutes_left} min)"


@dataclass(slots=True, frozen=True)
class DeadlineStatus:
    is_overdue: bool
    is_soon: bool
    diff_days: int
    diff_hours: int
    diff_ms: int


def deadline_status(task: TaskRecord, now: datetime) -> Optional[DeadlineStatus]:
    deadline = deadline_of(task)
    if deadline is None:
        return None
    diff_ms = int((deadline - now).total_seconds() * 1000)
    diff_hours = math.ceil(diff_ms / 3_600_000)
    return DeadlineStatus(
        is_overdue=diff_ms < 0,
        is_soon=diff_ms > 0 and diff_hours <= 24,
        diff_days=math.ceil(diff_ms / 86_400_000),
        diff_hours=diff_hours,
        diff_ms=diff_ms,
    )


def sort_by_deadline(tasks: Iterable[TaskRecord]) -> List[TaskRecord]:
    """Earliest deadline first; tasks without a usable due date keep their order at the end."""
    items = list(tasks)
    return sorted(items, key=lambda t: (deadline_of(t) is None, deadline_of(t) or datetime.max))


def extend_deadline(task: TaskRecord, days: int, today: date) -> TaskRecord:
    base = parse_ymd(task.due_date) or today
    return replace(task, due_date=(base + timedelta(days=days)).isoformat())


@dataclass(slots=True)
class DeadlineAlertRegistry:
    enabled: bool = True
    threshold_minutes: int = 60
    alerted: Dict[str, datetime] = field(default_factory=dict)  # task id -> deadline alerted for

    def __contains__(self, task_id: str) -> bool:
        return task_id in self.alerted


class DeadlineScanner(QObject):
    alerted = pyqtSignal(str, int)  # task id, minutes remaining

    def __init__(
        self,
        dispatcher: AlertDispatcher,
        settings: AlertSettings = DEADLINE_ALERT,
        config: DeadlineWatchConfig | None = None,
    ) -> None:
        super().__init__()
        cfg = config or DeadlineWatchConfig()
        self._dispatcher = dispatcher
        self.settings = settings
        self._registry = DeadlineAlertRegistry(enabled=cfg.enabled, threshold_minutes=clamp_minutes(cfg.threshold_minutes))
        self._last_scan_minute: Optional[datetime] = None

    @property
    def registry(self) -> DeadlineAlertRegistry:
        return self._registry

    @property
    def enabled(self) -> bool:
        return self._registry.enabled

    @property
    def threshold_minutes(self) -> int:
        return self._registry.threshold_minutes

    def set_enabled(self, enabled: bool) -> None:
        self._registry.enabled = bool(enabled)

    def set_threshold(self, minutes: int) -> None:
        self._registry.threshold_minutes = clamp_minutes(minutes)
        # A new threshold deserves a fresh scan even within the same minute.
        self._last_scan_minute = None

    def forget(self, task_id: str) -> None:
        self._registry.alerted.pop(task_id, None)

    def tick(self, now: datetime, tasks: Sequence[TaskRecord]) -> List[str]:
        if not self._registry.enabled:
            return []
        minute = now.replace(second=0, microsecond=0)
        if minute == self._last_scan_minute:
            return []
        self._last_scan_minute = minute
        return self._scan(now, tasks)

    def _scan(self, now: datetime, tasks: Sequence[TaskRecord]) -> List[str]:
        alerted = self._registry.alerted
        present = {t.id for t in tasks}
        for stale in [tid for tid in alerted if tid not in present]:
            del alerted[stale]

        threshold = self._registry.threshold_minutes * 60
        fired: List[str] = []
        for task in tasks:
            if task.is_completed:
                continue
            deadline = deadline_of(task)
            if deadline is None:
                continue
            if task.id in alerted:
                if alerted[task.id] == deadline:
                    continue
                del alerted[task.id]  # due date moved: re-arm
            seconds_left = (deadline - now).total_seconds()
            if seconds_left < 0 or seconds_left > threshold:
                continue
            minutes_left = math.ceil(seconds_left / 60)
            self._dispatcher.fire(self.settings, deadline_message(task, minutes_left), now)
            alerted[task.id] = deadline
            fired.append(task.id)
            self.alerted.emit(task.id, minutes_left)
        if fired:
            logger.info("deadline alerts fired", extra={"_json_tasks": fired})
        return fired


__all__ = [
    "DeadlineAlertRegistry",
    "DeadlineScanner",
    "DeadlineStatus",
    "deadline_message",
    "deadline_of",
    "deadline_status",
    "extend_deadline",
    "preview",
    "sort_by_deadline",
]
