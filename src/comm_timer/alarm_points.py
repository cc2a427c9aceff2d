from __future__ import annotations

"""Alarm points: independent single-shot countdowns inside a running meeting timer."""

from datetime import datetime
import itertools
import logging
from typing import Iterable, List, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from .alert_dispatcher import AlertDispatcher
from .config import DEFAULT_ALARM_MINUTES, MEETING_ALERT
from .models import AlarmPoint, AlertSettings, clamp_minutes

logger = logging.getLogger(__name__)


def elapsed_message(minutes: int) -> str:
    return f"{minutes} minutes have passed"


class AlarmPointSet(QObject):
    changed = pyqtSignal()
    point_fired = pyqtSignal(str, int)  # point id, target minutes
    remaining_changed = pyqtSignal()  # at least one pending point counted down

    def __init__(
        self,
        dispatcher: AlertDispatcher,
        settings: AlertSettings = MEETING_ALERT,
        minutes: Iterable[int] = DEFAULT_ALARM_MINUTES,
    ) -> None:
        super().__init__()
        self._dispatcher = dispatcher
        self.settings = settings
        self._ids = itertools.count(1)
        self._defaults = tuple(minutes)
        self._points: List[AlarmPoint] = []
        self._load(self._defaults)

    # --- Access ---------------------------------------------------------
    @property
    def points(self) -> Tuple[AlarmPoint, ...]:
        return tuple(self._points)

    def get(self, point_id: str) -> Optional[AlarmPoint]:
        return next((p for p in self._points if p.id == point_id), None)

    # --- Commands -------------------------------------------------------
    def add(self, minutes: Optional[int] = None, *, elapsed_seconds: int = 0) -> AlarmPoint:
        if minutes is None:
            minutes = elapsed_seconds // 60 + 1
        point = AlarmPoint.create(str(next(self._ids)), minutes)
        self._points.append(point)
        self._sort()
        self.changed.emit()
        return point

    def update(self, point_id: str, minutes: int) -> bool:
        point = self.get(point_id)
        if point is None:
            return False
        point.target_minutes = clamp_minutes(minutes)
        point.remaining_seconds = point.target_minutes * 60
        self._sort()
        self.changed.emit()
        return True

    def remove(self, point_id: str) -> bool:
        point = self.get(point_id)
        if point is None:
            return False
        self._points.remove(point)
        self.changed.emit()
        return True

    def link_task(self, point_id: str, task_id: Optional[str]) -> bool:
        point = self.get(point_id)
        if point is None:
            return False
        point.linked_task_id = task_id
        self.changed.emit()
        return True

    def rearm(self) -> None:
        for p in self._points:
            p.rearm()
        self.changed.emit()

    def restore_defaults(self) -> None:
        self._points.clear()
        self._load(self._defaults)
        self.changed.emit()

    # --- Driver ---------------------------------------------------------
    def tick(self, now: Optional[datetime] = None) -> List[AlarmPoint]:
        """Advance every pending point by one second; return the points that fired."""
        fired: List[AlarmPoint] = []
        counted = False
        for point in self._points:
            if point.done:
                continue
            counted = True
            point.remaining_seconds = max(0, point.remaining_seconds - 1)
            if point.remaining_seconds == 0:
                point.done = True
                fired.append(point)
        for point in fired:
            logger.info("alarm point reached", extra={"_json_minutes": point.target_minutes})
            self._dispatcher.fire(self.settings, elapsed_message(point.target_minutes), now)
            self.point_fired.emit(point.id, point.target_minutes)
        if fired:
            self.changed.emit()
        elif counted:
            self.remaining_changed.emit()
        return fired

    # --- Internal -------------------------------------------------------
    def _load(self, minutes: Iterable[int]) -> None:
        for m in minutes:
            self._points.append(AlarmPoint.create(str(next(self._ids)), m))
        self._sort()

    def _sort(self) -> None:
        self._points.sort(key=lambda p: p.target_minutes)


__all__ = ["AlarmPointSet", "elapsed_message"]
