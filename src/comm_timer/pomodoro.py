from __future__ import annotations

"""Pomodoro cycle state machine.

Features:
 - Work/break phases with configurable lengths, on top of a count-up TimeTracker.
 - Phase boundary re-anchors the tracker and fires the phase's alert.
 - A cycle completes on every break -> work transition; after ``cycles``
   completed cycles the session stops (counters kept) unless infinite mode is on.
 - Config changes apply from the next boundary; elapsed time is never moved.
"""

from dataclasses import replace
from datetime import datetime, timedelta
import logging
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from .alert_dispatcher import AlertDispatcher
from .config import PomodoroConfig
from .models import AlertSettings, Phase
from .time_tracker import TimeProvider, TimeTracker

logger = logging.getLogger(__name__)

WORK_MESSAGE = "Break is over! Time to get back to work"
BREAK_MESSAGE = "Good work! Time for a break"


class PomodoroCycle(QObject):
    seconds_changed = pyqtSignal(int)  # elapsed seconds in the current phase
    phase_changed = pyqtSignal(str)  # work|break
    cycle_completed = pyqtSignal(int)  # completed cycles count
    running_changed = pyqtSignal(bool)
    finished = pyqtSignal(int)  # cycle limit reached

    def __init__(
        self,
        dispatcher: AlertDispatcher,
        config: PomodoroConfig | None = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> None:
        super().__init__()
        self._dispatcher = dispatcher
        self._config = (config or PomodoroConfig()).normalized()
        self._tracker = TimeTracker("count_up", time_provider)
        self._tracker.seconds_changed.connect(self.seconds_changed)
        self._tracker.state_changed.connect(lambda s: self.running_changed.emit(s == "running"))
        self._phase: Phase = "work"
        self._cycles_completed = 0

    # Properties -------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    @property
    def running(self) -> bool:
        return self._tracker.running

    @property
    def elapsed_seconds(self) -> int:
        return self._tracker.elapsed_seconds

    @property
    def tracker(self) -> TimeTracker:
        return self._tracker

    def config(self) -> PomodoroConfig:
        return self._config

    def phase_duration_seconds(self, phase: Optional[Phase] = None) -> int:
        phase = phase or self._phase
        minutes = self._config.work_minutes if phase == "work" else self._config.break_minutes
        return minutes * 60

    def remaining_seconds(self) -> int:
        return max(0, self.phase_duration_seconds() - self._tracker.elapsed_seconds)

    def phase_end_time(self, now: datetime) -> Optional[datetime]:
        if self._tracker.state == "idle":
            return None
        return self._tracker.effective_start(now) + timedelta(seconds=self.phase_duration_seconds())

    # Public API -------------------------------------------------------
    def start(self, now: Optional[datetime] = None) -> None:
        self._tracker.start(now)

    def pause(self, now: Optional[datetime] = None) -> None:
        self._tracker.pause(now)

    def toggle(self, now: Optional[datetime] = None) -> None:
        self._tracker.toggle(now)

    def reset(self, *, restore_defaults: bool = True) -> None:
        self._tracker.reset()
        if self._phase != "work":
            self._phase = "work"
            self.phase_changed.emit("work")
        self._cycles_completed = 0
        self.cycle_completed.emit(0)
        if restore_defaults:
            self._config = PomodoroConfig()

    def update_config(self, cfg: PomodoroConfig) -> None:
        self._config = cfg.normalized()

    def set_infinite_mode(self, enabled: bool) -> None:
        self._config = replace(self._config, infinite_mode=bool(enabled))

    # Driver -----------------------------------------------------------
    def tick(self, now: datetime) -> None:
        if not self._tracker.running:
            return
        elapsed = self._tracker.tick(now)
        if elapsed < self.phase_duration_seconds():
            return
        self._advance_phase(now)

    def _advance_phase(self, now: datetime) -> None:
        new_phase: Phase = "break" if self._phase == "work" else "work"
        self._phase = new_phase
        self._tracker.restart_phase(now)
        self.seconds_changed.emit(0)
        self.phase_changed.emit(new_phase)
        settings: AlertSettings
        if new_phase == "work":
            settings, message = self._config.work_alert, WORK_MESSAGE
        else:
            settings, message = self._config.break_alert, BREAK_MESSAGE
        self._dispatcher.fire(settings, message, now)
        if new_phase == "work":
            self._cycles_completed += 1
            self.cycle_completed.emit(self._cycles_completed)
        if not self._config.infinite_mode and self._cycles_completed >= self._config.cycles:
            logger.info("pomodoro cycle limit reached", extra={"_json_cycles": self._cycles_completed})
            self._tracker.pause(now)
            self.finished.emit(self._cycles_completed)


__all__ = ["PomodoroCycle", "WORK_MESSAGE", "BREAK_MESSAGE"]
