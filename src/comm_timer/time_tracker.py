from __future__ import annotations

"""Anchor-based time tracker for a single timer.

Design:
 - State machine: idle -> running -> paused -> running ... -> idle (reset).
 - Elapsed time is always recomputed from the wall-clock anchor, never by
   adding one per tick, so late or skipped ticks (suspended host) self-correct.
 - Count-down mode tracks a time-of-day target; a target earlier than the
   moment the session started means "tomorrow".
 - Emits Qt signals for UI binding; ``tick(now)`` is the only driver.
"""

from datetime import datetime, time, timedelta
import logging
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from .models import TimerMode, TimerState, parse_hhmm

logger = logging.getLogger(__name__)

TimeProvider = Callable[[], datetime]


def resolve_target(target: time, started_at: datetime) -> datetime:
    target_dt = datetime.combine(started_at.date(), target)
    if target_dt < started_at:
        target_dt += timedelta(days=1)
    return target_dt


class TimeTracker(QObject):
    seconds_changed = pyqtSignal(int)  # displayed seconds (elapsed or remaining)
    state_changed = pyqtSignal(str)
    countdown_finished = pyqtSignal()

    def __init__(self, mode: TimerMode = "count_up", time_provider: Optional[TimeProvider] = None) -> None:
        super().__init__()
        self._time_provider: TimeProvider = time_provider or datetime.now
        self._mode: TimerMode = mode
        self._state: TimerState = "idle"
        self._anchor: Optional[datetime] = None
        self._accumulated: float = 0.0
        self._started_at: Optional[datetime] = None
        self._target_time: Optional[time] = None
        self._target_dt: Optional[datetime] = None
        self._elapsed: int = 0
        self._remaining: int = 0

    # --- Properties -----------------------------------------------------
    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state == "running"

    @property
    def mode(self) -> TimerMode:
        return self._mode

    @property
    def anchor(self) -> Optional[datetime]:
        return self._anchor

    @property
    def accumulated_seconds(self) -> float:
        return self._accumulated

    @property
    def elapsed_seconds(self) -> int:
        return self._elapsed

    @property
    def remaining_seconds(self) -> int:
        return self._remaining

    @property
    def displayed_seconds(self) -> int:
        return self._remaining if self._mode == "count_down" else self._elapsed

    @property
    def target_end(self) -> Optional[datetime]:
        return self._target_dt

    def _set_state(self, new_state: TimerState) -> None:
        if new_state != self._state:
            self._state = new_state
            self.state_changed.emit(new_state)

    # --- Configuration --------------------------------------------------
    def set_mode(self, mode: TimerMode) -> None:
        if mode == self._mode:
            return
        if self._state != "idle":
            logger.info("mode change ignored while %s", self._state)
            return
        self._mode = mode

    def set_target_end(self, target: time | str | None) -> None:
        """Set the count-down end as a clock time; malformed input is ignored."""
        if isinstance(target, str):
            parsed = parse_hhmm(target)
            if parsed is None:
                return
            target = parsed
        self._target_time = target
        if target is None:
            self._target_dt = None
            return
        if self._started_at is not None:
            # Remaining is left for the next tick so a target moved into the
            # past still reads as a positive-to-zero transition.
            self._target_dt = resolve_target(target, self._started_at)

    # --- Public API -----------------------------------------------------
    def start(self, now: Optional[datetime] = None) -> None:
        if self._state == "running":
            return
        now = now or self._time_provider()
        if self._state == "idle":
            self._accumulated = 0.0
            self._started_at = now
            if self._target_time is not None:
                self._target_dt = resolve_target(self._target_time, now)
        resuming = self._state == "paused"
        self._anchor = now
        self._set_state("running")
        # A resumed count-down keeps its last value so the next tick can see
        # the positive-to-zero transition even if the target passed meanwhile.
        self._refresh(now, include_remaining=not resuming)

    def pause(self, now: Optional[datetime] = None) -> None:
        if self._state != "running" or self._anchor is None:
            return
        now = now or self._time_provider()
        self._accumulated += max(0.0, (now - self._anchor).total_seconds())
        self._anchor = None
        self._set_state("paused")
        self._refresh(now, include_remaining=False)

    def toggle(self, now: Optional[datetime] = None) -> None:
        if self._state == "running":
            self.pause(now)
        else:
            self.start(now)

    def reset(self) -> None:
        self._accumulated = 0.0
        self._anchor = None
        self._started_at = None
        self._target_dt = None
        self._elapsed = 0
        self._remaining = 0
        self._set_state("idle")
        self.seconds_changed.emit(0)

    def restart_phase(self, now: datetime) -> None:
        """Zero the accumulated time and re-anchor at ``now`` without stopping."""
        self._accumulated = 0.0
        self._elapsed = 0
        if self._state == "running":
            self._anchor = now

    def tick(self, now: datetime) -> int:
        if self._state != "running":
            return self.displayed_seconds
        previous_remaining = self._remaining
        self._refresh(now)
        if self._mode == "count_down" and previous_remaining > 0 and self._remaining == 0:
            self.pause(now)
            self.countdown_finished.emit()
        return self.displayed_seconds

    def effective_start(self, now: datetime) -> datetime:
        """Instant the timer would have started had it never been paused."""
        return now - timedelta(seconds=self._current_elapsed(now))

    # --- Internal -------------------------------------------------------
    def _current_elapsed(self, now: datetime) -> float:
        running_part = 0.0
        if self._state == "running" and self._anchor is not None:
            running_part = max(0.0, (now - self._anchor).total_seconds())
        return self._accumulated + running_part

    def _compute_remaining(self, now: datetime) -> int:
        if self._target_dt is None:
            return 0
        return max(0, int((self._target_dt - now).total_seconds()))

    def _refresh(self, now: datetime, include_remaining: bool = True) -> None:
        self._elapsed = int(self._current_elapsed(now))
        if self._mode == "count_down" and include_remaining:
            self._remaining = self._compute_remaining(now)
        self.seconds_changed.emit(self.displayed_seconds)


__all__ = ["TimeTracker", "resolve_target"]
