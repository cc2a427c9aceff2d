from __future__ import annotations

"""Timer & alert engine: composes the trackers, alarm points, pomodoro and
deadline watch around a single alert dispatcher.

The host drives everything through ``tick(now)``. ``start_clock()`` wires two
``QTimer``s for real use: a 1 s engine clock and a 250 ms alert clock that only
runs while an episode is ringing (the title blink needs sub-second steps).
"""

from dataclasses import dataclass, replace
from datetime import datetime
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple

from PyQt6.QtCore import QObject, QTimer

from .alarm_points import AlarmPointSet
from .alert_dispatcher import AlertDispatcher
from .config import AlertToggles, EngineConfig, PomodoroConfig
from .deadline_scanner import DeadlineScanner
from .models import AlarmPoint, AlertKind, AlertSettings, Phase, TaskRecord, TimerMode
from .pomodoro import PomodoroCycle
from .time_tracker import TimeProvider, TimeTracker
from .timefmt import running_title

logger = logging.getLogger(__name__)

ENGINE_TICK_MS = 1000
ALERT_TICK_MS = 250
COUNTDOWN_MESSAGE = "Time is up!"


@dataclass(slots=True, frozen=True)
class EngineSnapshot:
    meeting_seconds: int
    meeting_running: bool
    meeting_mode: TimerMode
    alarm_points: Tuple[AlarmPoint, ...]
    pomodoro_seconds: int
    pomodoro_running: bool
    pomodoro_phase: Phase
    cycles_completed: int
    alarm_ringing: bool
    flashing: bool


class CommTimeEngine(QObject):
    def __init__(
        self,
        dispatcher: AlertDispatcher,
        config: EngineConfig | None = None,
        time_provider: Optional[TimeProvider] = None,
    ) -> None:
        super().__init__()
        self._config = config or EngineConfig()
        self._time_provider: TimeProvider = time_provider or datetime.now
        self.dispatcher = dispatcher
        self.dispatcher.set_toggles(self._config.toggles)

        self.meeting = TimeTracker("count_up", self._time_provider)
        self.alarm_points = AlarmPointSet(dispatcher, self._config.meeting_alert, self._config.alarm_minutes)
        self.pomodoro = PomodoroCycle(dispatcher, self._config.pomodoro, self._time_provider)
        self.deadlines = DeadlineScanner(dispatcher, self._config.deadline_alert, self._config.deadline_watch)
        self._tasks: Tuple[TaskRecord, ...] = ()
        self._tick_now: Optional[datetime] = None

        self.meeting.countdown_finished.connect(self._on_countdown_finished)
        self.meeting.state_changed.connect(self._on_meeting_state)

        self._clock = QTimer(self)
        self._clock.setInterval(ENGINE_TICK_MS)
        self._clock.timeout.connect(self._on_clock)
        self._alert_clock = QTimer(self)
        self._alert_clock.setInterval(ALERT_TICK_MS)
        self._alert_clock.timeout.connect(self._on_alert_clock)
        self.dispatcher.ringing_changed.connect(self._on_ringing_changed)

    # --- Clock ----------------------------------------------------------
    def start_clock(self) -> None:
        self._clock.start()

    def stop_clock(self) -> None:
        self._clock.stop()
        self._alert_clock.stop()

    def tick(self, now: Optional[datetime] = None) -> None:
        now = now or self._time_provider()
        self._tick_now = now
        if self.meeting.running:
            self.meeting.tick(now)
            self.alarm_points.tick(now)
            self.dispatcher.show_running_title(running_title(self.meeting.displayed_seconds))
        self.pomodoro.tick(now)
        if self.meeting.running or self.pomodoro.running:
            self.dispatcher.play_tick_sound()
        self.deadlines.tick(now, self._tasks)
        self.dispatcher.tick(now)

    def _on_clock(self) -> None:
        self.tick(self._time_provider())

    def _on_alert_clock(self) -> None:
        self.dispatcher.tick(self._time_provider())

    def _on_ringing_changed(self, ringing: bool) -> None:
        if ringing:
            self._alert_clock.start()
        else:
            self._alert_clock.stop()

    def _on_countdown_finished(self) -> None:
        self.dispatcher.fire(self._config.meeting_alert, COUNTDOWN_MESSAGE, self._tick_now or self._time_provider())

    def _on_meeting_state(self, state: str) -> None:
        if state != "running":
            self.dispatcher.show_running_title(running_title(None))

    # --- Meeting timer --------------------------------------------------
    def start_meeting(self, now: Optional[datetime] = None) -> None:
        self.meeting.start(now)

    def pause_meeting(self, now: Optional[datetime] = None) -> None:
        self.meeting.pause(now)

    def toggle_meeting(self, now: Optional[datetime] = None) -> None:
        self.meeting.toggle(now)

    def reset_meeting(self) -> None:
        self.meeting.reset()
        self.alarm_points.restore_defaults()

    def set_countdown(self, enabled: bool, target: Optional[str] = None) -> None:
        self.meeting.set_mode("count_down" if enabled else "count_up")
        if target is not None:
            self.meeting.set_target_end(target)

    # --- Alarm points ---------------------------------------------------
    def add_alarm_point(self, minutes: Optional[int] = None) -> AlarmPoint:
        return self.alarm_points.add(minutes, elapsed_seconds=self.meeting.elapsed_seconds)

    def update_alarm_point(self, point_id: str, minutes: int) -> bool:
        return self.alarm_points.update(point_id, minutes)

    def remove_alarm_point(self, point_id: str) -> bool:
        return self.alarm_points.remove(point_id)

    def link_task_to_alarm_point(self, task_id: Optional[str], point_id: str) -> bool:
        return self.alarm_points.link_task(point_id, task_id)

    # --- Pomodoro -------------------------------------------------------
    def start_pomodoro(self, now: Optional[datetime] = None) -> None:
        self.pomodoro.start(now)

    def pause_pomodoro(self, now: Optional[datetime] = None) -> None:
        self.pomodoro.pause(now)

    def toggle_pomodoro(self, now: Optional[datetime] = None) -> None:
        self.pomodoro.toggle(now)

    def reset_pomodoro(self) -> None:
        self.pomodoro.reset()
        self._config.pomodoro = self.pomodoro.config()

    def update_pomodoro_config(self, cfg: PomodoroConfig) -> None:
        self.pomodoro.update_config(cfg)
        self._config.pomodoro = self.pomodoro.config()

    def set_infinite_mode(self, enabled: bool) -> None:
        self.pomodoro.set_infinite_mode(enabled)
        self._config.pomodoro = self.pomodoro.config()

    # --- Deadline watch -------------------------------------------------
    def set_tasks(self, tasks: Iterable[TaskRecord | Mapping[str, Any]]) -> None:
        records = []
        for t in tasks:
            if isinstance(t, TaskRecord):
                records.append(t)
                continue
            try:
                records.append(TaskRecord.from_mapping(t))
            except (KeyError, TypeError) as exc:
                logger.info("ignoring malformed task %r: %s", t, exc)
        self._tasks = tuple(records)

    @property
    def tasks(self) -> Sequence[TaskRecord]:
        return self._tasks

    def task_due_changed(self, task_id: str) -> None:
        self.deadlines.forget(task_id)

    def set_deadline_watch(self, enabled: bool, threshold_minutes: Optional[int] = None) -> None:
        self.deadlines.set_enabled(enabled)
        if threshold_minutes is not None:
            self.deadlines.set_threshold(threshold_minutes)
        self._config.deadline_watch = replace(
            self._config.deadline_watch,
            enabled=self.deadlines.enabled,
            threshold_minutes=self.deadlines.threshold_minutes,
        )

    # --- Alerts ---------------------------------------------------------
    def settings_for(self, kind: AlertKind) -> AlertSettings:
        if kind == "work":
            return self._config.pomodoro.work_alert
        if kind == "break":
            return self._config.pomodoro.break_alert
        if kind == "deadline":
            return self._config.deadline_alert
        return self._config.meeting_alert

    def set_alert_settings(self, kind: AlertKind, settings: AlertSettings) -> None:
        s = settings.clamped()
        if kind == "work":
            self.update_pomodoro_config(replace(self._config.pomodoro, work_alert=s))
        elif kind == "break":
            self.update_pomodoro_config(replace(self._config.pomodoro, break_alert=s))
        elif kind == "deadline":
            self._config.deadline_alert = s
            self.deadlines.settings = s
        else:
            self._config.meeting_alert = s
            self.alarm_points.settings = s

    def test_alarm(self, kind: AlertKind = "meeting") -> None:
        self.dispatcher.fire(self.settings_for(kind), f"{kind.capitalize()} alarm test", self._time_provider())

    def set_toggles(self, toggles: AlertToggles) -> None:
        self._config.toggles = toggles
        self.dispatcher.set_toggles(toggles)

    def toggle_notifications(self) -> bool:
        return self.dispatcher.toggle_notifications()

    def acknowledge(self) -> None:
        self.dispatcher.acknowledge()

    def acknowledge_by_click(self) -> bool:
        return self.dispatcher.acknowledge_by_click()

    # --- Configuration & state -----------------------------------------
    @property
    def config(self) -> EngineConfig:
        return self._config

    def apply_config(self, cfg: EngineConfig) -> None:
        self._config = cfg
        self.set_toggles(cfg.toggles)
        self.alarm_points.settings = cfg.meeting_alert
        self.deadlines.settings = cfg.deadline_alert
        self.pomodoro.update_config(cfg.pomodoro)
        self.set_deadline_watch(cfg.deadline_watch.enabled, cfg.deadline_watch.threshold_minutes)

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            meeting_seconds=self.meeting.displayed_seconds,
            meeting_running=self.meeting.running,
            meeting_mode=self.meeting.mode,
            alarm_points=self.alarm_points.points,
            pomodoro_seconds=self.pomodoro.elapsed_seconds,
            pomodoro_running=self.pomodoro.running,
            pomodoro_phase=self.pomodoro.phase,
            cycles_completed=self.pomodoro.cycles_completed,
            alarm_ringing=self.dispatcher.is_ringing,
            flashing=self.dispatcher.is_flashing,
        )


__all__ = ["CommTimeEngine", "EngineSnapshot", "COUNTDOWN_MESSAGE", "ENGINE_TICK_MS", "ALERT_TICK_MS"]
