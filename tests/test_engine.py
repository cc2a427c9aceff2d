import pytest

from comm_timer.config import BREAK_ALERT, AlertToggles, EngineConfig, PomodoroConfig
from comm_timer.engine import COUNTDOWN_MESSAGE, CommTimeEngine
from comm_timer.models import AlertSettings


@pytest.fixture()
def engine(dispatcher, clock):
    return CommTimeEngine(dispatcher, time_provider=clock)


def run(engine, clock, seconds):
    for _ in range(seconds):
        engine.tick(clock.advance(1))


def test_countdown_reaching_target_fires_time_up(engine, clock, channels):
    engine.set_countdown(True, "12:01")
    engine.start_meeting()
    run(engine, clock, 59)
    assert not engine.dispatcher.is_ringing
    run(engine, clock, 1)
    assert engine.dispatcher.is_ringing
    assert engine.dispatcher.episode.message == COUNTDOWN_MESSAGE
    assert engine.meeting.state == "paused"
    assert len(channels.audio.clips) == 1
    assert channels.audio.clips[0].frequency_hz == 340


def test_alarm_point_fires_through_dispatcher(dispatcher, clock, channels):
    engine = CommTimeEngine(dispatcher, EngineConfig(alarm_minutes=(1, 2)), time_provider=clock)
    engine.start_meeting()
    run(engine, clock, 60)
    assert engine.dispatcher.episode.message == "1 minutes have passed"
    assert [p.done for p in engine.alarm_points.points] == [True, False]


def test_alarm_points_only_advance_while_meeting_runs(dispatcher, clock):
    engine = CommTimeEngine(dispatcher, EngineConfig(alarm_minutes=(1,)), time_provider=clock)
    engine.start_meeting()
    run(engine, clock, 30)
    engine.pause_meeting()
    run(engine, clock, 300)
    assert engine.alarm_points.points[0].remaining_seconds == 30
    assert not engine.dispatcher.is_ringing


def test_running_title_follows_meeting(engine, clock):
    engine.start_meeting()
    run(engine, clock, 5)
    assert engine.dispatcher.title == "CT (00:00:05)"
    engine.pause_meeting()
    assert engine.dispatcher.title == "CT"


def test_reset_meeting_restores_default_points(engine, clock):
    engine.start_meeting()
    run(engine, clock, 10)
    engine.add_alarm_point()
    engine.remove_alarm_point(engine.alarm_points.points[-1].id)
    engine.reset_meeting()
    assert engine.meeting.state == "idle"
    assert [p.target_minutes for p in engine.alarm_points.points] == [30, 50, 60]


def test_add_alarm_point_uses_elapsed_meeting_time(engine, clock):
    engine.start_meeting()
    run(engine, clock, 125)
    point = engine.add_alarm_point()
    assert point.target_minutes == 3
    assert engine.link_task_to_alarm_point("task-1", point.id)
    assert engine.alarm_points.get(point.id).linked_task_id == "task-1"


def test_set_tasks_accepts_mappings_and_drops_malformed(engine, clock):
    engine.set_tasks([
        {"id": "a", "text": "Ship release", "isCompleted": False, "dueDate": "2025-01-01", "dueTime": "12:30"},
        {"text": "no id"},
    ])
    assert [t.id for t in engine.tasks] == ["a"]
    engine.tick(clock.advance(1))
    assert engine.dispatcher.episode.message == "Deadline approaching: Ship release (in 30 min)"


def test_task_due_changed_rearms_alert(engine, clock):
    engine.set_tasks([{"id": "a", "text": "x", "dueDate": "2025-01-01", "dueTime": "12:30"}])
    engine.tick(clock.advance(1))
    engine.acknowledge()
    engine.task_due_changed("a")
    run(engine, clock, 60)
    assert engine.dispatcher.is_ringing


def test_test_alarm_uses_kind_settings(engine):
    engine.test_alarm("break")
    assert engine.dispatcher.episode.settings == BREAK_ALERT
    assert engine.dispatcher.episode.message == "Break alarm test"


def test_alert_clock_runs_only_while_ringing(engine):
    assert not engine._alert_clock.isActive()
    engine.test_alarm()
    assert engine._alert_clock.isActive()
    engine.acknowledge()
    assert not engine._alert_clock.isActive()


def test_set_alert_settings_clamps(engine):
    engine.set_alert_settings("work", AlertSettings(volume_level=500, tone_frequency_hz=5))
    assert engine.settings_for("work") == AlertSettings(volume_level=100, tone_frequency_hz=100)
    engine.set_alert_settings("meeting", AlertSettings(volume_level=10, tone_frequency_hz=900))
    assert engine.alarm_points.settings == AlertSettings(volume_level=10, tone_frequency_hz=900)


def test_reset_pomodoro_restores_default_config(engine, clock):
    engine.update_pomodoro_config(PomodoroConfig(work_minutes=1, break_minutes=1))
    engine.start_pomodoro()
    run(engine, clock, 61)
    assert engine.pomodoro.phase == "break"
    engine.reset_pomodoro()
    assert engine.config.pomodoro == PomodoroConfig()
    assert engine.pomodoro.phase == "work"


def test_tick_sound_plays_while_a_timer_runs(engine, clock, channels):
    engine.set_toggles(AlertToggles(tick_sound=True))
    run(engine, clock, 3)
    assert channels.audio.clips == []
    engine.start_pomodoro()
    run(engine, clock, 3)
    assert len(channels.audio.clips) == 3


def test_snapshot(engine, clock):
    engine.start_meeting()
    run(engine, clock, 3)
    snap = engine.snapshot()
    assert snap.meeting_seconds == 3
    assert snap.meeting_running
    assert snap.meeting_mode == "count_up"
    assert len(snap.alarm_points) == 3
    assert snap.pomodoro_phase == "work"
    assert not snap.alarm_ringing


def test_apply_config(engine):
    cfg = EngineConfig.from_mapping({"deadline.threshold_minutes": 5, "alerts.flash": "off"})
    engine.apply_config(cfg)
    assert engine.deadlines.threshold_minutes == 5
    assert engine.dispatcher.toggles.flash is False
    engine.test_alarm()
    assert not engine.dispatcher.is_flashing


def test_non_text_due_date_does_not_stall_the_tick(engine, clock):
    engine.set_tasks([{"id": "a", "dueDate": 20250101}])
    engine.test_alarm()
    run(engine, clock, 31)
    assert not engine.dispatcher.is_ringing
