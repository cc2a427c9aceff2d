from comm_timer.alert_dispatcher import (
    DEFAULT_TITLE,
    TIME_UP_TITLE,
    VIBRATION_PATTERN_MS,
    AlertDispatcher,
    ringing_title,
)
from comm_timer.channels import AlertChannels, ChannelUnavailable
from comm_timer.config import AlertToggles
from comm_timer.models import AlertSettings
from comm_timer.tone import ToneSynthesizer

from conftest import RecordingAudio, RecordingNotifier, RecordingVibrator

SETTINGS = AlertSettings(volume_level=44, tone_frequency_hz=340)


def drive(dispatcher, clock, seconds, step=1.0):
    steps = int(seconds / step)
    for _ in range(steps):
        dispatcher.tick(clock.advance(step))


def test_fire_fans_out_to_every_channel(dispatcher, channels):
    ringing = []
    dispatcher.ringing_changed.connect(ringing.append)

    episode = dispatcher.fire(SETTINGS, "30 minutes have passed")

    assert episode.active and episode.repeats_fired == 0
    assert dispatcher.is_ringing and dispatcher.is_flashing
    assert ringing == [True]
    assert len(channels.audio.clips) == 1
    assert channels.audio.clips[0].frequency_hz == 340
    assert channels.vibrator.patterns == [VIBRATION_PATTERN_MS]
    assert channels.notifier.sent == [("Comm Time", "30 minutes have passed", "comm-time-alarm", True)]
    assert sorted(episode.live_timers()) == ["flash", "repeat", "title"]


def test_episode_is_bounded_to_six_tones(dispatcher, channels, clock):
    finished = []
    dispatcher.episode_finished.connect(finished.append)
    episode = dispatcher.fire(SETTINGS, "Time is up!")

    drive(dispatcher, clock, 60)

    assert len(channels.audio.clips) == 6
    assert len(channels.vibrator.patterns) == 6
    assert episode.repeats_fired == 6
    assert episode.active is False
    assert episode.live_timers() == []
    assert not dispatcher.is_ringing
    assert not dispatcher.is_flashing
    assert dispatcher.title == DEFAULT_TITLE
    assert finished == ["completed"]


def test_episode_ends_at_thirty_seconds(dispatcher, clock):
    dispatcher.fire(SETTINGS)
    drive(dispatcher, clock, 29)
    assert dispatcher.is_ringing
    drive(dispatcher, clock, 1)
    assert not dispatcher.is_ringing


def test_late_ticks_do_not_burst_tones(dispatcher, channels, clock):
    dispatcher.fire(SETTINGS)
    # Host suspended for 12 s: two intervals missed, one catch-up repeat.
    dispatcher.tick(clock.advance(12))
    assert len(channels.audio.clips) == 2
    assert dispatcher.episode.repeats_fired == 1


def test_title_blinks_and_is_restored(dispatcher, channels, clock):
    dispatcher.fire(SETTINGS, "Break time")
    dispatcher.tick(clock.advance(0.5))
    assert dispatcher.title == ringing_title("Break time")
    dispatcher.tick(clock.advance(0.5))
    assert dispatcher.title == TIME_UP_TITLE
    dispatcher.stop()
    assert dispatcher.title == DEFAULT_TITLE
    assert channels.title.titles[-1] == DEFAULT_TITLE


def test_stop_is_idempotent_without_episode(dispatcher):
    ringing = []
    dispatcher.ringing_changed.connect(ringing.append)
    dispatcher.stop()
    dispatcher.stop()
    assert ringing == []
    assert dispatcher.episode is None


def test_new_fire_tears_down_previous_episode(dispatcher, clock):
    reasons = []
    dispatcher.episode_finished.connect(reasons.append)
    first = dispatcher.fire(SETTINGS, "first")
    dispatcher.tick(clock.advance(2))
    second = dispatcher.fire(SETTINGS, "second")

    assert first.active is False
    assert first.live_timers() == []
    assert second.active is True
    assert dispatcher.episode is second
    assert reasons == ["replaced"]
    assert dispatcher.is_ringing


def test_failing_channel_does_not_block_others(qtbot, clock):
    class BrokenAudio:
        def play(self, clip):
            raise OSError("device busy")

    vib = RecordingVibrator()
    notifier = RecordingNotifier()
    d = AlertDispatcher(
        ToneSynthesizer(lambda: 8000),
        AlertChannels(audio=BrokenAudio(), vibrator=vib, notifier=notifier),
        AlertToggles(notifications=True, notification_permission="granted"),
        time_provider=clock,
    )
    diagnostics = []
    d.diagnostic.connect(lambda ch, msg: diagnostics.append(ch))

    episode = d.fire(SETTINGS, "hello")

    assert episode.tones_played == 0
    assert vib.patterns and notifier.sent
    assert "audio" in diagnostics
    assert d.is_ringing


def test_missing_channels_degrade_gracefully(qtbot, clock):
    d = AlertDispatcher(ToneSynthesizer(lambda: None), AlertChannels(), AlertToggles(), time_provider=clock)
    diagnostics = []
    d.diagnostic.connect(lambda ch, msg: diagnostics.append(ch))

    d.fire(SETTINGS)
    for _ in range(31):
        d.tick(clock.advance(1))

    assert "audio" in diagnostics
    assert "vibration" in diagnostics
    assert not d.is_ringing


def test_unavailable_vibration_is_reported(qtbot, clock):
    class NoMotor:
        def vibrate(self, pattern_ms):
            raise ChannelUnavailable("no motor")

    d = AlertDispatcher(
        ToneSynthesizer(lambda: 8000),
        AlertChannels(audio=RecordingAudio(), vibrator=NoMotor()),
        time_provider=clock,
    )
    diagnostics = []
    d.diagnostic.connect(lambda ch, msg: diagnostics.append((ch, msg)))
    d.fire(SETTINGS)
    assert ("vibration", "no motor") in diagnostics


def test_disabled_toggles_skip_channels(dispatcher, channels):
    dispatcher.set_toggles(AlertToggles(vibration=False, flash=False, notifications=False))
    dispatcher.fire(SETTINGS)
    assert channels.vibrator.patterns == []
    assert channels.notifier.sent == []
    assert not dispatcher.is_flashing
    assert dispatcher.episode.live_timers() == ["repeat", "title"]


def test_notification_needs_granted_permission(dispatcher, channels):
    dispatcher.set_toggles(AlertToggles(notifications=True, notification_permission="denied"))
    dispatcher.fire(SETTINGS)
    assert channels.notifier.sent == []


def test_click_acknowledges_only_when_not_flashing(dispatcher):
    dispatcher.fire(SETTINGS)
    assert dispatcher.acknowledge_by_click() is False
    assert dispatcher.is_ringing

    dispatcher.set_toggles(AlertToggles(flash=False))
    dispatcher.fire(SETTINGS)
    assert dispatcher.acknowledge_by_click() is True
    assert not dispatcher.is_ringing


def test_flash_clears_after_thirty_seconds_on_long_episode(dispatcher, clock):
    episode = dispatcher.fire(SETTINGS)
    episode.max_repeats = 100
    drive(dispatcher, clock, 29)
    assert dispatcher.is_flashing
    drive(dispatcher, clock, 1)
    assert not dispatcher.is_flashing
    assert dispatcher.is_ringing


def test_force_focus(dispatcher, channels):
    dispatcher.set_toggles(AlertToggles(force_focus=True))
    dispatcher.fire(SETTINGS)
    assert channels.focus.calls == 1


def test_running_title_is_suppressed_while_ringing(dispatcher):
    dispatcher.show_running_title("CT (00:00:05)")
    assert dispatcher.title == "CT (00:00:05)"
    dispatcher.fire(SETTINGS)
    dispatcher.show_running_title("CT (00:00:06)")
    assert dispatcher.title == "CT (00:00:05)"


def test_tick_sound_only_when_enabled(dispatcher, channels):
    dispatcher.play_tick_sound()
    assert channels.audio.clips == []
    dispatcher.set_toggles(AlertToggles(tick_sound=True, tick_volume=5))
    dispatcher.play_tick_sound()
    assert len(channels.audio.clips) == 1
    assert channels.audio.clips[0].frequency_hz == 800


def test_toggle_notifications_requests_permission(qtbot, clock):
    notifier = RecordingNotifier(permission="granted")
    d = AlertDispatcher(
        ToneSynthesizer(lambda: 8000),
        AlertChannels(notifier=notifier),
        AlertToggles(notifications=False, notification_permission="default"),
        time_provider=clock,
    )
    assert d.toggle_notifications() is True
    assert d.toggles.notification_permission == "granted"
    assert notifier.sent[0][1] == "Notifications enabled"
    assert d.toggle_notifications() is False


def test_toggle_notifications_denied_stays_off(qtbot, clock):
    d = AlertDispatcher(
        ToneSynthesizer(lambda: 8000),
        AlertChannels(notifier=RecordingNotifier(permission="denied")),
        AlertToggles(notifications=False, notification_permission="default"),
        time_provider=clock,
    )
    assert d.toggle_notifications() is False
    assert d.toggles.notification_permission == "denied"


def test_desktop_vibrator_reports_unavailable(qtbot, clock):
    from comm_timer.qt_channels import NoVibrator

    d = AlertDispatcher(ToneSynthesizer(lambda: 8000), AlertChannels(vibrator=NoVibrator()), time_provider=clock)
    diagnostics = []
    d.diagnostic.connect(lambda ch, msg: diagnostics.append((ch, msg)))
    d.fire(SETTINGS)
    assert ("vibration", "vibration not supported on this host") in diagnostics
