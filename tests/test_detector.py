"""Tests for the hysteresis state machine, marker policy and stall watchdog."""

from __future__ import annotations

import pytest

from autotrack.config import DetectorParams
from autotrack.detector import MotionStateDetector
from autotrack.models import LocationSample, MotionState

# Short window (5 samples at 1 Hz) so the rolling average follows the input closely.
SMALL = DetectorParams(
    window_duration_ms=4_000,
    entry_hysteresis_ms=6_000,
    exit_hysteresis_ms=4_000,
    confirm_stationary_ms=5_000,
)


def _sample(t: int, speed: float | None, accuracy: float | None = 5.0) -> LocationSample:
    return LocationSample(time_ms=t, speed_mps=speed, accuracy_m=accuracy, latitude=31.23, longitude=121.47)


def _feed(det: MotionStateDetector, start_ms: int, stop_ms: int, speed: float, step_ms: int = 1_000) -> None:
    for t in range(start_ms, stop_ms + 1, step_ms):
        det.ingest(_sample(t, speed))


@pytest.fixture()
def driving(recorder) -> MotionStateDetector:
    """Detector that entered IN_VEHICLE from three 8 m/s fixes."""

    det = MotionStateDetector(recorder=recorder)
    for t in (0, 5_000, 10_000):
        det.ingest(_sample(t, 8.0))
    return det


def test_initial_state():
    det = MotionStateDetector()
    assert det.state is MotionState.UNKNOWN
    assert len(det.window) == 0
    assert det.timers.is_clear
    assert det.last_known_sample() is None
    assert det.last_known_sample_time_ms() is None


def test_enters_vehicle_from_unknown_and_starts_track(driving, recorder):
    assert driving.state is MotionState.IN_VEHICLE
    assert recorder.calls == ["start"]
    assert not driving.should_start_recording
    assert driving.timers.is_clear


def test_waits_for_minimum_window_size(recorder):
    det = MotionStateDetector(recorder=recorder)
    det.ingest(_sample(0, 8.0))
    det.ingest(_sample(5_000, 8.0))
    assert det.state is MotionState.UNKNOWN
    assert det.messages.value == "Not enough data points: 2/3"
    assert det.last_known_sample_time_ms() == 5_000
    assert recorder.calls == []


def test_unknown_needs_half_entry_hysteresis_span():
    det = MotionStateDetector()
    for t in (0, 1_000, 2_000, 3_000):
        det.ingest(_sample(t, 8.0))
    assert det.state is MotionState.UNKNOWN
    det.ingest(_sample(3_500, 8.0))
    assert det.state is MotionState.IN_VEHICLE


def test_unknown_to_stationary_stops_running_recording(recorder):
    recorder.recording = True
    det = MotionStateDetector(recorder=recorder)
    _feed(det, 0, 4_000, 0.0)
    assert det.state is MotionState.UNKNOWN
    det.ingest(_sample(5_000, 0.0))
    assert det.state is MotionState.STATIONARY
    assert recorder.calls == ["end"]
    assert not det.should_stop_recording


def test_zero_speed_stop_places_one_marker_then_exits(driving, recorder):
    for t in range(11_000, 23_000, 1_000):
        driving.ingest(_sample(t, 0.0))
        assert driving.state is MotionState.IN_VEHICLE
    assert driving.timers.exit_started_ms == 13_000

    driving.ingest(_sample(23_000, 0.0))
    assert driving.state is MotionState.EXITING_VEHICLE
    assert driving.timers.exiting_started_ms == 23_000
    assert driving.timers.entry_started_ms is None
    assert recorder.calls == ["start", "marker"]
    assert driving.marker_placed


def test_exiting_confirms_stationary_and_ends_track(driving, recorder):
    _feed(driving, 11_000, 23_000, 0.0)
    _feed(driving, 24_000, 37_000, 0.0)
    assert driving.state is MotionState.EXITING_VEHICLE

    driving.ingest(_sample(38_000, 0.0))
    assert driving.state is MotionState.STATIONARY
    assert recorder.calls == ["start", "marker", "end"]
    assert driving.timers.is_clear
    assert not driving.should_stop_recording


def test_marker_flag_released_when_moving_again(recorder):
    recorder.recording = True
    det = MotionStateDetector(SMALL, recorder=recorder)
    _feed(det, 0, 3_000, 10.0)
    assert det.state is MotionState.IN_VEHICLE

    det.ingest(_sample(4_000, 0.0))
    det.ingest(_sample(5_000, 0.0))
    assert recorder.count("marker") == 1
    det.ingest(_sample(6_000, 3.0))
    assert not det.marker_placed
    det.ingest(_sample(7_000, 0.0))
    assert recorder.count("marker") == 2


def test_no_marker_when_not_recording_or_not_moving(recorder):
    det = MotionStateDetector(SMALL, recorder=recorder)
    _feed(det, 0, 5_000, 0.0)
    assert det.state is MotionState.STATIONARY
    assert recorder.count("marker") == 0

    det2 = MotionStateDetector(SMALL)
    _feed(det2, 0, 3_000, 10.0)
    det2.attach_recorder(recorder)
    recorder.recording = False
    det2.ingest(_sample(4_000, 0.0))
    assert recorder.count("marker") == 0
    assert not det2.marker_placed


def test_short_spike_does_not_leave_stationary():
    params = DetectorParams(window_duration_ms=2_000, exit_hysteresis_ms=4_000)
    det = MotionStateDetector(params)
    _feed(det, 0, 2_000, 0.0)
    assert det.state is MotionState.STATIONARY

    _feed(det, 3_000, 5_000, 20.0)
    assert det.timers.entry_started_ms == 3_000
    _feed(det, 6_000, 20_000, 0.0)
    assert det.state is MotionState.STATIONARY
    assert det.timers.entry_started_ms is None

    _feed(det, 21_000, 27_000, 20.0)
    assert det.state is MotionState.STATIONARY
    det.ingest(_sample(28_000, 20.0))
    assert det.state is MotionState.IN_VEHICLE
    assert det.should_start_recording  # no recorder attached: stays pending


def test_pending_start_issued_once_recorder_attached(recorder):
    det = MotionStateDetector()
    for t in (0, 5_000, 10_000):
        det.ingest(_sample(t, 8.0))
    assert det.state is MotionState.IN_VEHICLE
    assert det.should_start_recording

    det.attach_recorder(recorder)
    det.ingest(_sample(11_000, 8.0))
    assert recorder.calls == ["start"]
    assert not det.should_start_recording


def test_start_flag_consumed_even_if_already_recording(recorder):
    recorder.recording = True
    det = MotionStateDetector(recorder=recorder)
    for t in (0, 5_000, 10_000):
        det.ingest(_sample(t, 8.0))
    assert recorder.calls == []
    assert not det.should_start_recording


def test_recorder_failure_consumes_flag_without_raising(failing_recorder):
    failing = failing_recorder
    det = MotionStateDetector(recorder=failing)
    for t in (0, 5_000, 10_000):
        det.ingest(_sample(t, 8.0))
    assert det.state is MotionState.IN_VEHICLE
    assert failing.calls == ["start"]
    assert not det.should_start_recording
    assert "failed" in det.messages.value

    det.ingest(_sample(11_000, 8.0))
    assert failing.calls == ["start"]


def test_ambiguous_band_in_exiting_resets_timers(recorder):
    det = MotionStateDetector(SMALL, recorder=recorder)
    _feed(det, 0, 3_000, 10.0)
    _feed(det, 4_000, 10_000, 0.0)
    assert det.state is MotionState.EXITING_VEHICLE
    assert det.timers.exiting_started_ms == 10_000

    _feed(det, 11_000, 15_000, 5.0)
    assert det.state is MotionState.EXITING_VEHICLE
    assert det.timers.is_clear

    # the confirmation timer is not restarted by default
    _feed(det, 16_000, 60_000, 0.0)
    assert det.state is MotionState.EXITING_VEHICLE
    assert recorder.count("end") == 0


def test_rearm_option_restarts_exiting_confirmation(recorder):
    params = DetectorParams(
        window_duration_ms=4_000,
        entry_hysteresis_ms=6_000,
        exit_hysteresis_ms=4_000,
        confirm_stationary_ms=5_000,
        rearm_exiting_timer=True,
    )
    det = MotionStateDetector(params, recorder=recorder)
    _feed(det, 0, 3_000, 10.0)
    _feed(det, 4_000, 10_000, 0.0)
    _feed(det, 11_000, 15_000, 5.0)
    _feed(det, 16_000, 20_000, 0.0)
    assert det.state is MotionState.EXITING_VEHICLE
    assert det.timers.exiting_started_ms == 16_000
    det.ingest(_sample(21_000, 0.0))
    assert det.state is MotionState.STATIONARY
    # movement at 5 m/s released the marker flag, so the second stop got its own marker
    assert recorder.calls == ["start", "marker", "marker", "end"]


def test_resume_from_exiting_keeps_current_track(recorder):
    det = MotionStateDetector(SMALL, recorder=recorder)
    _feed(det, 0, 3_000, 10.0)
    _feed(det, 4_000, 10_000, 0.0)
    assert det.state is MotionState.EXITING_VEHICLE

    _feed(det, 11_000, 13_000, 10.0)
    assert det.timers.entry_started_ms == 13_000
    assert det.timers.exiting_started_ms is None
    _feed(det, 14_000, 18_000, 10.0)
    assert det.state is MotionState.EXITING_VEHICLE
    det.ingest(_sample(19_000, 10.0))
    assert det.state is MotionState.IN_VEHICLE
    assert not det.marker_placed
    assert recorder.calls == ["start", "marker"]


def test_resume_from_exiting_never_starts_a_new_track(recorder):
    det = MotionStateDetector(SMALL, recorder=recorder)
    _feed(det, 0, 3_000, 10.0)
    _feed(det, 4_000, 10_000, 0.0)
    assert det.state is MotionState.EXITING_VEHICLE

    recorder.recording = False
    _feed(det, 11_000, 19_000, 10.0)
    assert det.state is MotionState.IN_VEHICLE
    assert not det.should_start_recording
    assert recorder.count("start") == 1


def test_rejected_samples_change_nothing(driving):
    window_before = list(driving.window)
    last_before = driving.last_known_sample()
    for bad in (
        _sample(11_000, 0.0, accuracy=150.0),
        _sample(12_000, 0.0, accuracy=None),
        _sample(13_000, None),
        _sample(14_000, 120.0),
        _sample(9_000, 0.0),
    ):
        verdict = driving.ingest(bad)
        assert not verdict.accepted
        assert driving.messages.value == verdict.reason
    assert driving.state is MotionState.IN_VEHICLE
    assert list(driving.window) == window_before
    assert driving.last_known_sample() is last_before
    assert driving.timers.is_clear


def test_stall_forces_stationary_and_ends_track(driving, recorder):
    assert not driving.check_stalled(40_000)
    assert driving.check_stalled(41_000)
    assert driving.state is MotionState.STATIONARY
    assert len(driving.window) == 0
    assert driving.last_known_sample_time_ms() == 10_000
    assert recorder.calls == ["start", "end"]
    assert driving.messages.value == "State: STATIONARY (Timeout)"

    assert not driving.check_stalled(100_000)
    assert not driving.check_stalled(200_000)
    assert recorder.calls == ["start", "end"]


def test_stall_ignored_without_samples_or_when_not_moving():
    det = MotionStateDetector()
    assert not det.check_stalled(10**9)
    _feed(det, 0, 5_000, 0.0)
    assert det.state is MotionState.STATIONARY
    assert not det.check_stalled(10**9)


def test_stall_without_recorder_leaves_stop_pending(recorder):
    det = MotionStateDetector()
    for t in (0, 5_000, 10_000):
        det.ingest(_sample(t, 8.0))
    assert det.check_stalled(50_000)
    assert det.should_stop_recording


def test_reset_state_round_trip(driving):
    sub = driving.states.subscribe()
    assert sub.poll() is MotionState.IN_VEHICLE
    driving.ingest(_sample(11_000, 0.0))
    driving.reset_state()

    assert driving.state is MotionState.UNKNOWN
    assert sub.poll() is MotionState.UNKNOWN
    assert len(driving.window) == 0
    assert driving.timers.is_clear
    assert not driving.should_start_recording
    assert not driving.should_stop_recording
    assert not driving.marker_placed
    assert driving.last_known_sample() is None
    assert driving.messages.value == "Detector Reset to UNKNOWN"


def test_state_broadcast_publishes_changes_only(recorder):
    det = MotionStateDetector(recorder=recorder)
    sub = det.states.subscribe()
    assert sub.poll() is MotionState.UNKNOWN
    for t in (0, 5_000, 10_000):
        det.ingest(_sample(t, 8.0))
    assert sub.poll() is MotionState.IN_VEHICLE
    det.ingest(_sample(11_000, 9.0))
    assert sub.poll() is None


def test_nan_fix_does_not_hide_a_stop(driving):
    window_before = list(driving.window)
    verdict = driving.ingest(_sample(11_000, float("nan")))
    assert not verdict.accepted
    assert list(driving.window) == window_before
    assert driving.state is MotionState.IN_VEHICLE
    assert driving.timers.is_clear

    _feed(driving, 12_000, 24_000, 0.0)
    assert driving.timers.exit_started_ms == 14_000
    assert driving.state is MotionState.EXITING_VEHICLE
