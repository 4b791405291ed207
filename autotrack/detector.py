"""Vehicle motion-state detection from GPS speed.

The detector is a plain object owned by its caller. It does no threading and is
not synchronized: `ingest`, `check_stalled`, `reset_state` and `attach_recorder`
must be serialized by the owner (see `autotrack.service`).

Per accepted sample the pipeline is:
    validate -> zero-speed marker check -> window -> classify -> recording policy
"""

from __future__ import annotations

import logging

from autotrack.broadcast import LastValue
from autotrack.config import DetectorParams
from autotrack.models import LocationSample, MotionState, TimerSet
from autotrack.recording import RecordingPolicy, TrackRecorder
from autotrack.validator import Verdict, validate_sample
from autotrack.window import SampleWindow

logger = logging.getLogger(__name__)


class MotionStateDetector:
    """Four-state hysteresis classifier: UNKNOWN, STATIONARY, IN_VEHICLE, EXITING_VEHICLE."""

    def __init__(self, params: DetectorParams | None = None, recorder: TrackRecorder | None = None) -> None:
        self.params = params or DetectorParams()
        self.states: LastValue[MotionState] = LastValue(MotionState.UNKNOWN)
        self.messages: LastValue[str] = LastValue("Detector Initialized")
        self.window = SampleWindow(self.params.window_duration_ms)
        self.timers = TimerSet()
        self.policy = RecordingPolicy(notify=self.messages.publish)
        self.policy.recorder = recorder
        # Speed of the sample being classified; marker release depends on it.
        self._sample_speed = 0.0

    # -- public API -----------------------------------------------------------

    @property
    def state(self) -> MotionState:
        return self.states.value

    @property
    def recorder(self) -> TrackRecorder | None:
        return self.policy.recorder

    def attach_recorder(self, recorder: TrackRecorder | None) -> None:
        """Set or clear (None) the recording collaborator."""

        self.policy.recorder = recorder
        logger.debug("Track recorder %s", "attached" if recorder is not None else "detached")

    def last_known_sample(self) -> LocationSample | None:
        return self.window.last_sample

    def last_known_sample_time_ms(self) -> int | None:
        return self.window.last_sample_time_ms

    def ingest(self, sample: LocationSample) -> Verdict:
        """Process one raw fix.

        Returns:
            The validation verdict. Rejected samples leave every piece of state
            untouched apart from the diagnostic message.
        """

        verdict = validate_sample(sample, self.params, self.window.last_sample_time_ms)
        if not verdict.accepted:
            logger.debug("%s", verdict.reason)
            self.messages.publish(verdict.reason)
            return verdict

        speed = float(sample.speed_mps or 0.0)
        self._sample_speed = speed
        self.policy.on_sample_speed(speed, self.state, self.params.zero_speed_mps)

        self.window.push(sample)
        if len(self.window) < self.params.min_window_size:
            self.messages.publish(f"Not enough data points: {len(self.window)}/{self.params.min_window_size}")
            return verdict

        avg = self.window.rolling_average_speed()
        span = self.window.span_ms()
        previous = self.state
        self._classify(avg, sample.time_ms, span)

        if self.state is not previous:
            logger.info(
                "State changed from %s to %s (avg speed: %.2f m/s over %ss, window: %s pts)",
                previous.value,
                self.state.value,
                avg,
                span // 1000,
                len(self.window),
            )
            self.messages.publish(f"State: {self.state.value} (Avg Speed: {avg:.2f} m/s)")
        self.policy.on_state_settled(self.state)
        return verdict

    def check_stalled(self, now_ms: int) -> bool:
        """Force STATIONARY when no fix arrived for `stall_timeout_ms` while moving.

        Returns:
            True if a forced transition happened.
        """

        last_ms = self.window.last_sample_time_ms
        if last_ms is None:
            return False
        previous = self.state
        if not previous.is_moving or now_ms - last_ms <= self.params.stall_timeout_ms:
            return False

        logger.info(
            "State changed to STATIONARY due to lack of updates (timeout). Last update: %ss ago. Previous state: %s",
            (now_ms - last_ms) // 1000,
            previous.value,
        )
        self.timers.clear()
        self.window.clear()
        self.policy.should_stop_recording = True
        self._set_state(MotionState.STATIONARY)
        self.messages.publish("State: STATIONARY (Timeout)")
        self.policy.on_state_settled(MotionState.STATIONARY)
        return True

    def reset_state(self) -> None:
        """Start a fresh detection session."""

        logger.info("Motion-state detector reset to initial state")
        self.window.reset()
        self.timers.clear()
        self.policy.reset()
        self._sample_speed = 0.0
        self._set_state(MotionState.UNKNOWN)
        self.messages.publish("Detector Reset to UNKNOWN")

    @property
    def should_start_recording(self) -> bool:
        return self.policy.should_start_recording

    @property
    def should_stop_recording(self) -> bool:
        return self.policy.should_stop_recording

    @property
    def marker_placed(self) -> bool:
        return self.policy.marker_placed

    # -- state machine --------------------------------------------------------

    def _set_state(self, state: MotionState) -> None:
        if state is not self.states.value:
            self.states.publish(state)

    def _release_marker(self) -> None:
        # The flag belongs to one continuous stop; keep it while the current fix is still at zero.
        if self._sample_speed >= self.params.zero_speed_mps:
            self.policy.marker_placed = False

    def _held(self, started_ms: int | None, now_ms: int, duration_ms: int) -> bool:
        return started_ms is not None and now_ms - started_ms >= duration_ms

    def _classify(self, avg: float, now_ms: int, span_ms: int) -> None:
        p = self.params
        t = self.timers
        state = self.state

        if state is MotionState.UNKNOWN:
            # Bootstrap: half the hysteresis span is enough to pick a first state.
            if avg >= p.entry_speed_mps:
                if span_ms >= p.entry_hysteresis_ms // 2:
                    self._enter_vehicle(start_recording=True)
            elif span_ms >= p.exit_hysteresis_ms // 2:
                self._set_state(MotionState.STATIONARY)
                t.clear()
                self.policy.should_stop_recording = True

        elif state is MotionState.STATIONARY:
            if avg >= p.entry_speed_mps:
                if t.entry_started_ms is None:
                    t.entry_started_ms = now_ms
                if self._held(t.entry_started_ms, now_ms, p.entry_hysteresis_ms):
                    self._enter_vehicle(start_recording=True)
                t.clear_exit()
            else:
                t.entry_started_ms = None

        elif state is MotionState.IN_VEHICLE:
            if avg < p.exit_speed_mps:
                if t.exit_started_ms is None:
                    t.exit_started_ms = now_ms
                if self._held(t.exit_started_ms, now_ms, p.exit_hysteresis_ms):
                    self._set_state(MotionState.EXITING_VEHICLE)
                    t.exiting_started_ms = now_ms
                    t.entry_started_ms = None
            else:
                t.clear_exit()
                self._release_marker()

        elif state is MotionState.EXITING_VEHICLE:
            if avg >= p.entry_speed_mps:
                if t.entry_started_ms is None:
                    t.entry_started_ms = now_ms
                if self._held(t.entry_started_ms, now_ms, p.entry_hysteresis_ms):
                    self._enter_vehicle(start_recording=False)
                t.exiting_started_ms = None
            elif avg < p.exit_speed_mps:
                t.entry_started_ms = None
                if t.exiting_started_ms is None and p.rearm_exiting_timer:
                    t.exiting_started_ms = now_ms
                if self._held(t.exiting_started_ms, now_ms, p.confirm_stationary_ms):
                    self._set_state(MotionState.STATIONARY)
                    t.clear()
                    self.policy.should_stop_recording = True
            else:
                # Between the two thresholds neither entry nor exit is confirmed.
                t.clear()

    def _enter_vehicle(self, *, start_recording: bool) -> None:
        self._set_state(MotionState.IN_VEHICLE)
        self.timers.clear()
        if start_recording:
            self.policy.should_start_recording = True
        self._release_marker()
