"""Recording collaborator interface and the policy that drives it.

The detector never talks to a recorder directly; `RecordingPolicy` owns the
one-shot start/stop flags and the zero-speed marker flag and turns state changes
into at-most-once commands.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol

from autotrack.errors import RecorderError
from autotrack.geo import step_distance_m
from autotrack.models import LocationSample, MotionState

logger = logging.getLogger(__name__)


class TrackRecorder(Protocol):
    """Capabilities the host's track-recording subsystem must offer."""

    def is_recording(self) -> bool: ...

    def start_new_track(self) -> int: ...

    def end_current_track(self) -> None: ...

    def create_marker(self) -> None: ...


class RecordingPolicy:
    """Pending recording actions plus the marker guard for one detection session."""

    def __init__(self, notify: Callable[[str], None] | None = None) -> None:
        self.recorder: TrackRecorder | None = None
        self.should_start_recording = False
        self.should_stop_recording = False
        self.marker_placed = False
        self._notify = notify or (lambda _msg: None)

    def reset(self) -> None:
        self.should_start_recording = False
        self.should_stop_recording = False
        self.marker_placed = False

    def on_sample_speed(self, speed_mps: float, state: MotionState, zero_speed_mps: float) -> None:
        """Place at most one marker per continuous zero-speed stop."""

        if speed_mps >= zero_speed_mps:
            if self.marker_placed:
                logger.debug("Movement detected (speed: %s m/s), releasing zero-speed marker flag", speed_mps)
                self.marker_placed = False
            return

        if self.marker_placed or self.recorder is None or not state.is_moving:
            return
        recorder = self.recorder
        try:
            if not recorder.is_recording():
                return
            logger.info(
                "Speed is effectively 0 (%s m/s), creating a marker. Current state: %s", speed_mps, state.value
            )
            self.marker_placed = True
            recorder.create_marker()
        except RecorderError as exc:
            logger.warning("Marker creation failed: %s", exc)
            self._notify(f"Marker creation failed: {exc}")
            return
        self._notify("Marker created (Speed 0)")

    def on_state_settled(self, state: MotionState) -> None:
        """Issue start/stop commands implied by pending flags for `state`."""

        recorder = self.recorder
        if recorder is None:
            return

        if self.should_start_recording and state is MotionState.IN_VEHICLE:
            try:
                if not recorder.is_recording():
                    logger.info("Requesting to start recording due to state: %s", state.value)
                    track_id = recorder.start_new_track()
                    self.marker_placed = False
                    logger.info("Started track %s", track_id)
                else:
                    logger.info("State is IN_VEHICLE, but recorder is already recording")
            except RecorderError as exc:
                logger.warning("Starting a new track failed: %s", exc)
                self._notify(f"Start recording failed: {exc}")
            finally:
                self.should_start_recording = False

        if self.should_stop_recording and state is MotionState.STATIONARY:
            try:
                if recorder.is_recording():
                    logger.info("Requesting to stop recording due to state: %s", state.value)
                    recorder.end_current_track()
                else:
                    logger.info("State is STATIONARY, but recorder is not recording")
            except RecorderError as exc:
                logger.warning("Ending the current track failed: %s", exc)
                self._notify(f"Stop recording failed: {exc}")
            finally:
                self.should_stop_recording = False


@dataclass(slots=True)
class Track:
    """A track recorded by `TrackLog`."""

    track_id: int
    start_ms: int
    end_ms: int | None = None
    marker_times_ms: list[int] = field(default_factory=list)
    distance_m: float = 0.0
    points: int = 0

    @property
    def duration_seconds(self) -> float:
        if self.end_ms is None:
            return 0.0
        return max(0.0, (self.end_ms - self.start_ms) / 1000.0)


class TrackLog:
    """In-memory `TrackRecorder` used for offline replay.

    It keeps its own clock: `observe()` must be called with every raw fix (the way
    the host recorder receives locations independently of the detector).
    """

    def __init__(self) -> None:
        self.tracks: list[Track] = []
        self._current: Track | None = None
        self._now_ms = 0
        self._prev: LocationSample | None = None

    def observe(self, sample: LocationSample) -> None:
        self._now_ms = max(self._now_ms, sample.time_ms)
        track = self._current
        if track is None:
            return
        if self._prev is not None:
            track.distance_m += step_distance_m(self._prev, sample)
        track.points += 1
        self._prev = sample

    def advance(self, now_ms: int) -> None:
        """Move the clock forward without a fix (watchdog ticks)."""

        self._now_ms = max(self._now_ms, now_ms)

    def is_recording(self) -> bool:
        return self._current is not None

    def start_new_track(self) -> int:
        if self._current is not None:
            raise RecorderError(f"track {self._current.track_id} is still recording")
        track = Track(track_id=len(self.tracks) + 1, start_ms=self._now_ms)
        self.tracks.append(track)
        self._current = track
        self._prev = None
        return track.track_id

    def end_current_track(self) -> None:
        if self._current is None:
            raise RecorderError("no track is recording")
        self._current.end_ms = self._now_ms
        self._current = None
        self._prev = None

    def create_marker(self) -> None:
        if self._current is None:
            raise RecorderError("cannot place a marker outside a track")
        self._current.marker_times_ms.append(self._now_ms)

    def close(self, end_ms: int | None = None) -> None:
        """End an open track at `end_ms` (or the current clock) after the replay."""

        if self._current is not None:
            self._current.end_ms = self._now_ms if end_ms is None else max(end_ms, self._current.start_ms)
            self._current = None
            self._prev = None
