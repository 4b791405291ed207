"""Offline replay of recorded fixes through the detector, with reporting."""

from __future__ import annotations

import csv
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from autotrack.config import DetectorParams
from autotrack.detector import MotionStateDetector
from autotrack.models import LocationSample, MotionState
from autotrack.recording import Track, TrackLog
from autotrack.timeutils import GapStats, dt_from_epoch_ms, format_hhmmss, gap_stats


@dataclass(frozen=True, slots=True)
class StateChange:
    """One transition observed during replay."""

    time_ms: int
    previous: MotionState
    current: MotionState
    cause: str  # "sample" or "stall"
    avg_speed_mps: float


@dataclass(slots=True)
class ReplayResult:
    """Everything a replay produced."""

    samples_total: int = 0
    samples_accepted: int = 0
    rejections: Counter[str] = field(default_factory=Counter)
    changes: list[StateChange] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    gaps: GapStats | None = None
    final_state: MotionState = MotionState.UNKNOWN

    @property
    def stalls(self) -> int:
        return sum(1 for c in self.changes if c.cause == "stall")


def _rejection_kind(reason: str) -> str:
    # "Ignoring inaccurate location: 250.0m at 123" -> "inaccurate location"
    text = reason.removeprefix("Ignoring ")
    for sep in (":", " at ", " ("):
        text = text.split(sep, 1)[0]
    return text.strip()


def replay(
    samples: Sequence[LocationSample],
    params: DetectorParams | None = None,
    end_ms: int | None = None,
) -> ReplayResult:
    """Feed samples (sorted by time) through a fresh detector and a `TrackLog`.

    The watchdog runs every `params.watchdog_interval_ms` of sample time, the way a
    host scheduler would, including during gaps between fixes.

    Args:
        samples: Fixes, can be unsorted.
        params: Detector parameters.
        end_ms: Keep ticking the watchdog up to this time after the last fix.
            Any track still open afterwards is closed at the last clock value.
    """

    params = params or DetectorParams()
    pts = sorted(samples, key=lambda s: s.time_ms)
    result = ReplayResult(samples_total=len(pts))
    if not pts:
        return result

    log = TrackLog()
    detector = MotionStateDetector(params, recorder=log)
    detector.reset_state()

    interval = params.watchdog_interval_ms
    next_tick = pts[0].time_ms + interval

    def run_ticks(until_ms: int) -> None:
        nonlocal next_tick
        while next_tick <= until_ms:
            log.advance(next_tick)
            before = detector.state
            if detector.check_stalled(next_tick):
                result.changes.append(StateChange(next_tick, before, detector.state, "stall", 0.0))
            next_tick += interval

    for s in pts:
        run_ticks(s.time_ms)
        log.advance(s.time_ms)
        before = detector.state
        verdict = detector.ingest(s)
        if not verdict.accepted:
            result.rejections[_rejection_kind(verdict.reason)] += 1
            continue
        result.samples_accepted += 1
        log.observe(s)
        if detector.state is not before:
            result.changes.append(
                StateChange(s.time_ms, before, detector.state, "sample", detector.window.rolling_average_speed())
            )

    if end_ms is not None:
        run_ticks(end_ms)
    log.close()

    result.tracks = log.tracks
    result.gaps = gap_stats((s.time_ms for s in pts), params.stall_timeout_ms)
    result.final_state = detector.state
    return result


def write_events_csv(changes: Sequence[StateChange], out_path: str | Path, tz_name: str) -> None:
    """Write state transitions to CSV."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=["time_local", "epoch_ms", "from_state", "to_state", "cause", "avg_speed_mps"],
        )
        w.writeheader()
        for c in changes:
            w.writerow(
                {
                    "time_local": dt_from_epoch_ms(c.time_ms, tz_name).isoformat(sep=" "),
                    "epoch_ms": c.time_ms,
                    "from_state": c.previous.value,
                    "to_state": c.current.value,
                    "cause": c.cause,
                    "avg_speed_mps": f"{c.avg_speed_mps:.3f}",
                }
            )


def write_tracks_csv(tracks: Sequence[Track], out_path: str | Path, tz_name: str) -> None:
    """Write recorded tracks (one row each) to CSV."""

    p = Path(out_path)
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "track_id",
                "start_time",
                "end_time",
                "duration_seconds",
                "duration_hhmmss",
                "distance_m",
                "points",
                "markers",
            ],
        )
        w.writeheader()
        for t in tracks:
            w.writerow(
                {
                    "track_id": t.track_id,
                    "start_time": dt_from_epoch_ms(t.start_ms, tz_name).isoformat(sep=" "),
                    "end_time": "" if t.end_ms is None else dt_from_epoch_ms(t.end_ms, tz_name).isoformat(sep=" "),
                    "duration_seconds": f"{t.duration_seconds:.3f}",
                    "duration_hhmmss": format_hhmmss(t.duration_seconds),
                    "distance_m": f"{t.distance_m:.1f}",
                    "points": t.points,
                    "markers": len(t.marker_times_ms),
                }
            )
