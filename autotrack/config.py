"""Tunable parameters of the motion-state detector."""

from __future__ import annotations

from dataclasses import dataclass, fields


@dataclass(frozen=True, slots=True)
class DetectorParams:
    """Parameters controlling validation, windowing and hysteresis.

    Speeds are meters/second, durations are milliseconds.
    """

    # Fixes with worse horizontal accuracy are dropped.
    max_accepted_accuracy_m: float = 100.0
    # 100 m/s = 360 km/h; anything faster is a provider glitch.
    plausible_speed_ceiling_mps: float = 100.0
    window_duration_ms: int = 15 * 1000
    min_window_size: int = 3
    # Two thresholds with a gap between them, so the average speed cannot flap
    # around a single boundary.
    entry_speed_mps: float = 6.0
    exit_speed_mps: float = 4.5
    entry_hysteresis_ms: int = 7 * 1000
    exit_hysteresis_ms: int = 10 * 1000
    confirm_stationary_ms: int = 15 * 1000
    stall_timeout_ms: int = 30 * 1000
    zero_speed_mps: float = 0.1
    # How often the host scheduler is expected to run the stall check.
    watchdog_interval_ms: int = 30 * 1000
    # Restart the EXITING_VEHICLE confirmation timer when low speed resumes after
    # it was cleared. Off by default: a cleared timer then waits for re-entry or a stall.
    rearm_exiting_timer: bool = False

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.name == "rearm_exiting_timer":
                continue
            value = getattr(self, f.name)
            if value <= 0:
                raise ValueError(f"{f.name} 必须为正数，实际为 {value!r}")
        if self.exit_speed_mps >= self.entry_speed_mps:
            raise ValueError(
                f"exit_speed_mps ({self.exit_speed_mps}) 必须小于 entry_speed_mps ({self.entry_speed_mps})"
            )
        if self.zero_speed_mps >= self.exit_speed_mps:
            raise ValueError(
                f"zero_speed_mps ({self.zero_speed_mps}) 必须小于 exit_speed_mps ({self.exit_speed_mps})"
            )
