"""Data models for location samples and motion states."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


class MotionState(str, Enum):
    """Classification of the device's current motion."""

    UNKNOWN = "UNKNOWN"
    STATIONARY = "STATIONARY"
    IN_VEHICLE = "IN_VEHICLE"
    # Vehicle slowed down but the stop is not yet confirmed (traffic light, jam).
    EXITING_VEHICLE = "EXITING_VEHICLE"

    @property
    def is_moving(self) -> bool:
        """True while the device is believed to be inside a vehicle."""

        return self in (MotionState.IN_VEHICLE, MotionState.EXITING_VEHICLE)


@dataclass(frozen=True, slots=True)
class LocationSample:
    """A single location fix.

    Attributes:
        time_ms: Timestamp in milliseconds. Expected to be non-decreasing.
        speed_mps: Speed in meters/second, or None if the provider had no estimate.
        accuracy_m: Horizontal accuracy in meters, or None if unknown.
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        altitude_m: Altitude in meters. May be 0.0 depending on device/app.
    """

    time_ms: int
    speed_mps: float | None
    accuracy_m: float | None
    latitude: float = 0.0
    longitude: float = 0.0
    altitude_m: float = 0.0


@dataclass(slots=True)
class TimerSet:
    """Start times of the hysteresis conditions currently being held.

    Each field is None, or the timestamp at which its condition became true and
    has stayed true without interruption since.
    """

    entry_started_ms: int | None = None
    exit_started_ms: int | None = None
    exiting_started_ms: int | None = None

    def clear(self) -> None:
        self.entry_started_ms = None
        self.exit_started_ms = None
        self.exiting_started_ms = None

    def clear_exit(self) -> None:
        self.exit_started_ms = None
        self.exiting_started_ms = None

    @property
    def is_clear(self) -> bool:
        return self.entry_started_ms is None and self.exit_started_ms is None and self.exiting_started_ms is None


DEFAULT_TZ: Final[str] = "Asia/Shanghai"
