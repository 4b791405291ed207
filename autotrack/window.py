"""Time-bounded sliding window over accepted samples."""

from __future__ import annotations

from collections import deque
from typing import Iterator

from autotrack.models import LocationSample


class SampleWindow:
    """Newest-first buffer of samples no older than `duration_ms` relative to the newest.

    Also remembers the last accepted sample, which survives `clear()` so the stall
    watchdog can still measure silence after the buffer was dropped.
    """

    def __init__(self, duration_ms: int) -> None:
        self._duration_ms = duration_ms
        self._samples: deque[LocationSample] = deque()
        self._last: LocationSample | None = None

    def push(self, sample: LocationSample) -> None:
        """Insert at the newest end and evict stale samples from the oldest end."""

        self._last = sample
        self._samples.appendleft(sample)
        while self._samples and sample.time_ms - self._samples[-1].time_ms > self._duration_ms:
            self._samples.pop()

    def rolling_average_speed(self) -> float:
        """Arithmetic mean of speed over the buffered samples (0.0 when empty)."""

        if not self._samples:
            return 0.0
        return sum(s.speed_mps or 0.0 for s in self._samples) / len(self._samples)

    def span_ms(self) -> int:
        """Newest minus oldest timestamp (0 when fewer than two samples)."""

        if not self._samples:
            return 0
        return self._samples[0].time_ms - self._samples[-1].time_ms

    def clear(self) -> None:
        self._samples.clear()

    def reset(self) -> None:
        self._samples.clear()
        self._last = None

    @property
    def last_sample(self) -> LocationSample | None:
        return self._last

    @property
    def last_sample_time_ms(self) -> int | None:
        return None if self._last is None else self._last.time_ms

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[LocationSample]:
        return iter(self._samples)
