"""Host-side wrapper that serializes access to a detector.

Location callbacks and the periodic stall check may arrive on different threads;
`AutoTrackService` funnels both through one lock so the detector only ever sees
one caller at a time.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from autotrack.config import DetectorParams
from autotrack.detector import MotionStateDetector
from autotrack.models import LocationSample, MotionState
from autotrack.recording import TrackRecorder
from autotrack.validator import Verdict

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class AutoTrackService:
    """Owns a detector, its lock and the watchdog thread."""

    def __init__(
        self,
        params: DetectorParams | None = None,
        clock_ms: Callable[[], int] = _wall_clock_ms,
    ) -> None:
        self.detector = MotionStateDetector(params)
        self._clock_ms = clock_ms
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> MotionState:
        return self.detector.state

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def bind_recorder(self, recorder: TrackRecorder) -> None:
        with self._lock:
            self.detector.attach_recorder(recorder)
        logger.info("Connected to track recorder")

    def unbind_recorder(self) -> None:
        with self._lock:
            self.detector.attach_recorder(None)
        logger.info("Disconnected from track recorder")

    def on_location(self, sample: LocationSample) -> Verdict:
        """Location-provider callback."""

        with self._lock:
            return self.detector.ingest(sample)

    def tick(self, now_ms: int | None = None) -> bool:
        """Run one stall check. Called by the watchdog thread or a host scheduler."""

        now = self._clock_ms() if now_ms is None else now_ms
        with self._lock:
            return self.detector.check_stalled(now)

    def start(self) -> None:
        """Reset the detector and start the periodic watchdog thread."""

        if self.running:
            return
        with self._lock:
            self.detector.reset_state()
        self._stop.clear()
        self._thread = threading.Thread(target=self._watchdog_loop, name="autotrack-watchdog", daemon=True)
        self._thread.start()
        logger.info("Auto-tracking started (watchdog every %ss)", self.detector.params.watchdog_interval_ms / 1000)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None
        logger.info("Auto-tracking stopped")

    def _watchdog_loop(self) -> None:
        interval_s = self.detector.params.watchdog_interval_ms / 1000.0
        while not self._stop.wait(interval_s):
            try:
                self.tick()
            except Exception:
                logger.exception("Stall check failed; watchdog keeps running")
