from __future__ import annotations

import pytest

from autotrack.errors import RecorderError


class FakeRecorder:
    """Records every command; optionally fails some of them."""

    def __init__(self, recording: bool = False, fail_on: tuple[str, ...] = ()) -> None:
        self.recording = recording
        self.fail_on = set(fail_on)
        self.calls: list[str] = []
        self._next_id = 1

    def is_recording(self) -> bool:
        if "status" in self.fail_on:
            raise RecorderError("recorder unreachable")
        return self.recording

    def start_new_track(self) -> int:
        self.calls.append("start")
        if "start" in self.fail_on:
            raise RecorderError("storage unavailable")
        self.recording = True
        track_id = self._next_id
        self._next_id += 1
        return track_id

    def end_current_track(self) -> None:
        self.calls.append("end")
        if "end" in self.fail_on:
            raise RecorderError("storage unavailable")
        self.recording = False

    def create_marker(self) -> None:
        self.calls.append("marker")
        if "marker" in self.fail_on:
            raise RecorderError("storage unavailable")

    def count(self, name: str) -> int:
        return self.calls.count(name)


@pytest.fixture()
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture()
def failing_recorder() -> FakeRecorder:
    return FakeRecorder(fail_on=("start", "end", "marker"))
