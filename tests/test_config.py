"""Tests for DetectorParams validation."""

from __future__ import annotations

import pytest

from autotrack.config import DetectorParams


def test_defaults_match_documented_thresholds():
    p = DetectorParams()
    assert p.max_accepted_accuracy_m == 100.0
    assert p.plausible_speed_ceiling_mps == 100.0
    assert p.window_duration_ms == 15_000
    assert p.min_window_size == 3
    assert (p.entry_speed_mps, p.exit_speed_mps) == (6.0, 4.5)
    assert (p.entry_hysteresis_ms, p.exit_hysteresis_ms, p.confirm_stationary_ms) == (7_000, 10_000, 15_000)
    assert p.stall_timeout_ms == 30_000
    assert p.rearm_exiting_timer is False


def test_exit_speed_must_be_below_entry_speed():
    with pytest.raises(ValueError, match="exit_speed_mps"):
        DetectorParams(entry_speed_mps=5.0, exit_speed_mps=5.0)


@pytest.mark.parametrize("name", ["window_duration_ms", "stall_timeout_ms", "min_window_size"])
def test_non_positive_values_rejected(name: str):
    with pytest.raises(ValueError, match=name):
        DetectorParams(**{name: 0})
