"""Filtering of raw location fixes before they reach the window."""

from __future__ import annotations

import math
from dataclasses import dataclass

from autotrack.config import DetectorParams
from autotrack.models import LocationSample


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of validating one sample. `reason` is empty for accepted samples."""

    accepted: bool
    reason: str = ""


ACCEPTED = Verdict(accepted=True)


def validate_sample(
    sample: LocationSample,
    params: DetectorParams,
    last_time_ms: int | None = None,
) -> Verdict:
    """Decide whether a fix is usable for classification.

    Checks run in order and the first failing one wins: accuracy, missing speed,
    implausible speed, then timestamp ordering against the last accepted fix.

    Args:
        sample: Raw fix from the location provider.
        params: Detector parameters (accuracy and speed ceilings).
        last_time_ms: Timestamp of the last accepted sample, if any.

    Returns:
        Verdict with a human-readable reason when rejected.
    """

    t = sample.time_ms
    if sample.accuracy_m is None:
        return Verdict(False, f"Ignoring location without accuracy at {t}")
    if not math.isfinite(sample.accuracy_m) or sample.accuracy_m > params.max_accepted_accuracy_m:
        return Verdict(False, f"Ignoring inaccurate location: {sample.accuracy_m}m at {t}")
    if sample.speed_mps is None:
        return Verdict(False, f"Ignoring location without speed at {t}")
    if (
        not math.isfinite(sample.speed_mps)
        or sample.speed_mps < 0
        or sample.speed_mps > params.plausible_speed_ceiling_mps
    ):
        return Verdict(False, f"Ignoring location with implausible speed: {sample.speed_mps} m/s")
    if last_time_ms is not None and t < last_time_ms:
        return Verdict(False, f"Ignoring out-of-order location at {t} (last accepted {last_time_ms})")
    return ACCEPTED
