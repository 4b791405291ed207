"""Time parsing/formatting and sampling-gap statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Iterable

from zoneinfo import ZoneInfo


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Shanghai") from exc


def dt_from_epoch_ms(epoch_ms: int, tz_name: str) -> datetime:
    """Convert epoch milliseconds to a timezone-aware datetime in `tz_name`."""

    return datetime.fromtimestamp(epoch_ms / 1000.0, tz=tzinfo_from_name(tz_name))


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse "YYYY-MM-DD HH:MM:SS" (optionally with offset) to an aware datetime.

    Naive input is interpreted in `tz_name`.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18 09:30:00") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def format_hhmmss(seconds: float) -> str:
    s = int(round(max(0.0, seconds)))
    h = s // 3600
    m = (s % 3600) // 60
    sec = s % 60
    return f"{h:02d}:{m:02d}:{sec:02d}"


@dataclass(frozen=True, slots=True)
class GapStats:
    """Sampling interval stats (seconds) and how many gaps exceed the stall timeout."""

    count: int
    min_s: float
    median_s: float
    p95_s: float
    max_s: float
    stalls: int


def gap_stats(times_ms: Iterable[int], stall_timeout_ms: int) -> GapStats | None:
    """Compute sampling-interval statistics over sorted timestamps.

    Returns:
        GapStats or None if less than 2 timestamps.
    """

    ms = sorted(times_ms)
    if len(ms) < 2:
        return None
    gaps = sorted(ms[i] - ms[i - 1] for i in range(1, len(ms)))
    n = len(gaps)
    median = gaps[n // 2] if n % 2 == 1 else 0.5 * (gaps[n // 2 - 1] + gaps[n // 2])
    return GapStats(
        count=n,
        min_s=gaps[0] / 1000.0,
        median_s=median / 1000.0,
        p95_s=gaps[int(0.95 * (n - 1))] / 1000.0,
        max_s=gaps[-1] / 1000.0,
        stalls=sum(1 for g in gaps if g > stall_timeout_ms),
    )
