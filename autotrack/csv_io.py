"""CSV input for exported location tracks (footprint `Path.csv` format)."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from autotrack.models import LocationSample

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_optional(value: str | None) -> float | None:
    """Parse speed/accuracy cells. Empty cells and the exporter's -1 sentinel mean 'unknown'."""

    if value is None or not value.strip():
        return None
    v = float(value.strip())
    if v == -1.0:
        return None
    return v


def _row_to_sample(row: dict[str, str]) -> LocationSample:
    return LocationSample(
        time_ms=int(row["geoTime"].strip()),
        speed_mps=_parse_optional(row.get("speed")),
        accuracy_m=_parse_optional(row.get("horizontalAccuracy")),
        latitude=float(row["latitude"].strip()),
        longitude=float(row["longitude"].strip()),
        altitude_m=float((row.get("altitude") or "0").strip() or "0"),
    )


def load_samples(csv_path: str | Path) -> tuple[list[LocationSample], CsvSummary]:
    """Load all samples into memory.

    Returns:
        (samples, summary)
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[LocationSample] = []
    fieldnames: Sequence[str] = ()

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or ()
        missing = [c for c in ("geoTime", "latitude", "longitude") if fieldnames and c not in fieldnames]
        if missing:
            raise KeyError(f"CSV缺少必要字段：{missing}. 实际字段：{list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_row_to_sample(row))
            except (ValueError, TypeError, AttributeError):
                continue

    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary
