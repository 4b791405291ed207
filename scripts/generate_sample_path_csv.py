from __future__ import annotations

import argparse
import csv
import math
import random
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "Asia/Shanghai"


@dataclass(frozen=True, slots=True)
class Leg:
    """A stretch of the synthetic day with a target speed."""

    name: str
    seconds: int
    speed_mps: float
    interval_s: float = 1.0
    dropout: bool = False  # no fixes at all (tunnel, phone in a bag)


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def generate_points(
    *,
    seed: int,
    start_local: datetime,
    lat: float,
    lon: float,
    legs: list[Leg],
) -> list[dict[str, str]]:
    """Generate fake Path.csv rows: parked, driving, short stops, dropouts."""

    rng = random.Random(seed)
    cur_ms = _epoch_ms(start_local.replace(tzinfo=ZoneInfo(TZ)))
    heading = rng.uniform(0, 2 * math.pi)

    out: list[dict[str, str]] = []
    for leg in legs:
        leg_end = cur_ms + leg.seconds * 1000
        if leg.dropout:
            cur_ms = leg_end
            continue
        while cur_ms < leg_end:
            step_s = max(0.2, rng.gauss(leg.interval_s, leg.interval_s * 0.2))
            cur_ms += int(step_s * 1000)

            speed = leg.speed_mps
            if speed > 0:
                speed = max(0.0, rng.gauss(speed, speed * 0.1))
            elif rng.random() < 0.2:
                # parked phones still report a little drift
                speed = rng.uniform(0.0, 0.4)

            heading += rng.uniform(-0.05, 0.05)
            d_m = speed * step_s
            lat += d_m * math.cos(heading) / 111_320.0
            lon += d_m * math.sin(heading) / (111_320.0 * math.cos(math.radians(lat)))

            hacc = rng.choice([3.0, 5.0, 8.0, 12.0, 20.0, 35.0])
            if rng.random() < 0.03:
                hacc = rng.uniform(120.0, 400.0)  # rejected by the detector
            speed_cell = f"{speed:.2f}" if rng.random() > 0.02 else "-1.0"

            out.append(
                {
                    "geoTime": str(cur_ms),
                    "latitude": f"{lat:.7f}",
                    "longitude": f"{lon:.7f}",
                    "altitude": f"{rng.uniform(0, 50):.1f}",
                    "course": f"{math.degrees(heading) % 360:.1f}",
                    "horizontalAccuracy": f"{hacc:.1f}",
                    "verticalAccuracy": f"{rng.choice([3.0, 5.0, 8.0]):.1f}",
                    "speed": speed_cell,
                    "locationType": str(rng.choice([0, 1])),
                }
            )
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake drive as Path.csv for replay demos (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/Path.csv", help="Output CSV path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2025-01-01 08:00:00",
        help="Start local time in Asia/Shanghai, e.g. '2025-01-01 08:00:00'",
    )
    args = p.parse_args()

    legs = [
        Leg("parked", 120, 0.0, interval_s=5.0),
        Leg("drive", 600, 14.0),
        Leg("red_light", 40, 0.0),
        Leg("drive", 300, 12.0),
        Leg("tunnel", 90, 0.0, dropout=True),
        Leg("drive", 240, 16.0),
        Leg("parking", 180, 0.0, interval_s=2.0),
        Leg("walk", 300, 1.3, interval_s=3.0),
    ]
    rows = generate_points(
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
        lat=31.2304,
        lon=121.4737,
        legs=legs,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()) if rows else ["geoTime", "latitude", "longitude"])
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
