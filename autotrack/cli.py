"""Command-line interface for autotrack.

Run:
    python -m autotrack replay --csv Path.csv
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict

from autotrack.config import DetectorParams
from autotrack.csv_io import load_samples
from autotrack.models import DEFAULT_TZ
from autotrack.replay import replay, write_events_csv, write_tracks_csv
from autotrack.timeutils import dt_from_epoch_ms, format_hhmmss, parse_dt


def _params_from_args(args: argparse.Namespace) -> DetectorParams:
    return DetectorParams(
        max_accepted_accuracy_m=args.max_accuracy_m,
        plausible_speed_ceiling_mps=args.speed_ceiling_mps,
        window_duration_ms=int(args.window_seconds * 1000),
        min_window_size=args.min_window_size,
        entry_speed_mps=args.entry_speed_mps,
        exit_speed_mps=args.exit_speed_mps,
        entry_hysteresis_ms=int(args.entry_hysteresis_seconds * 1000),
        exit_hysteresis_ms=int(args.exit_hysteresis_seconds * 1000),
        confirm_stationary_ms=int(args.confirm_seconds * 1000),
        stall_timeout_ms=int(args.stall_timeout_seconds * 1000),
        zero_speed_mps=args.zero_speed_mps,
        watchdog_interval_ms=int(args.watchdog_interval_seconds * 1000),
        rearm_exiting_timer=args.rearm_exiting_timer,
    )


def _cmd_replay(args: argparse.Namespace) -> int:
    try:
        params = _params_from_args(args)
    except ValueError as exc:
        print(f"参数错误：{exc}", file=sys.stderr)
        return 2

    samples, summary = load_samples(args.csv)
    if args.range_start is not None:
        start_ms = int(parse_dt(args.range_start, args.tz).timestamp() * 1000)
        samples = [s for s in samples if s.time_ms >= start_ms]
    end_ms: int | None = None
    if args.range_end is not None:
        end_ms = int(parse_dt(args.range_end, args.tz).timestamp() * 1000)
        samples = [s for s in samples if s.time_ms <= end_ms]

    res = replay(samples, params, end_ms=end_ms)

    print("### 行数")
    print(f"total_rows={summary.rows_total}, parsed={summary.rows_parsed}, skipped={summary.rows_skipped}")
    print(f"replayed={res.samples_total}, accepted={res.samples_accepted}")
    print()

    if res.rejections:
        print("### 被过滤的定位点")
        for kind, n in res.rejections.most_common():
            print(f"{kind}: {n}")
        print()

    if res.gaps is not None:
        print("### 采样间隔（秒）")
        print(
            f"count={res.gaps.count}, min={res.gaps.min_s:.3f}, median={res.gaps.median_s:.3f}, "
            f"p95={res.gaps.p95_s:.3f}, max={res.gaps.max_s:.3f}, 超过停滞阈值={res.gaps.stalls}"
        )
        print()

    print("### 状态变化")
    for c in res.changes:
        t = dt_from_epoch_ms(c.time_ms, args.tz).isoformat(sep=" ")
        print(f"{t}  {c.previous.value} -> {c.current.value}  ({c.cause}, avg={c.avg_speed_mps:.2f} m/s)")
    print(f"最终状态={res.final_state.value}，超时强制停止={res.stalls} 次")
    print()

    print("### 自动记录的轨迹")
    total_s = sum(t.duration_seconds for t in res.tracks)
    for t in res.tracks:
        print(
            f"track {t.track_id}: {dt_from_epoch_ms(t.start_ms, args.tz).isoformat(sep=' ')} "
            f"时长={format_hhmmss(t.duration_seconds)} 距离={t.distance_m / 1000.0:.2f}km "
            f"标记={len(t.marker_times_ms)}"
        )
    print(f"tracks={len(res.tracks)}，合计={format_hhmmss(total_s)}")

    if args.events_out:
        write_events_csv(res.changes, args.events_out, args.tz)
        print(f"已导出：{args.events_out}")
    if args.tracks_out:
        write_tracks_csv(res.tracks, args.tracks_out, args.tz)
        print(f"已导出：{args.tracks_out}")

    if args.json:
        import json

        payload = {
            "params": asdict(params),
            "samples_total": res.samples_total,
            "samples_accepted": res.samples_accepted,
            "rejections": dict(res.rejections),
            "gaps": asdict(res.gaps) if res.gaps is not None else None,
            "changes": [
                {"epoch_ms": c.time_ms, "from": c.previous.value, "to": c.current.value, "cause": c.cause}
                for c in res.changes
            ],
            "tracks": [asdict(t) for t in res.tracks],
            "final_state": res.final_state.value,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    d = DetectorParams()
    p = argparse.ArgumentParser(prog="autotrack")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别（INFO 可看到每次状态变化与记录指令）",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_rp = sub.add_parser("replay", help="用 Path.csv 回放定位点，模拟自动识别上下车并记录轨迹")
    p_rp.add_argument("--csv", type=str, default="Path.csv", help="输入CSV路径")
    p_rp.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 Asia/Shanghai")
    p_rp.add_argument("--events-out", type=str, default=None, help="状态变化输出CSV路径（可选）")
    p_rp.add_argument("--tracks-out", type=str, default=None, help="轨迹汇总输出CSV路径（可选）")
    p_rp.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_rp.add_argument(
        "--range-start",
        type=str,
        default=None,
        help="仅回放该时间之后的数据（例如 2025-12-01 00:00:00）",
    )
    p_rp.add_argument(
        "--range-end",
        type=str,
        default=None,
        help="仅回放该时间之前的数据；看门狗会一直检查到该时间",
    )

    g = p_rp.add_argument_group("识别参数（通常不用改）")
    g.add_argument("--max-accuracy-m", type=float, default=d.max_accepted_accuracy_m, help="可接受的最大水平精度（米）")
    g.add_argument(
        "--speed-ceiling-mps", type=float, default=d.plausible_speed_ceiling_mps, help="速度上限（m/s），超过视为异常"
    )
    g.add_argument("--window-seconds", type=float, default=d.window_duration_ms / 1000, help="滑动窗口时长（秒）")
    g.add_argument("--min-window-size", type=int, default=d.min_window_size, help="开始判断所需的最少点数")
    g.add_argument("--entry-speed-mps", type=float, default=d.entry_speed_mps, help="上车速度阈值（m/s）")
    g.add_argument("--exit-speed-mps", type=float, default=d.exit_speed_mps, help="下车速度阈值（m/s），须小于上车阈值")
    g.add_argument(
        "--entry-hysteresis-seconds",
        type=float,
        default=d.entry_hysteresis_ms / 1000,
        help="平均速度需持续高于上车阈值的时长（秒）",
    )
    g.add_argument(
        "--exit-hysteresis-seconds",
        type=float,
        default=d.exit_hysteresis_ms / 1000,
        help="平均速度需持续低于下车阈值的时长（秒）",
    )
    g.add_argument(
        "--confirm-seconds",
        type=float,
        default=d.confirm_stationary_ms / 1000,
        help="EXITING_VEHICLE 确认为静止所需的低速时长（秒）",
    )
    g.add_argument(
        "--stall-timeout-seconds",
        type=float,
        default=d.stall_timeout_ms / 1000,
        help="行驶中超过该时长没有定位点则强制判定为静止（秒）",
    )
    g.add_argument("--zero-speed-mps", type=float, default=d.zero_speed_mps, help="低于该速度视为停车（用于打标记）")
    g.add_argument(
        "--watchdog-interval-seconds",
        type=float,
        default=d.watchdog_interval_ms / 1000,
        help="超时检查的周期（秒）",
    )
    g.add_argument(
        "--rearm-exiting-timer",
        action="store_true",
        help="EXITING_VEHICLE 中低速恢复时重新开始确认计时（默认不重启）",
    )
    p_rp.set_defaults(func=_cmd_replay)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
