from __future__ import annotations

from pathlib import Path

import streamlit as st

from autotrack.config import DetectorParams
from autotrack.csv_io import load_samples
from autotrack.models import DEFAULT_TZ, LocationSample
from autotrack.replay import ReplayResult, replay
from autotrack.timeutils import dt_from_epoch_ms, format_hhmmss


@st.cache_data(show_spinner=False)
def _load_samples(path_csv: str, mtime: float) -> list[LocationSample]:
    _ = mtime  # part of cache key so updated files reload automatically
    samples, _summary = load_samples(path_csv)
    return samples


def _state_rows(res: ReplayResult, tz_name: str) -> list[dict[str, object]]:
    return [
        {
            "time": dt_from_epoch_ms(c.time_ms, tz_name).isoformat(sep=" "),
            "from": c.previous.value,
            "to": c.current.value,
            "cause": c.cause,
            "avg_speed_mps": round(c.avg_speed_mps, 2),
        }
        for c in res.changes
    ]


def _track_rows(res: ReplayResult, tz_name: str) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for t in res.tracks:
        rows.append(
            {
                "track_id": t.track_id,
                "start_time": dt_from_epoch_ms(t.start_ms, tz_name).isoformat(sep=" "),
                "end_time": "" if t.end_ms is None else dt_from_epoch_ms(t.end_ms, tz_name).isoformat(sep=" "),
                "hhmmss": format_hhmmss(t.duration_seconds),
                "distance_km": round(t.distance_m / 1000.0, 3),
                "points": t.points,
                "markers": len(t.marker_times_ms),
            }
        )
    return rows


def main() -> None:
    st.set_page_config(page_title="自动轨迹：上下车识别回放", layout="wide")
    st.title("自动轨迹：用 GPS 速度回放上车 / 下车识别")

    with st.sidebar:
        st.subheader("数据与时区")
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)
        path_csv = st.text_input("Path.csv 路径", value="Path.csv")

        d = DetectorParams()
        st.subheader("速度阈值")
        entry_speed = st.number_input("上车阈值 entry_speed_mps", value=d.entry_speed_mps, step=0.5)
        exit_speed = st.number_input("下车阈值 exit_speed_mps", value=d.exit_speed_mps, step=0.5)

        with st.expander("高级参数（通常不用改）", expanded=False):
            max_accuracy = st.number_input("max_accepted_accuracy_m", value=d.max_accepted_accuracy_m, step=10.0)
            window_s = st.number_input("窗口时长（秒）", value=d.window_duration_ms / 1000, step=1.0)
            entry_hyst_s = st.number_input("上车确认（秒）", value=d.entry_hysteresis_ms / 1000, step=1.0)
            exit_hyst_s = st.number_input("下车确认（秒）", value=d.exit_hysteresis_ms / 1000, step=1.0)
            confirm_s = st.number_input("静止确认（秒）", value=d.confirm_stationary_ms / 1000, step=1.0)
            stall_s = st.number_input("无定位超时（秒）", value=d.stall_timeout_ms / 1000, step=5.0)
            rearm = st.checkbox("EXITING_VEHICLE 中重新开始确认计时", value=d.rearm_exiting_timer)

    p = Path(path_csv)
    if not p.exists():
        st.error(f"找不到文件：{path_csv!r}。可以先运行 scripts/generate_sample_path_csv.py 生成示例数据。")
        return

    try:
        params = DetectorParams(
            max_accepted_accuracy_m=float(max_accuracy),
            window_duration_ms=int(window_s * 1000),
            entry_speed_mps=float(entry_speed),
            exit_speed_mps=float(exit_speed),
            entry_hysteresis_ms=int(entry_hyst_s * 1000),
            exit_hysteresis_ms=int(exit_hyst_s * 1000),
            confirm_stationary_ms=int(confirm_s * 1000),
            stall_timeout_ms=int(stall_s * 1000),
            rearm_exiting_timer=bool(rearm),
        )
    except ValueError as exc:
        st.error(str(exc))
        return

    try:
        samples = _load_samples(path_csv, p.stat().st_mtime)
    except Exception as exc:
        st.exception(exc)
        return

    with st.spinner("正在回放 ..."):
        res = replay(samples, params)

    st.subheader("汇总")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("定位点（有效/总数）", f"{res.samples_accepted}/{res.samples_total}")
    c2.metric("状态变化", str(len(res.changes)))
    c3.metric("自动轨迹", str(len(res.tracks)))
    c4.metric("最终状态", res.final_state.value)

    if res.rejections:
        with st.expander("被过滤的定位点", expanded=False):
            st.dataframe(
                [{"reason": k, "count": n} for k, n in res.rejections.most_common()],
                use_container_width=True,
            )

    st.subheader("速度曲线（m/s）")
    st.line_chart(
        {
            "speed_mps": [s.speed_mps if s.speed_mps is not None else 0.0 for s in samples],
        }
    )

    st.subheader("状态变化")
    st.dataframe(_state_rows(res, tz_name), use_container_width=True, height=320)

    st.subheader("自动记录的轨迹")
    st.dataframe(_track_rows(res, tz_name), use_container_width=True, height=320)

    st.caption("说明：回放时每隔 watchdog 周期（按数据时间）执行一次超时检查，与手机端服务的定时检查一致。")


if __name__ == "__main__":
    main()
