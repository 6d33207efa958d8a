from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np
import pandas as pd

from wf_power.model import Trial
from wf_power.model import TrialStatus


SUMMARY_COLUMNS = [
    "run_id",
    "device",
    "watch_face",
    "version",
    "aod",
    "start_time",
    "end_time",
    "duration_h",
    "start_charge",
    "end_charge",
    "charge_drop",
    "drop_pct_per_h",
    "waker_drain_pct_per_h",
]


def summarize_trials(trials: Sequence[Trial]) -> pd.DataFrame:
    """One row per completed trial.

    ``drop_pct_per_h`` comes from the start/end charge, ``waker_drain_pct_per_h``
    from the waker's own log. A waker drain of exactly 0.0 means nothing could
    be measured, so it is reported as missing.
    """
    rows = []
    for t in trials:
        if t.status is not TrialStatus.COMPLETED:
            continue
        rows.append(
            {
                "run_id": t.run_id,
                "device": t.device.name,
                "watch_face": t.watch_face.name,
                "version": t.watch_face.version,
                "aod": "On" if t.enable_aod else "Off",
                "start_time": t.start_time,
                "end_time": t.end_time,
                "start_charge": t.start_charge,
                "end_charge": t.end_charge,
                "waker_drain": t.approximate_drain,
            }
        )
    if not rows:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    df = pd.DataFrame(rows)
    start = pd.to_datetime(df["start_time"], utc=True)
    end = pd.to_datetime(df["end_time"], utc=True)
    df["duration_h"] = (end - start).dt.total_seconds() / 3600.0

    start_charge = pd.to_numeric(df["start_charge"], errors="coerce")
    end_charge = pd.to_numeric(df["end_charge"], errors="coerce")
    df["charge_drop"] = start_charge - end_charge
    duration = df["duration_h"].where(df["duration_h"] > 0)
    df["drop_pct_per_h"] = df["charge_drop"] / duration

    waker = pd.to_numeric(df["waker_drain"], errors="coerce").astype(float)
    df["waker_drain_pct_per_h"] = np.where(waker == 0.0, np.nan, waker * 3600.0)
    return df[SUMMARY_COLUMNS]


def group_summary(df: pd.DataFrame) -> pd.DataFrame:
    """Mean drain per watch face and AoD setting."""
    if df.empty:
        return pd.DataFrame(
            columns=["watch_face", "aod", "trials", "mean_drop_pct_per_h", "mean_waker_drain_pct_per_h", "mean_duration_h"]
        )
    out = (
        df.groupby(["watch_face", "aod"], sort=True)
        .agg(
            trials=("run_id", "count"),
            mean_drop_pct_per_h=("drop_pct_per_h", "mean"),
            mean_waker_drain_pct_per_h=("waker_drain_pct_per_h", "mean"),
            mean_duration_h=("duration_h", "mean"),
        )
        .reset_index()
    )
    return out


def plot_group_summary(grouped: pd.DataFrame, out_png: Path) -> Path:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    out_png.parent.mkdir(parents=True, exist_ok=True)
    labels = [f"{wf}\nAoD {aod}" for wf, aod in zip(grouped["watch_face"], grouped["aod"])]
    x = np.arange(len(labels))
    width = 0.4

    fig, ax = plt.subplots(figsize=(max(6, 1.2 * len(labels)), 5))
    ax.bar(x - width / 2, grouped["mean_drop_pct_per_h"], width, label="start/end charge")
    ax.bar(x + width / 2, grouped["mean_waker_drain_pct_per_h"], width, label="waker log")
    ax.set_xticks(x)
    ax.set_xticklabels(labels, fontsize=8)
    ax.set_ylabel("% per hour")
    ax.set_title("Battery drain by watch face")
    ax.legend(loc="best")
    fig.tight_layout()
    fig.savefig(out_png, dpi=160)
    plt.close(fig)
    return out_png
