from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from _bootstrap import ensure_repo_root_on_sys_path

ensure_repo_root_on_sys_path()

from wf_power.config import DEFAULT_CONFIG_PATH
from wf_power.config import load_config
from wf_power.csv_store import CsvTrialStore
from wf_power.google_auth import build_services
from wf_power.report import group_summary
from wf_power.report import plot_group_summary
from wf_power.report import summarize_trials
from wf_power.sheets import SheetsTrialStore


def main() -> int:
    ap = argparse.ArgumentParser(description="Summarize completed watch face battery trials")
    ap.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="config.json (for the Sheets store)")
    ap.add_argument("--csv-dir", type=Path, default=None, help="Use a CSV trial store instead of Sheets")
    ap.add_argument("--out", type=Path, default=None, help="Optional CSV output of the per-trial table")
    ap.add_argument("--plot", type=Path, default=None, help="Optional PNG bar chart of the grouped summary")
    args = ap.parse_args()

    if args.csv_dir is not None:
        store = CsvTrialStore(args.csv_dir)
    else:
        cfg = load_config(args.config)
        sheets, _ = build_services(cfg.credentials_path, cfg.token_path)
        store = SheetsTrialStore(sheets, cfg.spreadsheet_id)

    per_trial = summarize_trials(store.get_trials())
    grouped = group_summary(per_trial)

    with pd.option_context("display.max_columns", 200, "display.width", 160):
        print(per_trial.to_string(index=False, float_format=lambda x: f"{x:.3f}"))
        print()
        print(grouped.to_string(index=False, float_format=lambda x: f"{x:.3f}"))

    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        per_trial.to_csv(args.out, index=False)
        print("Wrote:", args.out)
    if args.plot is not None and not grouped.empty:
        print("Wrote:", plot_group_summary(grouped, args.plot))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
