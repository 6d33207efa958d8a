from __future__ import annotations

import argparse
import functools
import logging
from pathlib import Path

from wf_power.config import DEFAULT_CONFIG_PATH
from wf_power.config import MonitorConfig
from wf_power.config import load_config
from wf_power.csv_store import CsvTrialStore
from wf_power.drive import DriveFileRepository
from wf_power.google_auth import build_drive
from wf_power.google_auth import build_services
from wf_power.lock import RunLock
from wf_power.orchestrator import Orchestrator
from wf_power.orchestrator import Phase
from wf_power.power import UsbHubPower
from wf_power.sheets import SheetsTrialStore

log = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT, handlers=handlers, force=True)
    # googleapiclient is chatty at INFO about discovery docs
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)


def build_orchestrator(cfg: MonitorConfig, csv_dir: Path | None = None) -> Orchestrator:
    if csv_dir is not None:
        # Drive is only contacted when a file is not cached yet.
        store = CsvTrialStore(csv_dir)
        files = DriveFileRepository(
            download_dir=cfg.download_dir,
            connect=functools.partial(build_drive, cfg.credentials_path, cfg.token_path),
        )
    else:
        sheets, drive = build_services(cfg.credentials_path, cfg.token_path)
        store = SheetsTrialStore(sheets, cfg.spreadsheet_id)
        files = DriveFileRepository(drive, cfg.download_dir)
    power = UsbHubPower(cfg.uhubctl_path, cfg.hub_location)
    return Orchestrator(store, files, power, cfg)


def run(cfg: MonitorConfig, csv_dir: Path | None = None) -> Phase | None:
    """One scheduled pass. Returns None when another instance holds the lock."""
    lock = RunLock(cfg.lock_path, stale_after_s=cfg.lock_stale_after_s)
    if not lock.acquire():
        log.info("Already running, exiting...")
        return None

    try:
        phase = build_orchestrator(cfg, csv_dir).run_once()
        log.info("Run finished: %s", phase.value)
        return phase
    except Exception:
        log.exception("Run failed")
        raise
    finally:
        lock.release()


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Advance watch face battery trials by one step (run from cron)")
    ap.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to config.json")
    ap.add_argument(
        "--csv-dir",
        type=Path,
        default=None,
        help="Read/write trials from devices.csv, watch_faces.csv, trials.csv in this directory instead of Sheets",
    )
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--log-file", type=Path, default=None)
    args = ap.parse_args(argv)

    setup_logging(args.log_level, args.log_file)
    cfg = load_config(args.config)
    run(cfg, csv_dir=args.csv_dir)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
