from __future__ import annotations

import argparse

from _bootstrap import ensure_repo_root_on_sys_path

ensure_repo_root_on_sys_path()

from wf_power.adb import resolve_adb
from wf_power.device import WatchDevice
from wf_power.model import Device
from wf_power.monitor import setup_logging


def main() -> int:
    ap = argparse.ArgumentParser(description="Connect to one watch and print brand, battery level and waker drain")
    ap.add_argument("address", help="adb address:port of the watch")
    ap.add_argument("--name", default=None, help="Label used in log output (default: the address)")
    ap.add_argument("--adb", default=None, help="adb path (optional)")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args()

    setup_logging(args.log_level)

    watch = WatchDevice(Device(args.name or args.address, args.address), resolve_adb(args.adb))
    drain = watch.get_approximate_battery_drain()
    print("device", watch.name)
    print("brand", watch.get_brand() or "?")
    print("battery_level", watch.get_battery_level())
    print("waker_drain_pct_per_s", f"{drain:.6f}")
    print("waker_drain_pct_per_h", f"{drain * 3600.0:.3f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
