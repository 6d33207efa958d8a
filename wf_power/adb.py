from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path


DEFAULT_TIMEOUT_S = 120.0

WAKER_PACKAGE = "com.garan.waker"
WAKER_COMPONENT = f"{WAKER_PACKAGE}/.WakerActivity"


def default_adb_candidates() -> list[str]:
    # The monitor normally runs on a Raspberry Pi with the distro adb package.
    return ["/usr/bin/adb", "/usr/local/bin/adb", "adb"]


def resolve_adb(adb_arg: str | None) -> str:
    if adb_arg:
        return adb_arg
    for cand in default_adb_candidates():
        if Path(cand).is_file() or shutil.which(cand):
            return cand
    raise SystemExit("adb not found. Set adbPath in the config or add platform-tools to PATH.")


@dataclass(frozen=True)
class ShellResult:
    rc: int
    out: str
    err: str

    @property
    def text(self) -> str:
        return self.out + self.err


@dataclass(frozen=True)
class AdbCommand:
    """One adb invocation: ``adb [-s serial] <args...>``."""

    args: tuple[str, ...]
    description: str
    serial: str | None = None

    def argv(self, adb: str) -> list[str]:
        base = ["-s", self.serial] if self.serial else []
        return [adb, *base, *self.args]


def run_adb(adb: str, args: list[str], timeout_s: float) -> tuple[int, str, str]:
    proc = subprocess.run(
        [adb, *args],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        timeout=timeout_s,
    )
    return proc.returncode, proc.stdout.decode("utf-8", errors="replace"), proc.stderr.decode("utf-8", errors="replace")


def run_command(adb: str, command: AdbCommand, timeout_s: float = DEFAULT_TIMEOUT_S) -> ShellResult:
    argv = command.argv(adb)
    rc, out, err = run_adb(argv[0], argv[1:], timeout_s=timeout_s)
    return ShellResult(rc=rc, out=out, err=err)


def connected_serials(devices_output: str) -> dict[str, str]:
    """Return {serial: state} from `adb devices` (state is usually 'device', 'offline', 'unauthorized')."""
    devices: dict[str, str] = {}
    for ln in devices_output.splitlines():
        ln = ln.strip()
        if not ln or ln.lower().startswith("list of devices") or ln.startswith("*"):
            continue
        parts = ln.split()
        if len(parts) < 2:
            continue
        devices[parts[0]] = parts[1]
    return devices


# -----------------------------
# Command builders
# -----------------------------


def devices() -> AdbCommand:
    return AdbCommand(("devices",), "list connected devices")


def connect(address: str) -> AdbCommand:
    return AdbCommand(("connect", address), f"connect {address}")


def disconnect(address: str) -> AdbCommand:
    return AdbCommand(("disconnect", address), f"disconnect {address}")


def battery_capacity(serial: str) -> AdbCommand:
    return AdbCommand(
        ("shell", "cat", "/sys/class/power_supply/battery/capacity"),
        "read battery capacity",
        serial,
    )


def install_apk(serial: str, apk: str | Path) -> AdbCommand:
    return AdbCommand(("install", "-r", "-g", str(apk)), f"install {apk}", serial)


def install_multiple(serial: str, bundle_dir: str | Path) -> AdbCommand:
    apks = sorted(str(p) for p in Path(bundle_dir).glob("*.apk"))
    return AdbCommand(("install-multiple", "-r", "-g", *apks), f"install bundle {bundle_dir}", serial)


def uninstall(serial: str, package: str) -> AdbCommand:
    return AdbCommand(("uninstall", package), f"uninstall {package}", serial)


def grant_permission(serial: str, package: str, permission: str) -> AdbCommand:
    return AdbCommand(("shell", "pm", "grant", package, permission), f"grant {permission} to {package}", serial)


def start_activity(serial: str, component: str) -> AdbCommand:
    return AdbCommand(
        (
            "shell",
            "am",
            "start",
            "-n",
            component,
            "-a",
            "android.intent.action.MAIN",
            "-c",
            "android.intent.category.LAUNCHER",
        ),
        f"start {component}",
        serial,
    )


def put_setting(serial: str, namespace: str, key: str, value: int) -> AdbCommand:
    return AdbCommand(
        ("shell", "settings", "put", namespace, key, str(int(value))),
        f"settings put {namespace} {key} {int(value)}",
        serial,
    )


def get_brand(serial: str) -> AdbCommand:
    return AdbCommand(("shell", "getprop", "ro.product.brand"), "read product brand", serial)


def reboot(serial: str) -> AdbCommand:
    return AdbCommand(("reboot",), "reboot", serial)


def broadcast(
    serial: str,
    action: str,
    *,
    package: str | None = None,
    int_extras: dict[str, int] | None = None,
    str_extras: dict[str, str] | None = None,
    component_extras: dict[str, str] | None = None,
) -> AdbCommand:
    args = ["shell", "am", "broadcast", "-a", action]
    for k, v in (str_extras or {}).items():
        args += ["--es", k, v]
    for k, v in (int_extras or {}).items():
        args += ["--ei", k, str(int(v))]
    for k, v in (component_extras or {}).items():
        args += ["--ecn", k, v]
    if package:
        args.append(package)
    return AdbCommand(tuple(args), f"broadcast {action}", serial)


def set_watch_face(serial: str, component: str) -> AdbCommand:
    return broadcast(
        serial,
        "com.google.android.wearable.app.DEBUG_SURFACE",
        str_extras={"operation": "set-watchface"},
        component_extras={"component": component},
    )


def samsung_offbody(serial: str, force_set: int) -> AdbCommand:
    # force_set=1 disables offbody detection.
    return broadcast(
        serial,
        "com.samsung.android.hardware.sensormanager.service.OFFBODY_DETECTOR",
        int_extras={"force_set": force_set},
    )


def waker_enable(serial: str) -> AdbCommand:
    return broadcast(serial, "com.garan.waker.SET_WAKEUP_ON", package=WAKER_PACKAGE)


def waker_interval(serial: str, seconds: int) -> AdbCommand:
    return broadcast(
        serial,
        "com.garan.waker.SET_WAKEUP_INTERVAL",
        package=WAKER_PACKAGE,
        int_extras={"interval_seconds": seconds},
    )


def waker_battery_levels(serial: str) -> AdbCommand:
    return broadcast(serial, "com.garan.waker.GET_BATTERY_LEVELS", package=WAKER_PACKAGE)
