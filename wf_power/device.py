from __future__ import annotations

import functools
import logging
import subprocess
import time
from pathlib import Path
from typing import Callable

from wf_power import adb
from wf_power.adb import AdbCommand
from wf_power.adb import ShellResult
from wf_power.drain import estimate_drain_from_output
from wf_power.errors import AdbCommandError
from wf_power.errors import BatteryParseError
from wf_power.errors import DeviceConnectionError
from wf_power.model import Device

log = logging.getLogger(__name__)


MAX_CONNECT_ATTEMPTS = 20
CONNECT_RETRY_DELAY_S = 1.0

# Time for the screen to go from interactive to ambient/off.
SCREEN_TIMEOUT_MS = 15000
SCREEN_BRIGHTNESS = 255

DEFAULT_WAKER_APK_PATH = "/tmp/waker.apk"
OVERLAY_PERMISSION = "android.permission.SYSTEM_ALERT_WINDOW"

_CONNECT_FAILURE_MARKERS = ("failed", "cannot connect", "unable to connect")

Runner = Callable[[str, AdbCommand, float], ShellResult]


def requires_connection(fn):
    """Run ``ensure_connected()`` before the wrapped device operation."""

    @functools.wraps(fn)
    def wrapper(self: "WatchDevice", *args, **kwargs):
        self.ensure_connected()
        return fn(self, *args, **kwargs)

    return wrapper


class WatchDevice:
    """A Wear OS watch reachable over adb-over-wifi.

    Holds no state beyond the device identity; every operation is a single adb
    invocation, or a short fixed sequence for the composite ones.

    Commands go through one of two helpers. ``_critical`` raises on a non-zero
    exit and is used where a wrong answer would corrupt results (battery
    reads). ``_best_effort`` logs and carries on; setup steps rely on the
    battery check before a trial starts as their correctness gate.
    """

    def __init__(
        self,
        device: Device,
        adb_path: str = "adb",
        *,
        runner: Runner = adb.run_command,
        sleep: Callable[[float], None] = time.sleep,
        waker_apk_path: str | Path = DEFAULT_WAKER_APK_PATH,
        timeout_s: float = adb.DEFAULT_TIMEOUT_S,
    ) -> None:
        self.device = device
        self.adb_path = adb_path
        self.waker_apk_path = Path(waker_apk_path)
        self.timeout_s = timeout_s
        self._runner = runner
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.device.name

    @property
    def serial(self) -> str:
        return self.device.address_and_port

    def __repr__(self) -> str:
        return f"WatchDevice({self.name!r}, {self.serial!r})"

    # ----- command execution -----

    def _run(self, command: AdbCommand) -> ShellResult:
        log.debug("%s: adb %s", self.name, " ".join(command.argv(self.adb_path)[1:]))
        return self._runner(self.adb_path, command, self.timeout_s)

    def _critical(self, command: AdbCommand) -> ShellResult:
        res = self._run(command)
        if res.rc != 0:
            raise AdbCommandError(
                f"{self.name}: {command.description} failed (exit={res.rc}): {res.text.strip()}",
                rc=res.rc,
                output=res.text,
            )
        return res

    def _best_effort(self, command: AdbCommand) -> ShellResult | None:
        try:
            res = self._run(command)
        except (OSError, subprocess.SubprocessError) as e:
            log.warning("%s: %s did not run: %s", self.name, command.description, e)
            return None
        if res.rc != 0:
            log.warning("%s: %s exited %d: %s", self.name, command.description, res.rc, res.text.strip())
        return res

    # ----- connection -----

    def is_connected(self) -> bool:
        res = self._run(adb.devices())
        return adb.connected_serials(res.out).get(self.serial) == "device"

    def _connect_once(self) -> bool:
        try:
            res = self._run(adb.connect(self.serial))
        except subprocess.TimeoutExpired as e:
            log.info("%s: adb connect timed out: %s", self.name, e)
            return False
        text = res.text.lower()
        if res.rc != 0 or any(marker in text for marker in _CONNECT_FAILURE_MARKERS):
            log.info("%s: adb connect: %s", self.name, res.text.strip())
            return False
        return True

    def ensure_connected(self) -> None:
        if self.is_connected():
            return
        log.info("%s is not connected, connecting...", self.name)
        for attempt in range(1, MAX_CONNECT_ATTEMPTS + 1):
            if self._connect_once():
                return
            if attempt == MAX_CONNECT_ATTEMPTS:
                break
            self._sleep(CONNECT_RETRY_DELAY_S)
            log.info("%s is not connected, connecting... (attempt %d)", self.name, attempt + 1)
        raise DeviceConnectionError(f"Couldn't connect to device: {self.name} ({self.serial})")

    def disconnect(self) -> None:
        self._best_effort(adb.disconnect(self.serial))

    # ----- packages -----

    @requires_connection
    def install_apk(self, path: str | Path) -> None:
        self._best_effort(adb.install_apk(self.serial, path))

    @requires_connection
    def install_bundle(self, dir_path: str | Path) -> None:
        res = self._best_effort(adb.install_multiple(self.serial, dir_path))
        if res is not None:
            log.info("%s: %s", self.name, res.out.strip())

    @requires_connection
    def uninstall_package(self, package: str) -> None:
        self._best_effort(adb.uninstall(self.serial, package))

    @requires_connection
    def grant_permission(self, package: str, permission: str) -> None:
        self._best_effort(adb.grant_permission(self.serial, package, permission))

    @requires_connection
    def launch_component(self, component: str) -> None:
        self._best_effort(adb.start_activity(self.serial, component))

    # ----- readings -----

    @requires_connection
    def get_battery_level(self) -> int:
        res = self._critical(adb.battery_capacity(self.serial))
        raw = res.out.strip()
        try:
            level = int(raw)
        except ValueError:
            raise BatteryParseError(f"{self.name}: unexpected battery capacity {raw!r}", rc=res.rc, output=res.out) from None
        if not 0 <= level <= 100:
            raise BatteryParseError(f"{self.name}: battery capacity out of range: {level}", rc=res.rc, output=res.out)
        return level

    @requires_connection
    def get_brand(self) -> str:
        res = self._best_effort(adb.get_brand(self.serial))
        return "" if res is None else res.out.strip()

    @requires_connection
    def get_approximate_battery_drain(self) -> float:
        """Drain in %/s from the waker's own battery log (0.0 when unmeasurable)."""
        res = self._best_effort(adb.waker_battery_levels(self.serial))
        if res is None:
            return 0.0
        return estimate_drain_from_output(res.out)

    # ----- settings -----

    @requires_connection
    def set_watch_face(self, component: str) -> None:
        self._best_effort(adb.set_watch_face(self.serial, component))

    @requires_connection
    def set_always_on_display(self, enabled: bool) -> None:
        self._best_effort(adb.put_setting(self.serial, "global", "ambient_enabled", 1 if enabled else 0))

    @requires_connection
    def set_screen_brightness(self, level: int = SCREEN_BRIGHTNESS) -> None:
        # screen_brightness_mode: 0 manual, 1 auto
        self._best_effort(adb.put_setting(self.serial, "system", "screen_brightness_mode", 0))
        self._best_effort(adb.put_setting(self.serial, "system", "screen_brightness", level))

    @requires_connection
    def set_screen_timeout(self, timeout_ms: int = SCREEN_TIMEOUT_MS) -> None:
        self._best_effort(adb.put_setting(self.serial, "system", "screen_off_timeout", timeout_ms))

    @requires_connection
    def perform_manufacturer_setup(self) -> None:
        """Brand specific steps so the watch behaves as if worn."""
        brand = self.get_brand().lower()
        if "samsung" in brand:
            self._best_effort(adb.samsung_offbody(self.serial, 1))
        elif "google" in brand:
            # -1 turns the plugged ambient timeout off
            self._best_effort(adb.put_setting(self.serial, "global", "ambient_plugged_timeout_min", -1))
        else:
            log.debug("%s: no manufacturer setup for brand %r", self.name, brand)

    def set_trial_environment(self, enable_aod: bool) -> None:
        self.set_always_on_display(enable_aod)
        self.set_screen_brightness()
        self.set_screen_timeout()
        self.perform_manufacturer_setup()

    # ----- waker agent -----

    @requires_connection
    def install_waker_agent(self) -> None:
        self.uninstall_waker_agent()
        self.install_apk(self.waker_apk_path)
        self.grant_permission(adb.WAKER_PACKAGE, OVERLAY_PERMISSION)
        self.launch_component(adb.WAKER_COMPONENT)

    @requires_connection
    def uninstall_waker_agent(self) -> None:
        self.uninstall_package(adb.WAKER_PACKAGE)

    @requires_connection
    def enable_waker_agent(self) -> None:
        self._best_effort(adb.waker_enable(self.serial))

    @requires_connection
    def set_waker_interval(self, seconds: int) -> None:
        self._best_effort(adb.waker_interval(self.serial, seconds))

    @requires_connection
    def reboot(self) -> None:
        self._best_effort(adb.reboot(self.serial))
