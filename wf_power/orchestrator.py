from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol, Sequence

from wf_power.adb import resolve_adb
from wf_power.config import MonitorConfig
from wf_power.device import WatchDevice
from wf_power.model import Device
from wf_power.model import Trial
from wf_power.model import TrialStatus

log = logging.getLogger(__name__)


# Pause between removing an old watch face and installing the new build.
UNINSTALL_SETTLE_S = 3.0
# Pause between power on and off when waking the hub before final readings.
POWER_CYCLE_S = 3.0
FULL_CHARGE = 100


class TrialStore(Protocol):
    def get_trials(self) -> list[Trial]: ...

    def get_devices(self) -> list[Device]: ...

    def update_trials(self, trials: Sequence[Trial]) -> None: ...


class FileRepository(Protocol):
    def get_file_name(self, file_id: str) -> str: ...

    def download_to_path(self, file_id: str, path: str | Path) -> Path: ...

    def download_apk(self, file_id: str) -> Path: ...

    def download_bundle(self, file_id: str) -> Path: ...


class PowerControl(Protocol):
    def power_on(self) -> None: ...

    def power_off(self) -> None: ...


class Phase(Enum):
    IDLE = "idle"
    NOT_STARTED = "not_started"
    PREPARING = "preparing"
    IN_PROGRESS = "in_progress"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def allocate_trials(trials: Sequence[Trial], devices: Sequence[Device]) -> list[Trial]:
    """Pick at most one trial per registered device, first come first served."""
    registered = {d.name for d in devices}
    claimed: set[str] = set()
    selected: list[Trial] = []
    for trial in trials:
        if len(claimed) >= len(registered):
            break
        name = trial.device.name
        if name not in registered or name in claimed:
            continue
        claimed.add(name)
        selected.append(trial)
    return selected


class Orchestrator:
    """Advances trials through NOT_STARTED -> PREPARING -> IN_PROGRESS -> COMPLETED.

    One call to ``run_once`` handles a single phase, in priority order
    PREPARING, IN_PROGRESS, NOT_STARTED, so no new device setup begins while
    another wave is still charging or running. All state lives in the trial
    store; a failed run is picked up again by the next scheduled run.
    """

    def __init__(
        self,
        store: TrialStore,
        files: FileRepository,
        power: PowerControl,
        config: MonitorConfig,
        *,
        device_factory: Callable[[Device], WatchDevice] | None = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.files = files
        self.power = power
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self._device_factory = device_factory or self._default_device
        self._handles: dict[str, WatchDevice] = {}

    def _default_device(self, device: Device) -> WatchDevice:
        return WatchDevice(
            device,
            resolve_adb(self.config.adb_path),
            waker_apk_path=self.config.waker_apk_path,
        )

    def handle(self, trial: Trial) -> WatchDevice:
        name = trial.device.name
        if name not in self._handles:
            self._handles[name] = self._device_factory(trial.device)
        return self._handles[name]

    # ----- entry point -----

    def ensure_waker_cached(self) -> Path:
        path = Path(self.config.waker_apk_path)
        if not path.exists():
            log.info("Downloading waker to %s...", path)
            self.files.download_to_path(self.config.waker_apk_drive_file_id, path)
        return path

    def run_once(self) -> Phase:
        self.ensure_waker_cached()

        trials = [t for t in self.store.get_trials() if t.status is not TrialStatus.COMPLETED]
        by_status: dict[TrialStatus, list[Trial]] = {s: [] for s in TrialStatus}
        for t in trials:
            by_status[t.status].append(t)

        if by_status[TrialStatus.PREPARING]:
            self.process_preparing(by_status[TrialStatus.PREPARING])
            return Phase.PREPARING
        if by_status[TrialStatus.IN_PROGRESS]:
            self.process_in_progress(by_status[TrialStatus.IN_PROGRESS])
            return Phase.IN_PROGRESS
        if by_status[TrialStatus.NOT_STARTED]:
            self.process_not_started(by_status[TrialStatus.NOT_STARTED])
            return Phase.NOT_STARTED

        log.info("Nothing to do!")
        # Leave the chargers on between waves.
        self.power.power_on()
        return Phase.IDLE

    # ----- NOT_STARTED -----

    def process_not_started(self, trials: Sequence[Trial]) -> list[Trial]:
        selected = allocate_trials(trials, self.store.get_devices())
        if not selected:
            log.info("No free device for %d waiting trial(s)", len(trials))
            self.power.power_on()
            return []

        # Preparing means charging, which needs the hub powered.
        self.power.power_on()
        preparing = [t.mark_preparing() for t in selected]
        self.store.update_trials(preparing)
        log.info("Preparing trials: %s", ", ".join(str(t.run_id) for t in preparing))
        return preparing

    # ----- PREPARING -----

    def check_fully_prepared(self, trials: Sequence[Trial]) -> bool:
        ready = True
        for trial in trials:
            level = self.handle(trial).get_battery_level()
            log.info("%s: battery %d%% (run %d)", trial.device.name, level, trial.run_id)
            if level < FULL_CHARGE:
                ready = False
        return ready

    def process_preparing(self, trials: Sequence[Trial]) -> list[Trial]:
        # Power is needed for wifi connectivity during the battery check, and
        # should already be on since preparing means charging.
        self.power.power_on()
        if not self.check_fully_prepared(trials):
            log.info("Still charging, will check again next run")
            return []

        for trial in trials:
            self.start_trial(trial)

        start_time = self.clock()
        started = [t.mark_started(start_time, start_charge=FULL_CHARGE) for t in trials]
        self.store.update_trials(started)
        # Trials run unplugged.
        self.power.power_off()
        return started

    def start_trial(self, trial: Trial) -> None:
        device = self.handle(trial)
        if not trial.watch_face.is_system:
            self.install_watch_face(trial)

        log.info("%s: Setting watch face...", device.name)
        device.set_watch_face(trial.watch_face.component)

        log.info("%s: Setting watch environment...", device.name)
        device.set_trial_environment(trial.enable_aod)

        log.info("%s: Installing waker agent...", device.name)
        device.install_waker_agent()
        device.enable_waker_agent()
        if self.config.waker_interval_seconds is not None:
            device.set_waker_interval(self.config.waker_interval_seconds)

        device.disconnect()

    def install_watch_face(self, trial: Trial) -> None:
        device = self.handle(trial)
        face = trial.watch_face

        log.info("%s: Uninstalling watch face, if already present", device.name)
        device.uninstall_package(face.package_name)
        self.sleep(UNINSTALL_SETTLE_S)

        log.info("%s: Installing watch face %s (%s)...", device.name, face.name, face.version)
        file_name = self.files.get_file_name(face.drive_file_id)
        if file_name.lower().endswith(".zip"):
            device.install_bundle(self.files.download_bundle(face.drive_file_id))
        else:
            device.install_apk(self.files.download_apk(face.drive_file_id))

    # ----- IN_PROGRESS -----

    def trial_time_elapsed(self, trials: Sequence[Trial]) -> bool:
        now = self.clock()
        limit = timedelta(seconds=self.config.trial_time_s)
        return all(t.start_time is not None and now - t.start_time > limit for t in trials)

    def process_in_progress(self, trials: Sequence[Trial]) -> list[Trial]:
        log.info("Checking in progress trials...")
        if not self.trial_time_elapsed(trials):
            return []

        log.info("Trial time has completed!")
        completed = self.finalize_trials(trials)
        self.store.update_trials(completed)

        # Remove the watch face completely once the trial is done.
        for trial in trials:
            device = self.handle(trial)
            device.uninstall_waker_agent()
            if not trial.watch_face.is_system:
                device.uninstall_package(trial.watch_face.package_name)

        for trial in trials:
            self.handle(trial).reboot()
        return completed

    def finalize_trials(self, trials: Sequence[Trial]) -> list[Trial]:
        # Cycling the hub power brings the watches back onto wifi for the readings.
        self.power.power_on()
        self.sleep(POWER_CYCLE_S)
        self.power.power_off()
        self.power.power_on()

        completed: list[Trial] = []
        for trial in trials:
            device = self.handle(trial)
            level = device.get_battery_level()
            drain = device.get_approximate_battery_drain()
            log.info("%s: end charge %d%%, waker drain %.6f %%/s", device.name, level, drain)
            completed.append(trial.mark_completed(self.clock(), level, drain))
        return completed
