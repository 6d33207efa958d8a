"""Shared fakes: an in-memory trial store, file repository, hub power and watch.

They all append to one ``events`` list so tests can assert on ordering across
collaborators (e.g. results persisted before the power goes off).
"""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from wf_power.config import MonitorConfig
from wf_power.model import Device
from wf_power.model import Trial
from wf_power.model import TrialStatus
from wf_power.model import WatchFaceDefinition
from wf_power.orchestrator import Orchestrator


T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeStore:
    def __init__(self, events: list, trials: list[Trial], devices: list[Device]) -> None:
        self.events = events
        self.trials = {t.run_id: t for t in trials}
        self.devices = devices
        self.updates: list[list[Trial]] = []

    def get_trials(self) -> list[Trial]:
        return list(self.trials.values())

    def get_devices(self) -> list[Device]:
        return list(self.devices)

    def update_trials(self, trials) -> None:
        trials = list(trials)
        self.events.append(("store.update", tuple(t.run_id for t in trials)))
        self.updates.append(trials)
        for t in trials:
            self.trials[t.run_id] = t


class FakeFiles:
    def __init__(self, events: list, names: dict[str, str] | None = None) -> None:
        self.events = events
        self.names = names or {}

    def get_file_name(self, file_id: str) -> str:
        return self.names.get(file_id, f"{file_id}.apk")

    def download_to_path(self, file_id: str, path) -> Path:
        self.events.append(("files.download_to_path", file_id, str(path)))
        Path(path).write_bytes(b"apk")
        return Path(path)

    def download_apk(self, file_id: str) -> Path:
        self.events.append(("files.download_apk", file_id))
        return Path(f"/tmp/wfb-{file_id}.apk")

    def download_bundle(self, file_id: str) -> Path:
        self.events.append(("files.download_bundle", file_id))
        return Path(f"/tmp/wfd-{file_id}")


class FakePower:
    def __init__(self, events: list) -> None:
        self.events = events

    def power_on(self) -> None:
        self.events.append(("power", "on"))

    def power_off(self) -> None:
        self.events.append(("power", "off"))


class FakeWatch:
    def __init__(self, events: list, device: Device, battery: int = 100, drain: float = 0.0) -> None:
        self.events = events
        self.device = device
        self.battery = battery
        self.drain = drain

    @property
    def name(self) -> str:
        return self.device.name

    def _rec(self, op: str, *args) -> None:
        self.events.append((self.device.name, op, *args))

    def get_battery_level(self) -> int:
        self._rec("get_battery_level")
        return self.battery

    def get_approximate_battery_drain(self) -> float:
        self._rec("get_approximate_battery_drain")
        return self.drain

    def __getattr__(self, op: str):
        if op.startswith("_"):
            raise AttributeError(op)

        def call(*args):
            self._rec(op, *args)

        return call


def make_device(name: str) -> Device:
    return Device(name=name, address_and_port=f"10.0.0.{len(name)}:5555")


SYSTEM_FACE = WatchFaceDefinition("Analog", "com.google.android.wearable.watchface", "1", "com.google.android.wearable.watchface/.AnalogService")
APK_FACE = WatchFaceDefinition("Sporty", "com.example.sporty", "2.1", "com.example.sporty/.SportyService", "apk-id")
BUNDLE_FACE = WatchFaceDefinition("Minimal", "com.example.minimal", "3", "com.example.minimal/.MinimalService", "bundle-id")


def make_trial(run_id: int, device: Device, status: TrialStatus = TrialStatus.NOT_STARTED, face=APK_FACE, **kw) -> Trial:
    return Trial(run_id=run_id, device=device, watch_face=face, enable_aod=kw.pop("enable_aod", False), status=status, **kw)


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def config(tmp_path) -> MonitorConfig:
    waker = tmp_path / "waker.apk"
    waker.write_bytes(b"apk")
    return MonitorConfig(
        spreadsheet_id="sheet",
        trial_time_minutes=60,
        waker_apk_drive_file_id="waker-id",
        waker_apk_path=str(waker),
        lock_path=str(tmp_path / "monitor.lock"),
        download_dir=str(tmp_path),
    )


@pytest.fixture
def dev1() -> Device:
    return make_device("watch-a")


@pytest.fixture
def dev2() -> Device:
    return make_device("watch-bb")


@pytest.fixture
def build(events, config):
    """build(trials, devices, batteries={name: level}, drains={name: drain}, now=T0)"""

    def _build(trials, devices, *, batteries=None, drains=None, now=T0, file_names=None, cfg=None):
        store = FakeStore(events, trials, devices)
        files = FakeFiles(events, file_names)
        power = FakePower(events)
        watches: dict[str, FakeWatch] = {}

        def factory(device: Device) -> FakeWatch:
            w = FakeWatch(
                events,
                device,
                battery=(batteries or {}).get(device.name, 100),
                drain=(drains or {}).get(device.name, 0.0),
            )
            watches[device.name] = w
            return w

        orch = Orchestrator(
            store,
            files,
            power,
            cfg or config,
            device_factory=factory,
            clock=lambda: now,
            sleep=lambda s: events.append(("sleep", s)),
        )
        return orch, store, watches

    return _build
