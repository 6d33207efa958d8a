from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping, Sequence

from wf_power.errors import InvalidTransition
from wf_power.errors import RowParseError

log = logging.getLogger(__name__)


# Column positions in the "Trials" sheet.
COL_RUN_ID = 0
COL_DEVICE = 1
COL_WATCH_FACE = 2
COL_AOD = 3
COL_STATUS = 4
COL_START_TIME = 5
COL_END_TIME = 6
COL_START_CHARGE = 7
COL_END_CHARGE = 8
COL_APPROX_DRAIN = 9
TRIAL_COLUMNS = 10

TRIAL_HEADER = [
    "Run ID",
    "Device",
    "Watch Face",
    "AoD",
    "Status",
    "Start Time",
    "End Time",
    "Start Charge",
    "End Charge",
    "Approximate Drain",
]


def _cell(row: Sequence[object], idx: int) -> str:
    if idx >= len(row):
        return ""
    v = row[idx]
    if v is None:
        return ""
    if isinstance(v, float) and math.isnan(v):
        return ""
    return str(v).strip()


def _opt_int(row: Sequence[object], idx: int, what: str) -> int | None:
    s = _cell(row, idx)
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        # Sheets may hand back "1700000000.0" for numeric cells.
        try:
            f = float(s)
        except ValueError:
            raise RowParseError(f"{what}: not an integer: {s!r}") from None
        if not f.is_integer():
            raise RowParseError(f"{what}: not an integer: {s!r}")
        return int(f)


def _opt_float(row: Sequence[object], idx: int, what: str) -> float | None:
    s = _cell(row, idx)
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        raise RowParseError(f"{what}: not a number: {s!r}") from None


def _opt_time(row: Sequence[object], idx: int, what: str) -> datetime | None:
    secs = _opt_int(row, idx, what)
    if secs is None:
        return None
    return datetime.fromtimestamp(secs, tz=timezone.utc)


def _blank(v: object | None) -> object:
    return "" if v is None else v


def epoch_seconds(t: datetime) -> int:
    return int(t.timestamp())


@dataclass(frozen=True)
class Device:
    name: str
    address_and_port: str

    @classmethod
    def from_row(cls, row: Sequence[object]) -> "Device":
        name = _cell(row, 0)
        address = _cell(row, 1)
        if not name or not address:
            raise RowParseError(f"device row needs name and address: {list(row)!r}")
        return cls(name=name, address_and_port=address)


@dataclass(frozen=True)
class WatchFaceDefinition:
    """A watch face that can be installed and tested.

    ``component`` is the service component, e.g.
    ``com.example.mywatchface/.MyWatchFaceService``. ``drive_file_id`` points at
    an APK, or a bundle ending in ``.zip``; blank means the watch face ships with
    the device and is never installed or uninstalled.
    """

    name: str
    package_name: str
    version: str
    component: str
    drive_file_id: str = ""

    @property
    def is_system(self) -> bool:
        return not self.drive_file_id.strip()

    @classmethod
    def from_row(cls, row: Sequence[object]) -> "WatchFaceDefinition":
        name = _cell(row, 0)
        if not name:
            raise RowParseError(f"watch face row without a name: {list(row)!r}")
        return cls(
            name=name,
            package_name=_cell(row, 1),
            version=_cell(row, 2),
            component=_cell(row, 3),
            drive_file_id=_cell(row, 4),
        )


class TrialStatus(Enum):
    NOT_STARTED = "NOT_STARTED"
    PREPARING = "PREPARING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)

    @classmethod
    def parse(cls, text: object) -> "TrialStatus":
        """Parse a status cell. Blank means a freshly inserted row."""
        s = "" if text is None else str(text).strip()
        if not s:
            return cls.NOT_STARTED
        try:
            return cls[s.upper()]
        except KeyError:
            raise RowParseError(f"unknown trial status: {s!r}") from None


_STATUS_ORDER = [
    TrialStatus.NOT_STARTED,
    TrialStatus.PREPARING,
    TrialStatus.IN_PROGRESS,
    TrialStatus.COMPLETED,
]


@dataclass(frozen=True)
class Trial:
    run_id: int
    device: Device
    watch_face: WatchFaceDefinition
    enable_aod: bool
    status: TrialStatus = TrialStatus.NOT_STARTED
    start_time: datetime | None = None
    end_time: datetime | None = None
    start_charge: int | None = None
    end_charge: int | None = None
    approximate_drain: float | None = None

    def _advance(self, status: TrialStatus, **changes: object) -> "Trial":
        if status.rank < self.status.rank:
            raise InvalidTransition(f"run {self.run_id}: {self.status.name} -> {status.name}")
        return replace(self, status=status, **changes)

    def mark_preparing(self) -> "Trial":
        return self._advance(TrialStatus.PREPARING)

    def mark_started(self, start_time: datetime, start_charge: int = 100) -> "Trial":
        return self._advance(TrialStatus.IN_PROGRESS, start_time=start_time, start_charge=start_charge)

    def mark_completed(self, end_time: datetime, end_charge: int, approximate_drain: float) -> "Trial":
        return self._advance(
            TrialStatus.COMPLETED,
            end_time=end_time,
            end_charge=end_charge,
            approximate_drain=approximate_drain,
        )

    def to_row(self) -> list[object]:
        return [
            self.run_id,
            self.device.name,
            self.watch_face.name,
            "On" if self.enable_aod else "Off",
            self.status.name,
            "" if self.start_time is None else epoch_seconds(self.start_time),
            "" if self.end_time is None else epoch_seconds(self.end_time),
            _blank(self.start_charge),
            _blank(self.end_charge),
            _blank(self.approximate_drain),
        ]

    @classmethod
    def from_row(
        cls,
        row: Sequence[object],
        devices: Mapping[str, Device],
        watch_faces: Mapping[str, WatchFaceDefinition],
    ) -> "Trial | None":
        """Parse one "Trials" row.

        Returns None when the device or watch face is not in its catalog, so
        callers can skip rows that refer to retired hardware.
        """
        run_id = _opt_int(row, COL_RUN_ID, "run id")
        if run_id is None:
            raise RowParseError(f"trial row without a run id: {list(row)!r}")

        device = devices.get(_cell(row, COL_DEVICE))
        watch_face = watch_faces.get(_cell(row, COL_WATCH_FACE))
        if device is None or watch_face is None:
            return None

        return cls(
            run_id=run_id,
            device=device,
            watch_face=watch_face,
            enable_aod=_cell(row, COL_AOD).lower() == "on",
            status=TrialStatus.parse(_cell(row, COL_STATUS)),
            start_time=_opt_time(row, COL_START_TIME, "start time"),
            end_time=_opt_time(row, COL_END_TIME, "end time"),
            start_charge=_opt_int(row, COL_START_CHARGE, "start charge"),
            end_charge=_opt_int(row, COL_END_CHARGE, "end charge"),
            approximate_drain=_opt_float(row, COL_APPROX_DRAIN, "approximate drain"),
        )


def parse_trial_rows(
    rows: Sequence[Sequence[object]],
    devices: Sequence[Device],
    watch_faces: Sequence[WatchFaceDefinition],
) -> list[Trial]:
    """Parse the "Trials" sheet values, header row included.

    Malformed rows are logged and skipped so one bad edit in the sheet does not
    stall every other trial.
    """
    devices_by_name = {d.name: d for d in devices}
    faces_by_name = {w.name: w for w in watch_faces}
    trials: list[Trial] = []
    for row in rows[1:]:
        if not any(_cell(row, i) for i in range(len(row))):
            continue
        try:
            trial = Trial.from_row(row, devices_by_name, faces_by_name)
        except RowParseError as e:
            log.warning("Skipping trial row %r: %s", list(row), e)
            continue
        if trial is not None:
            trials.append(trial)
    return trials


def _parse_catalog(rows: Sequence[Sequence[object]], parse) -> list:
    out = []
    for row in rows[1:]:
        if not any(_cell(row, i) for i in range(len(row))):
            continue
        try:
            out.append(parse(row))
        except RowParseError as e:
            log.warning("Skipping catalog row: %s", e)
    return out


def parse_device_rows(rows: Sequence[Sequence[object]]) -> list[Device]:
    return _parse_catalog(rows, Device.from_row)


def parse_watch_face_rows(rows: Sequence[Sequence[object]]) -> list[WatchFaceDefinition]:
    return _parse_catalog(rows, WatchFaceDefinition.from_row)


def merge_trial_rows(rows: Sequence[Sequence[object]], trials: Sequence[Trial]) -> list[list[object]]:
    """Replace rows whose run id matches one of ``trials``; keep everything else."""
    by_id = {t.run_id: t for t in trials}
    out: list[list[object]] = []
    for idx, row in enumerate(rows):
        if idx == 0:
            out.append(list(row))
            continue
        try:
            run_id = _opt_int(row, COL_RUN_ID, "run id")
        except RowParseError:
            run_id = None
        if run_id is not None and run_id in by_id:
            out.append(by_id[run_id].to_row())
        else:
            out.append(list(row))
    return out
