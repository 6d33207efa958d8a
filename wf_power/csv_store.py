from __future__ import annotations

import csv
from pathlib import Path
from typing import Sequence

import pandas as pd

from wf_power.model import TRIAL_HEADER
from wf_power.model import Device
from wf_power.model import Trial
from wf_power.model import WatchFaceDefinition
from wf_power.model import merge_trial_rows
from wf_power.model import parse_device_rows
from wf_power.model import parse_trial_rows
from wf_power.model import parse_watch_face_rows


def read_rows(path: Path) -> list[list[str]]:
    """All rows of a CSV file, header included, every cell as a string."""
    if not path.exists():
        return []
    # pandas takes the column count from the first line; hand-edited files can
    # have longer rows further down (e.g. a notes cell).
    with path.open(newline="", encoding="utf-8-sig") as f:
        width = max((len(r) for r in csv.reader(f)), default=0)
    if width == 0:
        return []
    try:
        df = pd.read_csv(
            path,
            header=None,
            names=range(width),
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return []
    # short rows come back padded with NaN
    df = df.fillna("")
    return [list(r) for r in df.itertuples(index=False, name=None)]


def write_rows(path: Path, rows: Sequence[Sequence[object]]) -> None:
    width = max((len(r) for r in rows), default=0)
    padded = [[("" if v is None else v) for v in r] + [""] * (width - len(r)) for r in rows]
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(padded).to_csv(path, header=False, index=False)


class CsvTrialStore:
    """The spreadsheet layout as three CSV files in one directory.

    ``devices.csv``, ``watch_faces.csv`` and ``trials.csv`` hold the same rows
    as the "Devices", "Watch Faces" and "Trials" sheets. Handy on a bench
    without Sheets access.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.devices_csv = self.root / "devices.csv"
        self.watch_faces_csv = self.root / "watch_faces.csv"
        self.trials_csv = self.root / "trials.csv"
        self._devices: list[Device] | None = None
        self._watch_faces: list[WatchFaceDefinition] | None = None

    def get_devices(self) -> list[Device]:
        if self._devices is None:
            self._devices = parse_device_rows(read_rows(self.devices_csv))
        return self._devices

    def get_watch_faces(self) -> list[WatchFaceDefinition]:
        if self._watch_faces is None:
            self._watch_faces = parse_watch_face_rows(read_rows(self.watch_faces_csv))
        return self._watch_faces

    def get_trials(self) -> list[Trial]:
        return parse_trial_rows(read_rows(self.trials_csv), self.get_devices(), self.get_watch_faces())

    def update_trials(self, trials: Sequence[Trial]) -> None:
        if not trials:
            return
        rows = read_rows(self.trials_csv) or [list(TRIAL_HEADER)]
        write_rows(self.trials_csv, merge_trial_rows(rows, trials))
