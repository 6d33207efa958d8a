from __future__ import annotations

import logging
from typing import Sequence

from wf_power.model import Device
from wf_power.model import Trial
from wf_power.model import WatchFaceDefinition
from wf_power.model import merge_trial_rows
from wf_power.model import parse_device_rows
from wf_power.model import parse_trial_rows
from wf_power.model import parse_watch_face_rows

log = logging.getLogger(__name__)


DEVICES_SHEET = "Devices"
WATCH_FACES_SHEET = "Watch Faces"
TRIALS_SHEET = "Trials"


class SheetsTrialStore:
    """Trials, devices and watch faces kept in one Google spreadsheet.

    The spreadsheet has three sheets, each with a header row:

    - "Devices": name, adb address:port
    - "Watch Faces": name, package, version, component, Drive file id (optional)
    - "Trials": see ``wf_power.model.TRIAL_HEADER``

    Catalogs are read once per store instance, i.e. once per run.
    """

    def __init__(self, service, spreadsheet_id: str) -> None:
        self._values = service.spreadsheets().values()
        self.spreadsheet_id = spreadsheet_id
        self._devices: list[Device] | None = None
        self._watch_faces: list[WatchFaceDefinition] | None = None

    def _get(self, sheet: str) -> list[list[object]]:
        resp = self._values.get(spreadsheetId=self.spreadsheet_id, range=sheet).execute()
        return resp.get("values", [])

    def get_devices(self) -> list[Device]:
        if self._devices is None:
            self._devices = parse_device_rows(self._get(DEVICES_SHEET))
        return self._devices

    def get_watch_faces(self) -> list[WatchFaceDefinition]:
        if self._watch_faces is None:
            self._watch_faces = parse_watch_face_rows(self._get(WATCH_FACES_SHEET))
        return self._watch_faces

    def get_trials(self) -> list[Trial]:
        return parse_trial_rows(self._get(TRIALS_SHEET), self.get_devices(), self.get_watch_faces())

    def update_trials(self, trials: Sequence[Trial]) -> None:
        """Rewrite the rows of ``trials``, matched by run id.

        The sheet is re-read first so rows added or edited by hand since the
        run started are kept.
        """
        if not trials:
            return
        rows = merge_trial_rows(self._get(TRIALS_SHEET), trials)
        for t in trials:
            log.info("Trial %d -> %s", t.run_id, t.to_row())
        self._values.update(
            spreadsheetId=self.spreadsheet_id,
            range=TRIALS_SHEET,
            valueInputOption="RAW",
            body={"majorDimension": "ROWS", "values": rows},
        ).execute()
