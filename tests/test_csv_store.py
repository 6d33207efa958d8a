from __future__ import annotations

from datetime import datetime, timezone

import pytest

from wf_power.csv_store import CsvTrialStore
from wf_power.csv_store import read_rows
from wf_power.csv_store import write_rows
from wf_power.model import TRIAL_HEADER
from wf_power.model import TrialStatus


@pytest.fixture
def store(tmp_path):
    (tmp_path / "devices.csv").write_text("Name,Address\nwatch-a,10.0.0.7:5555\nwatch-b,10.0.0.8:5555\n")
    (tmp_path / "watch_faces.csv").write_text(
        "Name,Package,Version,Component,Drive File\n"
        "Analog,com.google.wf,1,com.google.wf/.Analog\n"
        "Sporty,com.example.sporty,2,com.example.sporty/.Service,apk-id\n"
    )
    write_rows(
        tmp_path / "trials.csv",
        [
            TRIAL_HEADER,
            [1, "watch-a", "Sporty", "On", "NOT_STARTED"],
            [2, "watch-b", "Analog", "Off", ""],
            [3, "watch-retired", "Analog", "Off", ""],
        ],
    )
    return CsvTrialStore(tmp_path)


class TestReadWrite:
    def test_missing_file(self, tmp_path):
        assert read_rows(tmp_path / "nope.csv") == []

    def test_empty_file(self, tmp_path):
        (tmp_path / "empty.csv").write_text("")
        assert read_rows(tmp_path / "empty.csv") == []

    def test_ragged_rows_padded(self, tmp_path):
        path = tmp_path / "t.csv"
        write_rows(path, [["a", "b", "c"], ["1"], ["2", None]])
        assert read_rows(path) == [["a", "b", "c"], ["1", "", ""], ["2", "", ""]]

    def test_values_stay_strings(self, tmp_path):
        path = tmp_path / "t.csv"
        write_rows(path, [["id", "n"], ["007", "NA"]])
        assert read_rows(path)[1] == ["007", "NA"]


class TestCsvTrialStore:
    def test_catalogs(self, store):
        assert [d.name for d in store.get_devices()] == ["watch-a", "watch-b"]
        faces = {w.name: w for w in store.get_watch_faces()}
        assert faces["Analog"].is_system
        assert faces["Sporty"].drive_file_id == "apk-id"

    def test_trials_skip_unknown_device(self, store):
        trials = store.get_trials()
        assert [t.run_id for t in trials] == [1, 2]
        assert trials[0].enable_aod
        assert trials[1].status is TrialStatus.NOT_STARTED

    def test_update_round_trip(self, store):
        start = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
        t1, t2 = store.get_trials()
        done = t1.mark_preparing().mark_started(start).mark_completed(start.replace(hour=20), 74, 0.00091)
        store.update_trials([done])

        reread = {t.run_id: t for t in CsvTrialStore(store.root).get_trials()}
        assert reread[1] == done
        assert reread[2] == t2
        rows = read_rows(store.trials_csv)
        assert rows[0] == TRIAL_HEADER
        assert rows[3][1] == "watch-retired"

    def test_update_creates_file_with_header(self, store):
        trial = store.get_trials()[0]
        store.trials_csv.unlink()
        store.update_trials([trial])
        assert read_rows(store.trials_csv) == [TRIAL_HEADER]

    def test_row_longer_than_header(self, tmp_path):
        path = tmp_path / "devices.csv"
        path.write_text("Name,Address\nwatch-a,10.0.0.7:5555,Pixel Watch 2 (desk)\nwatch-b,10.0.0.8:5555\n")
        assert read_rows(path) == [
            ["Name", "Address", ""],
            ["watch-a", "10.0.0.7:5555", "Pixel Watch 2 (desk)"],
            ["watch-b", "10.0.0.8:5555", ""],
        ]
        store = CsvTrialStore(tmp_path)
        assert [(d.name, d.address_and_port) for d in store.get_devices()] == [
            ("watch-a", "10.0.0.7:5555"),
            ("watch-b", "10.0.0.8:5555"),
        ]
