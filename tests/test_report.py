from __future__ import annotations

import math
from datetime import timedelta

import pytest

from conftest import APK_FACE
from conftest import SYSTEM_FACE
from conftest import T0
from conftest import make_device
from conftest import make_trial
from wf_power.model import TrialStatus
from wf_power.report import SUMMARY_COLUMNS
from wf_power.report import group_summary
from wf_power.report import plot_group_summary
from wf_power.report import summarize_trials


DEV = make_device("watch-a")


def completed(run_id, face, end_charge, drain, hours=8, aod=False):
    return make_trial(
        run_id,
        DEV,
        TrialStatus.COMPLETED,
        face=face,
        enable_aod=aod,
        start_time=T0,
        end_time=T0 + timedelta(hours=hours),
        start_charge=100,
        end_charge=end_charge,
        approximate_drain=drain,
    )


@pytest.fixture
def trials():
    return [
        completed(1, APK_FACE, 76, 0.0008),
        completed(2, APK_FACE, 80, 0.0),
        completed(3, SYSTEM_FACE, 90, 0.0003, hours=4, aod=True),
        make_trial(4, DEV, TrialStatus.IN_PROGRESS, start_time=T0, start_charge=100),
    ]


class TestSummarizeTrials:
    def test_only_completed(self, trials):
        df = summarize_trials(trials)
        assert list(df.columns) == SUMMARY_COLUMNS
        assert list(df["run_id"]) == [1, 2, 3]

    def test_rates(self, trials):
        row = summarize_trials(trials).set_index("run_id").loc[1]
        assert row["duration_h"] == pytest.approx(8.0)
        assert row["charge_drop"] == 24
        assert row["drop_pct_per_h"] == pytest.approx(3.0)
        assert row["waker_drain_pct_per_h"] == pytest.approx(2.88)

    def test_zero_drain_is_unmeasured(self, trials):
        row = summarize_trials(trials).set_index("run_id").loc[2]
        assert math.isnan(row["waker_drain_pct_per_h"])
        assert row["drop_pct_per_h"] == pytest.approx(2.5)

    def test_empty(self):
        df = summarize_trials([make_trial(1, DEV)])
        assert df.empty
        assert list(df.columns) == SUMMARY_COLUMNS


class TestGroupSummary:
    def test_groups_by_face_and_aod(self, trials):
        grouped = group_summary(summarize_trials(trials)).set_index(["watch_face", "aod"])
        sporty = grouped.loc[("Sporty", "Off")]
        assert sporty["trials"] == 2
        assert sporty["mean_drop_pct_per_h"] == pytest.approx(2.75)
        # the unmeasured trial does not drag the waker mean down
        assert sporty["mean_waker_drain_pct_per_h"] == pytest.approx(2.88)
        assert grouped.loc[("Analog", "On")]["mean_drop_pct_per_h"] == pytest.approx(2.5)

    def test_plot(self, trials, tmp_path):
        out = plot_group_summary(group_summary(summarize_trials(trials)), tmp_path / "plots" / "drain.png")
        assert out.exists()
        assert out.stat().st_size > 0
