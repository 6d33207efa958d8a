from __future__ import annotations

import json

import pytest

from wf_power.config import config_from_dict
from wf_power.config import load_config
from wf_power.errors import ConfigError


BASE = {"spreadsheetId": "sheet", "trialTimeMinutes": 480, "wakerApkDriveFileId": "waker"}


class TestConfig:
    def test_minimal(self):
        cfg = config_from_dict(dict(BASE))
        assert cfg.spreadsheet_id == "sheet"
        assert cfg.trial_time_s == 480 * 60
        assert cfg.lock_stale_after_s is None
        assert cfg.hub_location == "1-1"

    def test_optional_keys(self):
        cfg = config_from_dict({**BASE, "lockStaleAfterMinutes": 90, "wakerIntervalSeconds": 300, "adbPath": "/opt/adb"})
        assert cfg.lock_stale_after_s == 5400
        assert cfg.waker_interval_seconds == 300
        assert cfg.adb_path == "/opt/adb"

    def test_null_optional_is_default(self):
        assert config_from_dict({**BASE, "lockStaleAfterMinutes": None}).lock_stale_after_minutes is None

    @pytest.mark.parametrize("key", list(BASE))
    def test_missing_required(self, key):
        data = dict(BASE)
        del data[key]
        with pytest.raises(ConfigError, match=key):
            config_from_dict(data)

    @pytest.mark.parametrize("value", ["480", 8.5, True])
    def test_trial_time_must_be_int(self, value):
        with pytest.raises(ConfigError):
            config_from_dict({**BASE, "trialTimeMinutes": value})

    def test_trial_time_positive(self):
        with pytest.raises(ConfigError):
            config_from_dict({**BASE, "trialTimeMinutes": 0})

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="trialTime"):
            config_from_dict({**BASE, "trialTime": 5})

    def test_load(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps(BASE))
        assert load_config(path).waker_apk_drive_file_id == "waker"

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.json")

    def test_load_bad_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{spreadsheetId: ")
        with pytest.raises(ConfigError):
            load_config(path)
