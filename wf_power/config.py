from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from wf_power.errors import ConfigError


DEFAULT_CONFIG_PATH = Path("config.json")


@dataclass(frozen=True)
class MonitorConfig:
    """Settings loaded from ``config.json``.

    Only the first three keys are required; the rest default to the layout of
    the Raspberry Pi the monitor was built for.
    """

    spreadsheet_id: str
    trial_time_minutes: int
    waker_apk_drive_file_id: str
    credentials_path: str = "credentials.json"
    token_path: str = "token.json"
    waker_apk_path: str = "/tmp/waker.apk"
    lock_path: str = "/tmp/watch_face_power_monitor.lock"
    lock_stale_after_minutes: float | None = None
    adb_path: str | None = None
    uhubctl_path: str = "/usr/sbin/uhubctl"
    hub_location: str = "1-1"
    download_dir: str = "/tmp"
    waker_interval_seconds: int | None = None

    @property
    def trial_time_s(self) -> float:
        return self.trial_time_minutes * 60.0

    @property
    def lock_stale_after_s(self) -> float | None:
        if self.lock_stale_after_minutes is None:
            return None
        return self.lock_stale_after_minutes * 60.0


# json key -> (field, type, required)
_FIELDS: dict[str, tuple[str, type | tuple[type, ...], bool]] = {
    "spreadsheetId": ("spreadsheet_id", str, True),
    "trialTimeMinutes": ("trial_time_minutes", int, True),
    "wakerApkDriveFileId": ("waker_apk_drive_file_id", str, True),
    "credentialsPath": ("credentials_path", str, False),
    "tokenPath": ("token_path", str, False),
    "wakerApkPath": ("waker_apk_path", str, False),
    "lockPath": ("lock_path", str, False),
    "lockStaleAfterMinutes": ("lock_stale_after_minutes", (int, float), False),
    "adbPath": ("adb_path", str, False),
    "uhubctlPath": ("uhubctl_path", str, False),
    "hubLocation": ("hub_location", str, False),
    "downloadDir": ("download_dir", str, False),
    "wakerIntervalSeconds": ("waker_interval_seconds", int, False),
}


def config_from_dict(data: dict[str, Any]) -> MonitorConfig:
    if not isinstance(data, dict):
        raise ConfigError("config must be a JSON object")

    kwargs: dict[str, Any] = {}
    for key, (field, typ, required) in _FIELDS.items():
        if key not in data or data[key] is None:
            if required:
                raise ConfigError(f"missing required config key: {key}")
            continue
        v = data[key]
        # bool is an int subclass; reject it for numeric settings
        if isinstance(v, bool) or not isinstance(v, typ):
            raise ConfigError(f"config key {key} has wrong type: {type(v).__name__}")
        kwargs[field] = v

    unknown = sorted(set(data) - set(_FIELDS))
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")

    if kwargs["trial_time_minutes"] <= 0:
        raise ConfigError("trialTimeMinutes must be positive")
    return MonitorConfig(**kwargs)


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> MonitorConfig:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"config file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file {path} is not valid JSON: {e}") from e
    return config_from_dict(data)
