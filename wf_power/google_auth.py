from __future__ import annotations

import json
import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from wf_power.errors import ConfigError

log = logging.getLogger(__name__)


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.readonly",
]


def load_credentials(credentials_path: str | Path, token_path: str | Path):
    """Credentials for Sheets + Drive.

    ``credentials_path`` is either a service account key, or an OAuth client
    file, in which case ``token_path`` must hold an already authorized user
    token (it is refreshed in place when expired).
    """
    credentials_path = Path(credentials_path)
    try:
        info = json.loads(credentials_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"credentials file not found: {credentials_path}") from None

    if info.get("type") == "service_account":
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)

    token_path = Path(token_path)
    if not token_path.exists():
        raise ConfigError(f"no authorized user token at {token_path}; authorize once and save it there")
    creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    if creds.expired and creds.refresh_token:
        log.info("Refreshing Google token %s", token_path)
        creds.refresh(Request())
        token_path.write_text(creds.to_json(), encoding="utf-8")
    return creds


def build_services(credentials_path: str | Path, token_path: str | Path):
    """Return (sheets, drive) API clients."""
    creds = load_credentials(credentials_path, token_path)
    sheets = build("sheets", "v4", credentials=creds, cache_discovery=False)
    drive = build("drive", "v3", credentials=creds, cache_discovery=False)
    return sheets, drive


def build_drive(credentials_path: str | Path, token_path: str | Path):
    """Drive API client only, for stores that do not need Sheets."""
    creds = load_credentials(credentials_path, token_path)
    return build("drive", "v3", credentials=creds, cache_discovery=False)
