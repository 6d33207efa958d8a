from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Callable

from googleapiclient.http import MediaIoBaseDownload

log = logging.getLogger(__name__)


class DriveFileRepository:
    """Watch face builds and the waker APK, downloaded from Google Drive.

    Downloads are cached under ``download_dir`` by file id, so a build shared
    by several trials is fetched once.

    Pass ``connect`` instead of ``service`` to build the Drive client on the
    first request; runs that only use cached files then need no credentials.
    """

    def __init__(
        self,
        service=None,
        download_dir: str | Path = "/tmp",
        *,
        connect: Callable[[], object] | None = None,
    ) -> None:
        if service is None and connect is None:
            raise ValueError("DriveFileRepository needs a service or a connect callable")
        self._service = service
        self._connect = connect
        self.download_dir = Path(download_dir)

    @property
    def _files(self):
        if self._service is None:
            log.info("Connecting to Google Drive...")
            self._service = self._connect()
        return self._service.files()

    def get_file_name(self, file_id: str) -> str:
        return self._files.get(fileId=file_id, fields="name").execute()["name"]

    def download_to_path(self, file_id: str, path: str | Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write beside the target and rename, so an interrupted download is not
        # mistaken for a cached one.
        part = path.with_name(path.name + ".part")
        request = self._files.get_media(fileId=file_id)
        with part.open("wb") as fh:
            downloader = MediaIoBaseDownload(fh, request)
            done = False
            while not done:
                _, done = downloader.next_chunk()
        part.replace(path)
        return path.resolve()

    def download_apk(self, file_id: str) -> Path:
        path = self.download_dir / f"wfb-{file_id}.apk"
        if path.exists():
            log.info("Using existing download for %s", file_id)
            return path
        return self.download_to_path(file_id, path)

    def download_bundle(self, file_id: str) -> Path:
        """Download a zipped bundle and extract it for ``adb install-multiple``."""
        bundle_dir = self.download_dir / f"wfd-{file_id}"
        if bundle_dir.exists():
            log.info("Using existing download for %s", file_id)
            return bundle_dir

        staging = self.download_dir / f"wfd-{file_id}.zip"
        self.download_to_path(file_id, staging)
        tmp_dir = self.download_dir / f"wfd-{file_id}.extract"
        tmp_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(staging) as z:
            z.extractall(tmp_dir)
        tmp_dir.replace(bundle_dir)
        staging.unlink(missing_ok=True)
        log.info("Extracted bundle %s to %s", file_id, bundle_dir)
        return bundle_dir
