from __future__ import annotations

import logging
import subprocess

from wf_power.errors import PowerControlError

log = logging.getLogger(__name__)


DEFAULT_UHUBCTL = "/usr/sbin/uhubctl"
DEFAULT_HUB_LOCATION = "1-1"


class UsbHubPower:
    """Switch USB power on the hub feeding the watch chargers.

    Uses uhubctl, which must be installed (on a Raspberry Pi 4 all USB ports are
    switched together on hub ``1-1``).
    """

    def __init__(self, uhubctl: str = DEFAULT_UHUBCTL, hub_location: str = DEFAULT_HUB_LOCATION, timeout_s: float = 30.0) -> None:
        self.uhubctl = uhubctl
        self.hub_location = hub_location
        self.timeout_s = timeout_s

    def _switch(self, action: int) -> str:
        cmd = [self.uhubctl, "-l", self.hub_location, "-a", str(action)]
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, timeout=self.timeout_s)
        except (OSError, subprocess.SubprocessError) as e:
            raise PowerControlError(f"{' '.join(cmd)}: {e}") from e
        out = proc.stdout.decode("utf-8", errors="replace")
        err = proc.stderr.decode("utf-8", errors="replace")
        if proc.returncode != 0:
            raise PowerControlError(f"{' '.join(cmd)} failed (exit={proc.returncode}): {(err or out).strip()}")
        return out

    def power_on(self) -> None:
        log.info("USB power: on (hub %s)", self.hub_location)
        self._switch(1)

    def power_off(self) -> None:
        log.info("USB power: off (hub %s)", self.hub_location)
        self._switch(0)
