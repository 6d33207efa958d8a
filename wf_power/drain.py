from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class BatteryReading:
    timestamp_s: int
    level: int


# The waker answers GET_BATTERY_LEVELS with a broadcast result such as:
#   Broadcast completed: result=0, data="100:1700000000,99:1700000300,..."
_RE_WAKER_DATA = re.compile(r'data="([^"]+)')


def parse_battery_log(text: str) -> list[BatteryReading]:
    """Extract the waker's ``level:timestamp`` history from broadcast output.

    Entries that are not two integers are skipped.
    """
    m = _RE_WAKER_DATA.search(text or "")
    if not m:
        return []

    readings: list[BatteryReading] = []
    for entry in m.group(1).split(","):
        parts = entry.strip().split(":")
        if len(parts) != 2:
            continue
        try:
            level = int(parts[0])
            ts = int(parts[1])
        except ValueError:
            continue
        readings.append(BatteryReading(timestamp_s=ts, level=level))
    return readings


def estimate_drain(readings: list[BatteryReading]) -> float:
    """Approximate drain in percent per second.

    Measured from the first reading below 100% to the last reading, since some
    devices sit at "100" for a while after coming off charge. Returns 0.0 when
    there is nothing to measure; the result is negative if the level rose.
    """
    first_partial = next((r for r in readings if r.level < 100), None)
    if first_partial is None:
        return 0.0

    last = readings[-1]
    elapsed = last.timestamp_s - first_partial.timestamp_s
    if elapsed <= 0:
        return 0.0
    return (first_partial.level - last.level) / elapsed


def estimate_drain_from_output(text: str) -> float:
    return estimate_drain(parse_battery_log(text))
