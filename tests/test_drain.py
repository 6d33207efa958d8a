from __future__ import annotations

import pytest

from wf_power.drain import BatteryReading
from wf_power.drain import estimate_drain
from wf_power.drain import estimate_drain_from_output
from wf_power.drain import parse_battery_log


WAKER_OUTPUT = (
    "Broadcasting: Intent { act=com.garan.waker.GET_BATTERY_LEVELS pkg=com.garan.waker }\n"
    'Broadcast completed: result=0, data="100:1000,100:1300,99:1600,97:2200,94:3100"\n'
)


def r(ts, level):
    return BatteryReading(timestamp_s=ts, level=level)


class TestParseBatteryLog:
    def test_level_then_timestamp(self):
        readings = parse_battery_log(WAKER_OUTPUT)
        assert readings[0] == r(1000, 100)
        assert readings[-1] == r(3100, 94)
        assert len(readings) == 5

    def test_no_data_field(self):
        assert parse_battery_log("Broadcast completed: result=0") == []

    def test_empty_input(self):
        assert parse_battery_log("") == []

    def test_malformed_entries_skipped(self):
        text = 'data="100:10,garbage,99:x,98:40"'
        assert parse_battery_log(text) == [r(10, 100), r(40, 98)]


class TestEstimateDrain:
    def test_from_first_partial_to_last(self):
        # first <100 is 99 @1600, last is 94 @3100
        assert estimate_drain_from_output(WAKER_OUTPUT) == pytest.approx(5 / 1500)

    def test_never_below_full(self):
        assert estimate_drain([r(0, 100), r(600, 100)]) == 0.0

    def test_single_reading(self):
        assert estimate_drain([r(0, 90)]) == 0.0

    def test_empty(self):
        assert estimate_drain([]) == 0.0
        assert estimate_drain_from_output("nothing here") == 0.0

    def test_last_not_after_first_partial(self):
        assert estimate_drain([r(500, 99), r(500, 95)]) == 0.0
        assert estimate_drain([r(500, 99), r(400, 95)]) == 0.0

    def test_last_is_first_partial(self):
        assert estimate_drain([r(0, 100), r(300, 99)]) == 0.0

    def test_negative_when_charging(self):
        assert estimate_drain([r(0, 90), r(100, 95)]) == pytest.approx(-0.05)

    def test_zero_when_flat(self):
        assert estimate_drain([r(0, 90), r(100, 90)]) == 0.0

    def test_last_reading_used_even_if_full(self):
        assert estimate_drain([r(0, 99), r(100, 100)]) == pytest.approx(-0.01)
