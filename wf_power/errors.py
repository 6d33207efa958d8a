from __future__ import annotations


class MonitorError(Exception):
    """Base class for every error raised by wf_power."""


class ConfigError(MonitorError):
    pass


class RowParseError(MonitorError):
    """A sheet row (trial or catalog) could not be parsed."""


class InvalidTransition(MonitorError):
    """A trial was asked to move backwards through its lifecycle."""


class DeviceConnectionError(MonitorError):
    """adb could not reach a device within the connection retry bound."""


class AdbCommandError(MonitorError):
    def __init__(self, message: str, rc: int | None = None, output: str = "") -> None:
        super().__init__(message)
        self.rc = rc
        self.output = output


class BatteryParseError(AdbCommandError):
    """The battery capacity read back from the device was not a percentage."""


class PowerControlError(MonitorError):
    pass
