"""
tempctl Custom Exceptions

Error taxonomy for the controller. Init errors are fatal at startup,
check errors abort a single room's cycle, the rest are logged and ignored.
"""


class TempctlError(Exception):
    """Base exception for tempctl."""

    pass


class InitError(TempctlError):
    """A room cannot be brought up. Fatal to process startup."""

    pass


class ConfigurationError(InitError):
    """Configuration is invalid."""

    pass


class CheckError(TempctlError):
    """A room's check cycle stopped before touching the actuator."""

    def __init__(self, room_name: str, message: str):
        super().__init__(f"room {room_name}: {message}")
        self.room_name = room_name


class TelemetryError(TempctlError):
    """The telemetry store is unreachable or returned an error."""

    pass


class TelemetryQueryError(TelemetryError):
    """A telemetry read failed."""

    pass


class DataNotFoundError(TelemetryQueryError):
    """No recent enough value exists for the requested metric."""

    pass


class TelemetryWriteError(TelemetryError):
    """A telemetry write failed."""

    pass


class ActuatorError(TempctlError):
    """Cannot connect to or command a heating actuator."""

    pass
