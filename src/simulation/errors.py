"""Exceptions raised by the vehicle simulator and its collaborators."""


class SimulationError(Exception):
    """Base class for every simulator error."""


class InvalidRoute(SimulationError, ValueError):
    """A simulator was constructed with an empty route."""


class AlreadyRunning(SimulationError):
    """start() was called while the simulator is running."""


class NotRunning(SimulationError):
    """stop() was called while the simulator is not running."""


class IndexOutOfRange(SimulationError, IndexError):
    """A waypoint index lies outside the route."""


class RouteParseError(SimulationError, ValueError):
    """A route file could not be read or contains a malformed line."""

    def __init__(self, message: str, path=None, line_number=None):
        self.path = path
        self.line_number = line_number
        if path is not None and line_number is not None:
            message = f"{path}:{line_number}: {message}"
        elif path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class PublishError(SimulationError):
    """The messaging channel failed to publish a message."""


class ChannelConnectionError(SimulationError, ConnectionError):
    """The messaging channel could not reach the broker."""


class InvalidVehicleId(SimulationError, ValueError):
    """A vehicle id cannot be used as an MQTT topic level."""
