"""
Error types raised by the RoboPuppy session and command layer.

Every error carries a human-readable message; the gateway returns it
verbatim in ``{"success": false, "message": ...}`` responses.
"""

from typing import Optional


class RobotError(Exception):
    """Base class for all RoboPuppy errors."""

    @property
    def message(self) -> str:
        return str(self)


class EndpointNotFoundError(RobotError):
    """Discovery found no serial endpoint that looks like the robot."""

    def __init__(self, message: str = "Arduino not found. Please specify the port manually."):
        super().__init__(message)


class ConnectionFailedError(RobotError):
    """Opening the serial endpoint failed after all attempts."""

    port_busy = False

    def __init__(self, message: str, address: Optional[str] = None):
        super().__init__(message)
        self.address = address


class PortBusyError(ConnectionFailedError):
    """The endpoint is held by another process (serial monitor, IDE, ...)."""

    port_busy = True


class NotConnectedError(RobotError):
    def __init__(self, message: str = "Not connected to robot"):
        super().__init__(message)


class WriteFailedError(RobotError):
    pass


class CommandError(RobotError):
    """A command was rejected before reaching the transport."""


class InvalidLegError(CommandError):
    def __init__(self, message: str = "Leg ID must be 0-3"):
        super().__init__(message)


class InvalidJointError(CommandError):
    def __init__(self, message: str = 'Joint must be "hip" or "knee"'):
        super().__init__(message)


class InvalidAngleError(CommandError):
    def __init__(self, message: str = "Angle must be between -90 and 90 degrees"):
        super().__init__(message)


class UnknownCommandError(CommandError):
    def __init__(self, message: str = "Unknown command"):
        super().__init__(message)
