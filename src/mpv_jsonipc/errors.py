"""Error types raised by the mpv IPC client."""

from __future__ import annotations


class MPVError(Exception):
    """An error originating from mpv or due to a problem talking to mpv."""


class MPVConnectionError(MPVError, ConnectionError):
    """Connecting to the IPC socket or pipe failed."""


class NotConnectedError(MPVConnectionError):
    """A message was sent while no transport is connected."""


class ConnectionClosedError(MPVConnectionError):
    """The transport closed while a request was still waiting for its response."""


class CommandError(MPVError):
    """mpv answered a command with an error other than "success"."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CommandTimeoutError(MPVError, TimeoutError):
    """No response arrived for a command within the timeout."""


class ProtocolError(MPVError, ValueError):
    """A line received from mpv could not be decoded as a protocol message."""


class MPVProcessError(MPVError):
    """The supervised mpv process failed to start."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode
