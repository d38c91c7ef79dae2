"""mpv-jsonipc - async client for mpv's JSON IPC."""

from .client import MPV, SessionState, forward_to_logging
from .errors import (
    CommandError,
    CommandTimeoutError,
    ConnectionClosedError,
    MPVConnectionError,
    MPVError,
    MPVProcessError,
    NotConnectedError,
    ProtocolError,
)
from .events import EventRouter
from .process import MPVProcess
from .protocol.messages import LogLevel

__all__ = [
    "MPV",
    "MPVProcess",
    "SessionState",
    "LogLevel",
    "EventRouter",
    "forward_to_logging",
    "MPVError",
    "MPVConnectionError",
    "NotConnectedError",
    "ConnectionClosedError",
    "CommandError",
    "CommandTimeoutError",
    "ProtocolError",
    "MPVProcessError",
]
