"""mpv JSON IPC protocol - line framing, transport and request correlation."""

from .correlator import COMMAND_TIMEOUT, RequestCorrelator
from .framing import LineFramer, decode_line, encode_message
from .messages import (
    CLIENT_MESSAGE,
    LOG_MESSAGE,
    PROPERTY_CHANGE,
    SUCCESS,
    Event,
    LogLevel,
    Request,
    Response,
    parse_message,
)
from .transport import IPCTransport

__all__ = [
    "COMMAND_TIMEOUT",
    "SUCCESS",
    "PROPERTY_CHANGE",
    "CLIENT_MESSAGE",
    "LOG_MESSAGE",
    "LogLevel",
    "Request",
    "Response",
    "Event",
    "parse_message",
    "LineFramer",
    "decode_line",
    "encode_message",
    "IPCTransport",
    "RequestCorrelator",
]
