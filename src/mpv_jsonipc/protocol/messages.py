"""Message definitions for mpv's JSON IPC protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import ProtocolError

SUCCESS = "success"

# Events consumed by the subscription layer
PROPERTY_CHANGE = "property-change"
CLIENT_MESSAGE = "client-message"
LOG_MESSAGE = "log-message"


class LogLevel(str, Enum):
    """Log levels accepted by mpv's request_log_messages command."""

    NO = "no"
    FATAL = "fatal"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"
    STATUS = "status"
    V = "v"
    DEBUG = "debug"
    TRACE = "trace"


@dataclass
class Request:
    """Outbound command."""

    command: str
    args: list[Any] = field(default_factory=list)
    request_id: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": [self.command, *self.args],
            "request_id": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Request:
        name, *args = data["command"]
        return cls(command=name, args=args, request_id=data.get("request_id", 0))


@dataclass
class Response:
    """Reply to a command, matched by request_id."""

    request_id: int
    error: Any = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.error == SUCCESS

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"request_id": self.request_id, "error": self.error}
        if self.data is not None:
            result["data"] = self.data
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Response:
        return cls(
            request_id=data["request_id"],
            error=data.get("error"),
            data=data.get("data"),
        )


@dataclass
class Event:
    """Asynchronous notification pushed by mpv."""

    name: str
    fields: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {"event": self.name, **self.fields}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        fields = {k: v for k, v in data.items() if k != "event"}
        return cls(name=data["event"], fields=fields)


def parse_message(data: Any) -> Response | Event:
    """Classify a decoded JSON value as a response or an event."""
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(data).__name__}")

    if "request_id" in data:
        return Response.from_dict(data)
    elif "event" in data:
        return Event.from_dict(data)
    else:
        raise ProtocolError(f"Unknown message type: {data!r}")
