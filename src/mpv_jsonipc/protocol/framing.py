"""Newline framing for the JSON IPC byte stream."""

from __future__ import annotations

import json
from typing import Any

from ..errors import ProtocolError

NEWLINE = b"\n"


class LineFramer:
    """Splits an incoming byte stream into complete lines.

    Bytes after the last newline of a chunk are kept and prefixed to the
    next chunk, so a message split across reads is reassembled whole.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received after the last newline."""
        return bytes(self._buffer)

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append a chunk and return every line it completes, in order."""
        self._buffer += chunk
        lines: list[bytes] = []

        while True:
            idx = self._buffer.find(NEWLINE)
            if idx == -1:
                break
            line = bytes(self._buffer[:idx])
            del self._buffer[: idx + 1]
            if line.strip():
                lines.append(line)

        return lines

    def reset(self) -> None:
        self._buffer.clear()


def decode_line(line: bytes) -> Any:
    """Decode one line as a UTF-8 JSON value."""
    try:
        return json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Malformed message {line[:200]!r}: {e}") from e


def encode_message(message: Any) -> bytes:
    """Encode a JSON value as one wire line."""
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False).encode("utf-8") + NEWLINE
