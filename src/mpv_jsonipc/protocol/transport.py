"""Asyncio transport for mpv's IPC socket (Unix) or named pipe (Windows)."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Callable

from ..errors import MPVConnectionError, NotConnectedError, ProtocolError
from .framing import LineFramer, decode_line, encode_message

_logger = logging.getLogger("mpv_jsonipc.transport")

READ_CHUNK = 65536
PIPE_PREFIX = "\\\\.\\pipe\\"


def is_named_pipe(address: str) -> bool:
    return address.startswith(PIPE_PREFIX)


async def _open_pipe_connection(
    address: str,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a Windows named pipe as a stream pair (proactor loop only)."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=2**20)
    protocol = asyncio.StreamReaderProtocol(reader)
    transport, _ = await loop.create_pipe_connection(lambda: protocol, address)  # type: ignore[attr-defined]
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return reader, writer


class IPCTransport:
    """One connected channel to mpv.

    Outbound messages are written as single newline-terminated JSON lines.
    Inbound lines are framed, decoded and handed to ``on_message`` one at a
    time, in arrival order, from a single reader task. ``on_disconnect``
    fires exactly once when the channel goes away.
    """

    def __init__(
        self,
        address: str,
        on_message: Callable[[Any], None],
        on_disconnect: Callable[[], None] | None = None,
        on_protocol_error: Callable[[ProtocolError], None] | None = None,
    ):
        self.address = address
        self._on_message = on_message
        self._on_disconnect = on_disconnect
        self._on_protocol_error = on_protocol_error or self._log_protocol_error
        self._framer = LineFramer()
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task | None = None
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._closed

    # ── Lifecycle ──────────────────────────────────────────────────────────

    async def connect(self, timeout: float = 1.0) -> None:
        if self._closed:
            raise MPVConnectionError("Transport already closed")
        try:
            if is_named_pipe(self.address) or sys.platform == "win32":
                opener = _open_pipe_connection(self.address)
            else:
                opener = asyncio.open_unix_connection(self.address)
            self._reader, self._writer = await asyncio.wait_for(opener, timeout)
        except asyncio.TimeoutError as e:
            raise MPVConnectionError(
                f"Timed out connecting to mpv IPC at {self.address!r}"
            ) from e
        except OSError as e:
            raise MPVConnectionError(
                f"Failed to connect to mpv IPC at {self.address!r}: {e}"
            ) from e

        self._read_task = asyncio.create_task(self._read_loop())
        _logger.debug("Connected to %s", self.address)

    async def close(self) -> None:
        """Close the channel. Fires the disconnect notification if not yet fired."""
        task = self._read_task
        self._shutdown()
        if task and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── I/O ────────────────────────────────────────────────────────────────

    def send(self, message: Any) -> None:
        """Write one message. Raises NotConnectedError without a live channel."""
        if not self.connected:
            raise NotConnectedError("Socket is not ready")
        assert self._writer is not None
        if self._writer.is_closing():
            raise NotConnectedError("Socket is closing")
        data = encode_message(message)
        _logger.debug("mpv >>> %s", data.rstrip())
        self._writer.write(data)

    async def drain(self) -> None:
        if self._writer is not None and not self._closed:
            await self._writer.drain()

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                chunk = await self._reader.read(READ_CHUNK)
                if not chunk:
                    _logger.debug("mpv closed the connection")
                    break
                for line in self._framer.feed(chunk):
                    self._deliver(line)
        except asyncio.CancelledError:
            raise
        except OSError as e:
            _logger.info("Connection to mpv lost: %s", e)
        except Exception:
            _logger.exception("Reader for %s failed", self.address)
        finally:
            self._shutdown()

    def _deliver(self, line: bytes) -> None:
        try:
            message = decode_line(line)
        except ProtocolError as e:
            self._on_protocol_error(e)
            return
        _logger.debug("mpv <<< %s", line)
        try:
            self._on_message(message)
        except Exception:
            _logger.exception("Message handler failed")

    def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._framer.reset()
        if self._writer is None:
            return
        self._writer.close()
        if self._on_disconnect is not None:
            try:
                self._on_disconnect()
            except Exception:
                _logger.exception("Disconnect handler failed")

    @staticmethod
    def _log_protocol_error(error: ProtocolError) -> None:
        _logger.warning("Dropping undecodable line from mpv: %s", error)
