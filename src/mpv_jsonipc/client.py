"""High-level mpv session: commands, properties, events, observers and key bindings."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable

from .config import default_socket_path
from .errors import CommandError, ConnectionClosedError, NotConnectedError, ProtocolError
from .events import EventRouter, Listener, Unsubscribe
from .process import START_TIMEOUT, MPVProcess
from .protocol.correlator import COMMAND_TIMEOUT, RequestCorrelator
from .protocol.messages import (
    CLIENT_MESSAGE,
    LOG_MESSAGE,
    PROPERTY_CHANGE,
    Event,
    LogLevel,
    Response,
    parse_message,
)
from .protocol.transport import IPCTransport

_logger = logging.getLogger("mpv_jsonipc.client")
_mpv_logger = logging.getLogger("mpv_jsonipc.mpv")

PropertyObserver = Callable[[str, Any], Any]
LogHandler = Callable[[str, str, str], Any]

_LOG_LEVELS = {
    "fatal": logging.CRITICAL,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "status": logging.INFO,
    "v": logging.DEBUG,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}


def forward_to_logging(level: str, prefix: str, text: str) -> None:
    """Log handler that re-emits mpv log lines on the ``mpv_jsonipc.mpv`` logger."""
    _mpv_logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", prefix, text)


class SessionState(str, Enum):
    """Session lifecycle state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class MPV:
    """A connection to one mpv instance, optionally owning the mpv process.

    Create it with :meth:`connect` (mpv already running) or :meth:`launch`
    (start mpv first). Commands may be awaited concurrently; inbound
    responses and events are handled in arrival order by a single reader.
    """

    def __init__(
        self,
        ipc_socket: str | None = None,
        *,
        process: MPVProcess | None = None,
        log_level: LogLevel | str = LogLevel.STATUS,
        log_handler: LogHandler | None = None,
        quit_callback: Callable[[], Any] | None = None,
        command_timeout: float = COMMAND_TIMEOUT,
        connect_timeout: float = 1.0,
    ):
        self.ipc_socket = ipc_socket or default_socket_path()
        self.state = SessionState.DISCONNECTED
        self._process = process
        self._log_level = LogLevel(log_level)
        self._log_handler = log_handler
        self._quit_callback = quit_callback
        self._connect_timeout = connect_timeout

        self._transport: IPCTransport | None = None
        self._requests = RequestCorrelator(self._send, timeout=command_timeout)
        self._events = EventRouter()
        self._ready = False
        self._quit_fired = False
        self._process_task: asyncio.Task | None = None
        self._closed = asyncio.Event()

        # Property observers
        self._next_observer_id = 1
        self._property_bindings: dict[int, PropertyObserver] = {}
        self._waiters: set[asyncio.Future[Any]] = set()
        self._background: set[asyncio.Task] = set()

        # Key bindings
        self._next_key_binding_id = 1
        self._key_bindings: dict[str, Callable[[], Any]] = {}

    # ── Construction ───────────────────────────────────────────────────────

    @classmethod
    async def connect(
        cls,
        ipc_socket: str | None = None,
        *,
        log_level: LogLevel | str = LogLevel.STATUS,
        log_handler: LogHandler | None = None,
        quit_callback: Callable[[], Any] | None = None,
        command_timeout: float = COMMAND_TIMEOUT,
        connect_timeout: float = 1.0,
    ) -> MPV:
        """Connect to an mpv instance that is already listening on ``ipc_socket``."""
        mpv = cls(
            ipc_socket,
            log_level=log_level,
            log_handler=log_handler,
            quit_callback=quit_callback,
            command_timeout=command_timeout,
            connect_timeout=connect_timeout,
        )
        await mpv._initialize()
        return mpv

    @classmethod
    async def launch(
        cls,
        ipc_socket: str | None = None,
        *,
        mpv_location: str | None = None,
        mpv_args: dict[str, str] | None = None,
        start_timeout: float = START_TIMEOUT,
        log_level: LogLevel | str = LogLevel.STATUS,
        log_handler: LogHandler | None = None,
        quit_callback: Callable[[], Any] | None = None,
        command_timeout: float = COMMAND_TIMEOUT,
        connect_timeout: float = 1.0,
    ) -> MPV:
        """Start mpv with its IPC server on ``ipc_socket`` and connect to it."""
        ipc_socket = ipc_socket or default_socket_path()
        process = MPVProcess(
            ipc_socket,
            mpv_location=mpv_location,
            mpv_args=mpv_args,
            start_timeout=start_timeout,
        )
        mpv = cls(
            ipc_socket,
            process=process,
            log_level=log_level,
            log_handler=log_handler,
            quit_callback=quit_callback,
            command_timeout=command_timeout,
            connect_timeout=connect_timeout,
        )
        await mpv._initialize()
        return mpv

    async def _initialize(self) -> None:
        self.state = SessionState.CONNECTING
        try:
            if self._process is not None:
                await self._process.start()

            self._transport = IPCTransport(
                self.ipc_socket,
                on_message=self._handle_message,
                on_disconnect=self._handle_disconnect,
            )
            await self._transport.connect(self._connect_timeout)

            self._events.on(PROPERTY_CHANGE, self._handle_property_change)
            self._events.on(CLIENT_MESSAGE, self._handle_client_message)

            if self._log_handler is not None and self._log_level is not LogLevel.STATUS:
                self._events.on(LOG_MESSAGE, self._handle_log_message)
                await self.command("request_log_messages", self._log_level.value)
        except BaseException:
            self.state = SessionState.FAILED
            await self._teardown()
            raise

        self._ready = True
        self.state = SessionState.READY
        _logger.info("Connected to mpv at %s", self.ipc_socket)

    @property
    def connected(self) -> bool:
        return self._transport is not None and self._transport.connected

    async def wait_closed(self) -> None:
        """Wait until the connection to mpv is gone."""
        await self._closed.wait()

    async def __aenter__(self) -> MPV:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.terminate()

    # ── Inbound dispatch ───────────────────────────────────────────────────

    def _handle_message(self, data: Any) -> None:
        try:
            message = parse_message(data)
        except ProtocolError as e:
            _logger.warning("Ignoring message from mpv: %s", e)
            return

        if isinstance(message, Response):
            self._requests.handle_response(message)
        elif isinstance(message, Event):
            self._events.dispatch(message.name, data)

    def _handle_disconnect(self) -> None:
        if self.state is not SessionState.FAILED:
            self.state = SessionState.DISCONNECTED

        closed = ConnectionClosedError("Connection to MPV closed")
        self._requests.fail_all(closed)
        for waiter in list(self._waiters):
            if not waiter.done():
                waiter.set_exception(closed)
        self._waiters.clear()
        self._closed.set()

        if self._ready and not self._quit_fired:
            self._quit_fired = True
            _logger.info("Connection to mpv at %s closed", self.ipc_socket)
            if self._quit_callback is not None:
                self._events.call("quit", self._quit_callback)

        if self._process is not None and self._process_task is None:
            self._process_task = asyncio.ensure_future(self._process.stop())
            self._process_task.add_done_callback(self._log_task_exception)

    @staticmethod
    def _log_task_exception(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            _logger.error("Stopping mpv failed: %s", exc, exc_info=exc)

    def _handle_property_change(self, data: dict[str, Any]) -> None:
        callback = self._property_bindings.get(data.get("id"))  # type: ignore[arg-type]
        if callback is None:
            return
        self._events.call(PROPERTY_CHANGE, callback, data.get("name"), data.get("data"))

    def _handle_client_message(self, data: dict[str, Any]) -> None:
        args = data.get("args") or []
        if len(args) == 2 and args[0] == "custom-bind":
            callback = self._key_bindings.get(args[1])
            if callback is not None:
                self._events.call(args[1], callback)

    def _handle_log_message(self, data: dict[str, Any]) -> None:
        assert self._log_handler is not None
        self._events.call(
            LOG_MESSAGE,
            self._log_handler,
            data.get("level"),
            data.get("prefix"),
            str(data.get("text", "")).strip(),
        )

    # ── Commands ───────────────────────────────────────────────────────────

    def _send(self, message: Any) -> None:
        if self._transport is None:
            raise NotConnectedError("Not connected to mpv")
        self._transport.send(message)

    async def command(self, name: str, *args: Any) -> Any:
        """Send a command to mpv and return its ``data``."""
        return await self._requests.command(name, *args)

    async def get_property(self, name: str) -> Any:
        return await self.command("get_property", name)

    async def set_property(self, name: str, value: Any) -> None:
        await self.command("set_property", name, value)

    async def play(self, url: str) -> None:
        """Play the specified URL. An alias to loadfile."""
        await self.command("loadfile", url)

    # ── Subscriptions ──────────────────────────────────────────────────────

    def on_event(self, name: str, listener: Listener) -> Unsubscribe:
        """Bind a callback to an mpv event; returns a function that unbinds it."""
        return self._events.on(name, listener)

    async def observe_property(self, name: str, callback: PropertyObserver) -> int:
        """Call ``callback(name, value)`` whenever property ``name`` changes.

        Returns the observer id needed by :meth:`unobserve_property`.
        """
        observer_id = self._next_observer_id
        self._next_observer_id += 1
        self._property_bindings[observer_id] = callback
        try:
            await self.command("observe_property", observer_id, name)
        except BaseException:
            self._property_bindings.pop(observer_id, None)
            raise
        return observer_id

    async def unobserve_property(self, observer_id: int) -> None:
        """Remove an observer. The local binding is dropped even if mpv rejects it."""
        try:
            await self.command("unobserve_property", observer_id)
        finally:
            self._property_bindings.pop(observer_id, None)

    async def wait_for_property(self, name: str) -> Any:
        """Wait for the value of a property to change and return the new value.

        mpv reports the current value as soon as a property is observed, so
        the first notification is skipped.
        """
        waiter: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._waiters.add(waiter)
        received = 0

        def on_change(_: str, value: Any) -> None:
            nonlocal received
            received += 1
            if received == 2 and not waiter.done():
                waiter.set_result(value)

        try:
            observer_id = await self.observe_property(name, on_change)
            try:
                value = await waiter
            except asyncio.CancelledError:
                self._property_bindings.pop(observer_id, None)
                if self.connected:
                    self._unobserve_in_background(observer_id)
                raise
            except BaseException:
                self._property_bindings.pop(observer_id, None)
                raise
        finally:
            self._waiters.discard(waiter)
        await self.unobserve_property(observer_id)
        return value

    def _unobserve_in_background(self, observer_id: int) -> None:
        task = asyncio.ensure_future(self.command("unobserve_property", observer_id))
        self._background.add(task)

        def done(t: asyncio.Task) -> None:
            self._background.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc:
                _logger.debug("Could not unobserve %s: %s", observer_id, exc)

        task.add_done_callback(done)

    async def on_key(self, key: str, callback: Callable[[], Any]) -> str:
        """Bind a callback to a key press in mpv; returns the binding name."""
        bind_name = f"bind{self._next_key_binding_id}"
        self._next_key_binding_id += 1
        self._key_bindings[bind_name] = callback

        try:
            try:
                await self.command("keybind", key, f"script-message custom-bind {bind_name}")
            except CommandError as e:
                _logger.debug("keybind rejected (%s), using an input section", e.message)
                await self.command(
                    "define-section", bind_name, f"{key} script-message custom-bind {bind_name}"
                )
                await self.command("enable-section", bind_name)
        except BaseException:
            self._key_bindings.pop(bind_name, None)
            raise
        return bind_name

    # ── Shutdown ───────────────────────────────────────────────────────────

    async def terminate(self) -> None:
        """Close the connection and stop mpv if this session launched it."""
        await self._teardown()

    async def _teardown(self) -> None:
        if self._transport is not None:
            await self._transport.close()
        if self._process_task is not None:
            await asyncio.gather(self._process_task, return_exceptions=True)
        elif self._process is not None:
            await self._process.stop()
