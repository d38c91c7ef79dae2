"""Request/response correlation for mpv commands."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from ..errors import CommandError, CommandTimeoutError
from .messages import Request, Response

_logger = logging.getLogger("mpv_jsonipc.correlator")

COMMAND_TIMEOUT = 120.0


def _error_text(error: Any) -> str:
    if isinstance(error, str):
        return error
    if error is None:
        return "Response without an error field"
    return str(error)


class RequestCorrelator:
    """Matches each command to the one response carrying its request_id.

    Ids start at 1 and only ever increase, so an id is never reused within
    a session. Every in-flight command owns one future in the wait table;
    the future is resolved, failed or timed out exactly once and then
    removed. Responses for ids not in the table are dropped.
    """

    def __init__(self, send: Callable[[Any], None], timeout: float = COMMAND_TIMEOUT):
        self._send = send
        self.timeout = timeout
        self._next_id = 1
        self._pending: dict[int, asyncio.Future[Any]] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _allocate_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id

    async def command(self, name: str, *args: Any) -> Any:
        """Send a command and wait for its result."""
        request = Request(command=name, args=list(args), request_id=self._allocate_id())

        # A failed send propagates straight to the caller and never waits
        self._send(request.to_dict())

        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request.request_id] = future
        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CommandTimeoutError(
                f"No response from MPV for {name!r} (request_id={request.request_id})"
            ) from None
        finally:
            self._pending.pop(request.request_id, None)

    def handle_response(self, response: Response) -> None:
        future = self._pending.pop(response.request_id, None)
        if future is None or future.done():
            _logger.debug("Dropping response for unknown request %s", response.request_id)
            return

        if response.ok:
            future.set_result(response.data)
        else:
            future.set_exception(CommandError(_error_text(response.error)))

    def fail_all(self, exc: BaseException) -> None:
        """Fail every outstanding request with ``exc``."""
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(exc)
        if pending:
            _logger.debug("Failed %d pending request(s): %s", len(pending), exc)
