"""Name-keyed event dispatch."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable

_logger = logging.getLogger("mpv_jsonipc.events")

Listener = Callable[[dict[str, Any]], Any]
Unsubscribe = Callable[[], None]


class EventRouter:
    """Dispatches inbound events to the listeners registered for their name.

    Listeners run in registration order. A listener that raises is logged
    and skipped; the remaining listeners still run. Coroutine listeners are
    scheduled as tasks so dispatch never waits on them.
    """

    def __init__(self) -> None:
        self._bindings: dict[str, list[Listener]] = {}
        self._tasks: set[asyncio.Task] = set()

    def on(self, name: str, listener: Listener) -> Unsubscribe:
        """Register ``listener`` for ``name``; return a function that removes it."""
        listeners = self._bindings.setdefault(name, [])
        if listener not in listeners:
            listeners.append(listener)

        def unsubscribe() -> None:
            current = self._bindings.get(name)
            if current and listener in current:
                current.remove(listener)

        return unsubscribe

    def listeners(self, name: str) -> list[Listener]:
        return list(self._bindings.get(name, ()))

    def dispatch(self, name: str, message: dict[str, Any]) -> None:
        for listener in self.listeners(name):
            self.call(name, listener, message)

    def call(self, label: str, fn: Callable[..., Any], *args: Any) -> None:
        """Run one callback in isolation: errors are logged, coroutines are scheduled."""
        try:
            result = fn(*args)
        except Exception:
            _logger.exception("Listener for %r failed", label)
            return
        if inspect.isawaitable(result):
            self._spawn(label, result)

    def clear(self) -> None:
        self._bindings.clear()

    def _spawn(self, name: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc:
                _logger.error("Listener for %r failed: %s", name, exc, exc_info=exc)

        task.add_done_callback(done)
