"""A minimal synchronous event emitter.

Used by the real-time server and the site itself to surface lifecycle events
(``client-connect``, ``error``, ``close``...) to any number of listeners.
Listeners may be plain functions or coroutine functions; coroutine listeners
are scheduled on the running loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

type Listener = Callable[..., Any]


class EventEmitter:
    """Register listeners by event name and emit events to them."""

    def __init__(self) -> None:
        self._listeners: defaultdict[str, list[Listener]] = defaultdict(list)
        self._tasks: set[asyncio.Task] = set()

    def on(self, event: str, listener: Listener) -> Listener:
        """Register *listener* for *event* and return it."""
        self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        """Remove a previously registered listener; unknown listeners are ignored."""
        if listener in self._listeners.get(event, ()):
            self._listeners[event].remove(listener)

    def listeners(self, event: str) -> tuple[Listener, ...]:
        """Return the listeners currently registered for *event*."""
        return tuple(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> int:
        """Call every listener of *event* with *args*.

        A failing listener is logged and does not prevent the others from
        running.

        Returns:
            The number of listeners notified.
        """
        listeners = self.listeners(event)
        for listener in listeners:
            try:
                result = listener(*args)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Listener %r for %r failed", listener, event)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        return len(listeners)
