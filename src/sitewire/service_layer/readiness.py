"""A settle-once readiness signal.

`Readiness` is resolved (or rejected) exactly once. Every observer, whether it
started waiting before or after the outcome was known, reads the same
memoized outcome. It can be created outside of a running event loop; the
underlying `asyncio.Future` is only created when someone actually awaits.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Generator
from enum import Enum
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# pylint: disable=too-few-public-methods


class ReadinessState(Enum):
    """Lifecycle of a readiness signal."""

    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class AlreadySettledError(RuntimeError):
    """Raised when resolving or rejecting a readiness signal a second time."""


class Readiness(Generic[T]):
    """Resolve once, read many times.

    Example:
        ```py
        ready = Readiness[str]()
        ready.on_settled(lambda r: print(r.result()))
        ready.resolve("up")
        assert await ready == "up"
        ```
    """

    def __init__(self) -> None:
        self._state = ReadinessState.PENDING
        self._value: T | None = None
        self._error: BaseException | None = None
        self._futures: list[asyncio.Future[T]] = []
        self._callbacks: list[Callable[[Readiness[T]], Any]] = []

    @property
    def state(self) -> ReadinessState:
        """Current state of the signal."""
        return self._state

    def done(self) -> bool:
        """Return True once the signal has been resolved or rejected."""
        return self._state is not ReadinessState.PENDING

    def result(self) -> T:
        """Return the resolved value.

        Raises:
            asyncio.InvalidStateError: If the signal is still pending.
            BaseException: The rejection error, if the signal was rejected.
        """
        if self._state is ReadinessState.PENDING:
            raise asyncio.InvalidStateError("Readiness is not settled yet")
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def resolve(self, value: T) -> None:
        """Settle the signal with *value* and notify all observers."""
        self._settle(ReadinessState.RESOLVED, value=value)

    def reject(self, error: BaseException) -> None:
        """Settle the signal with *error* and notify all observers."""
        self._settle(ReadinessState.REJECTED, error=error)

    def on_settled(self, callback: Callable[[Readiness[T]], Any]) -> None:
        """Call *callback* with this signal once it settles.

        If the signal is already settled the callback runs immediately.
        """
        if self.done():
            callback(self)
        else:
            self._callbacks.append(callback)

    async def wait(self) -> T:
        """Wait for the signal to settle and return its value."""
        if self.done():
            return self.result()
        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._futures.append(future)
        return await future

    def __await__(self) -> Generator[Any, None, T]:
        return self.wait().__await__()

    def _settle(
        self,
        state: ReadinessState,
        *,
        value: T | None = None,
        error: BaseException | None = None,
    ) -> None:
        if self.done():
            raise AlreadySettledError(f"Readiness already {self._state.value}")
        self._state, self._value, self._error = state, value, error

        futures, self._futures = self._futures, []
        for future in futures:
            if future.done():  # waiter was cancelled
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(value)  # type: ignore[arg-type]

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback(self)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Readiness callback %r failed", callback)
