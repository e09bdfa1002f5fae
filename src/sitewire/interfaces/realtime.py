"""Real-time server interface.

The real-time server accepts WebSocket clients and exchanges JSON envelopes
``{"type": str, "payload": any}`` with them. Other subsystems (transports,
subscriptions, users) plug into it by registering message handlers.

Events emitted (see `sitewire.utils.events.EventEmitter`):

- ``client-connect`` (client)
- ``client-disconnect`` (client)
- ``error`` (exception)
- ``close`` ()
"""

from __future__ import annotations

import abc
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from sitewire.utils.events import EventEmitter

if TYPE_CHECKING:
    from .network import NetworkBinding

type MessageHandler = Callable[["RealtimeClient", Any], Awaitable[None] | None]


class RealtimeClient(abc.ABC):
    """A connected real-time client."""

    id: str
    session: Any

    @property
    @abc.abstractmethod
    def closed(self) -> bool:
        """True once the connection is closed."""

    @abc.abstractmethod
    async def send(self, type_: str, payload: Any = None) -> None:
        """Send one envelope to the client."""


class RealtimeServer(EventEmitter, abc.ABC):
    """A WebSocket server attached to a network binding."""

    binding: NetworkBinding
    clients: set[RealtimeClient]

    @abc.abstractmethod
    def on_message(self, type_: str, handler: MessageHandler) -> None:
        """Route envelopes of *type_* to *handler*.

        Raises:
            ValueError: If a handler is already registered for *type_*.
        """

    @abc.abstractmethod
    async def broadcast(self, type_: str, payload: Any = None) -> None:
        """Send one envelope to every connected client."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Disconnect every client and emit ``close``."""
