"""Network binding interface.

A binding is a listener (host, port, TLS) together with the application the
real-time and HTTP servers attach their handlers to. When both servers share
one binding they are served from a single port.

Builders only *attach* to a binding; starting and stopping it is up to
whoever runs the site (see the ``serve`` command).
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aiohttp import web


class NetworkBinding(abc.ABC):
    """A listener shared by the servers attached to it."""

    host: str
    port: int | None
    app: web.Application

    @property
    @abc.abstractmethod
    def listening(self) -> bool:
        """True while the listener is accepting connections."""

    @property
    @abc.abstractmethod
    def secure(self) -> bool:
        """True when the listener is configured with TLS material."""

    @abc.abstractmethod
    async def start(self) -> None:
        """Start accepting connections."""

    @abc.abstractmethod
    async def stop(self) -> None:
        """Stop accepting connections and release the listener."""
