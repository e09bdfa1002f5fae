"""HTTP server and session cookie interfaces."""

from __future__ import annotations

import abc
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from aiohttp import web

    from .network import NetworkBinding
    from .users import Session

type Handler = Callable[["web.Request"], Awaitable["web.StreamResponse"]]


class Middleware(abc.ABC):
    """An aiohttp middleware implemented as an object.

    ``__middleware_version__ = 1`` tells aiohttp to call it as
    ``await middleware(request, handler)``.
    """

    __middleware_version__ = 1

    @abc.abstractmethod
    async def __call__(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        """Process *request*, delegating to *handler* when appropriate."""


class CookieSetter(abc.ABC):
    """Signs, verifies and writes the session cookie."""

    name: str

    @abc.abstractmethod
    def sign(self, token: str) -> str:
        """Return the cookie value carrying *token*."""

    @abc.abstractmethod
    def verify(self, value: str) -> str | None:
        """Return the token carried by a cookie value, or None if tampered."""

    @abc.abstractmethod
    async def resolve(self, value: str | None) -> Session | None:
        """Return the live session referenced by a raw cookie value."""

    @abc.abstractmethod
    def set(self, response: web.StreamResponse, session: Session) -> None:
        """Write the session cookie on *response*."""

    @abc.abstractmethod
    def clear(self, response: web.StreamResponse) -> None:
        """Expire the session cookie on *response*."""


class HTTPServer(abc.ABC):
    """An HTTP server attached to a network binding."""

    binding: NetworkBinding
    middlewares: tuple[Any, ...]

    @abc.abstractmethod
    def route(self, method: str, path: str, handler: Handler) -> None:
        """Register *handler* for ``method path``."""

    @abc.abstractmethod
    def attach_cookie(self, setter: CookieSetter) -> None:
        """Let the cookie middleware (if installed) resolve sessions via *setter*."""
