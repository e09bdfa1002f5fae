"""HTTP server mounted on a network binding."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sitewire.interfaces.http import HTTPServer

from .middlewares import CookieMiddleware

if TYPE_CHECKING:
    from sitewire.domain.options import HTTPOptions
    from sitewire.interfaces.http import CookieSetter, Handler
    from sitewire.interfaces.network import NetworkBinding

logger = logging.getLogger(__name__)


class AiohttpHTTPServer(HTTPServer):
    """Routes and middlewares on the binding's aiohttp application.

    Args:
        options: HTTP settings.
        binding: Binding whose application serves the requests.
        middlewares: Middlewares in order, the first one outermost.
    """

    def __init__(
        self,
        options: HTTPOptions,
        binding: NetworkBinding,
        middlewares: tuple[Any, ...] = (),
    ) -> None:
        self.options = options
        self.binding = binding
        self.middlewares = tuple(middlewares)
        self.cookie: CookieSetter | None = None
        binding.app.middlewares.extend(self.middlewares)
        logger.debug("HTTP middlewares: %s", [type(m).__name__ for m in self.middlewares])

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.binding.app.router.add_route(method, path, handler)

    def attach_cookie(self, setter: CookieSetter) -> None:
        self.cookie = setter
        for middleware in self.middlewares:
            if isinstance(middleware, CookieMiddleware):
                middleware.attach(setter)
