"""aiohttp HTTP server, its built-in middlewares and the session cookie."""

from .cookie import SignedCookieSetter
from .middlewares import CookieMiddleware, StaticMiddleware, TemplateMiddleware
from .server import AiohttpHTTPServer

__all__ = [
    "AiohttpHTTPServer",
    "CookieMiddleware",
    "SignedCookieSetter",
    "StaticMiddleware",
    "TemplateMiddleware",
]
