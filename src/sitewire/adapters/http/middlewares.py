"""Built-in HTTP middlewares.

They are installed in this order, the first one outermost:

1. `CookieMiddleware` resolves the session cookie into ``request[key]``.
2. `StaticMiddleware` serves files from a directory.
3. `TemplateMiddleware` renders Jinja templates, both on demand (via
   ``request["render"]``) and as a fallback for unrouted GET requests.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import jinja2
from aiohttp import web

from sitewire.interfaces.http import Middleware

if TYPE_CHECKING:
    from sitewire.domain.options import (
        CookieMiddlewareOptions,
        StaticOptions,
        TemplateOptions,
    )
    from sitewire.interfaces.http import CookieSetter, Handler

logger = logging.getLogger(__name__)

COOKIE_SETTER_KEY = "cookie_setter"
RENDER_KEY = "render"


class CookieMiddleware(Middleware):
    """Resolve the session cookie of every request.

    Until a cookie setter is attached, ``request[key]`` is always ``None``.
    """

    def __init__(self, options: CookieMiddlewareOptions) -> None:
        self.options = options
        self.setter: CookieSetter | None = None

    def attach(self, setter: CookieSetter) -> None:
        self.setter = setter

    async def __call__(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        session = None
        if self.setter is not None:
            request[COOKIE_SETTER_KEY] = self.setter
            session = await self.setter.resolve(request.cookies.get(self.setter.name))
        request[self.options.request_key] = session
        return await handler(request)


class StaticMiddleware(Middleware):
    """Serve files below ``options.root`` for GET and HEAD requests.

    Requests that do not map to an existing file are passed on.
    """

    def __init__(self, options: StaticOptions) -> None:
        self.options = options
        self.root = Path(options.root).resolve()
        self.prefix = "/" + options.prefix.strip("/")

    def resolve(self, path: str) -> Path | None:
        """Return the file served for URL *path*, if any."""
        if self.prefix != "/":
            if path != self.prefix and not path.startswith(self.prefix + "/"):
                return None
            path = path[len(self.prefix) :]
        candidate = (self.root / path.lstrip("/")).resolve()
        if not candidate.is_relative_to(self.root):
            return None
        if candidate.is_dir():
            candidate = candidate / self.options.index
        return candidate if candidate.is_file() else None

    async def __call__(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        if request.method in ("GET", "HEAD"):
            if (file := self.resolve(request.path)) is not None:
                return web.FileResponse(file)
        return await handler(request)


class TemplateMiddleware(Middleware):
    """Render Jinja templates below ``options.root``.

    Handlers render through ``request["render"](name, **context)``. A GET
    request no route matched is answered with the template named after its
    path (``/about`` -> ``about.html``, ``/`` -> ``index.html``) if one exists.
    """

    def __init__(self, options: TemplateOptions) -> None:
        self.options = options
        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(options.root),
            autoescape=jinja2.select_autoescape(),
        )
        self.env.globals.update(options.globals)

    def render(self, name: str, /, **context: Any) -> web.Response:
        """Render template *name* into an HTML response."""
        template = self.env.get_template(name)
        return web.Response(text=template.render(**context), content_type="text/html")

    def template_for(self, path: str) -> str:
        """Return the template name a URL path falls back to."""
        return (path.strip("/") or "index") + self.options.extension

    async def __call__(
        self, request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        def render(name: str, /, **context: Any) -> web.Response:
            return self.render(name, request=request, **context)

        request[RENDER_KEY] = render
        try:
            return await handler(request)
        except web.HTTPNotFound:
            if request.method != "GET":
                raise
            try:
                return render(self.template_for(request.path))
            except jinja2.TemplateNotFound:
                pass
            raise
