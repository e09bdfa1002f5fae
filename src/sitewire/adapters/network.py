"""aiohttp-backed network binding.

One binding owns one `aiohttp.web.Application`. The real-time server adds its
WebSocket route to it and the HTTP server adds its middlewares and routes, so
both are served from the same listener when they share a binding.

Construction performs no I/O; TLS material is only read in `start`.
"""

from __future__ import annotations

import itertools
import logging
import ssl
from collections.abc import Iterable

from aiohttp import web

from sitewire.domain.errors import ConfigurationError
from sitewire.domain.options import NetworkOptions, TLSOptions
from sitewire.interfaces.network import NetworkBinding

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
WILDCARD_HOSTS = {None, "", "0.0.0.0", "::"}


def merge_network_options(
    shared: NetworkOptions | None,
    *,
    host: str | None = None,
    port: int | None = None,
    tls: TLSOptions | None = None,
) -> NetworkOptions:
    """Merge per-server settings over the shared ``network`` section.

    Explicit local values win; anything left out falls back to the shared
    settings.
    """
    shared = shared or NetworkOptions()
    return NetworkOptions(
        host=host if host is not None else shared.host,
        port=port if port is not None else shared.port,
        ssl=tls if tls is not None else shared.ssl,
    )


def listen_address(binding: NetworkBinding) -> tuple[str | None, int]:
    """The host and port *binding* listens on once started."""
    return binding.host, DEFAULT_PORT if binding.port is None else binding.port


def check_distinct_addresses(bindings: Iterable[NetworkBinding]) -> None:
    """Fail before starting listeners that would compete for one address.

    Port 0 asks the OS for a free port and never clashes. A wildcard host
    clashes with any host on the same port.

    Raises:
        ConfigurationError: If two bindings resolve to the same address.
    """
    addresses = [(b, listen_address(b)) for b in bindings]
    for (first, (host_a, port_a)), (second, (host_b, port_b)) in itertools.combinations(
        addresses, 2
    ):
        if port_a == 0 or port_a != port_b:
            continue
        if host_a == host_b or host_a in WILDCARD_HOSTS or host_b in WILDCARD_HOSTS:
            raise ConfigurationError(
                "network",
                f"{first!r} and {second!r} would both listen on port {port_a}; "
                "set [network] port to share one listener, or give realtime "
                "and http ports of their own",
            )


def make_ssl_context(tls: TLSOptions) -> ssl.SSLContext:
    """Build a server-side TLS context from certificate and key files."""
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(tls.cert, tls.key)
    return context


class AiohttpBinding(NetworkBinding):
    """A listener serving one aiohttp application.

    Args:
        options: Host, port and TLS settings. Without a port the binding
            listens on `DEFAULT_PORT`.
    """

    def __init__(self, options: NetworkOptions) -> None:
        self.options = options
        self.host = options.host or DEFAULT_HOST
        self.port = options.port
        self.app = web.Application()
        self._runner: web.AppRunner | None = None

    def __repr__(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"<AiohttpBinding {scheme}://{self.host}:{self._port}>"

    @property
    def _port(self) -> int:
        return DEFAULT_PORT if self.port is None else self.port

    @property
    def listening(self) -> bool:
        return self._runner is not None

    @property
    def secure(self) -> bool:
        return self.options.ssl is not None

    async def start(self) -> None:
        if self._runner is not None:
            return
        ssl_context = make_ssl_context(self.options.ssl) if self.options.ssl else None
        runner = web.AppRunner(self.app)
        await runner.setup()
        site = web.TCPSite(runner, self.host, self._port, ssl_context=ssl_context)
        await site.start()
        self._runner = runner
        logger.info("Listening on %r", self)

    async def stop(self) -> None:
        if self._runner is None:
            return
        runner, self._runner = self._runner, None
        await runner.cleanup()
        logger.info("Stopped listening on %r", self)
