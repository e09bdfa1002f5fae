"""One builder per subsystem.

A builder receives the site configuration, the collaborator factories and,
by parameter name, the fields built by earlier steps (see
`inject_dependencies`). It returns the fields it produced. Builders assume
the resolver already checked their preconditions; the optional parameters
are the handles a subsystem uses when present.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from sitewire.adapters.network import merge_network_options
from sitewire.domain.options import (
    CookieMiddlewareOptions,
    CookieOptions,
    IncomingTransportOptions,
    NetworkOptions,
    StaticOptions,
    TemplateOptions,
    TLSOptions,
)
from sitewire.domain.unsettable import is_disabled, is_present, resolve
from sitewire.service_layer.resolver import Subsystem

if TYPE_CHECKING:
    from sitewire.domain.options import SiteConfig
    from sitewire.interfaces.database import Collections
    from sitewire.interfaces.network import NetworkBinding
    from sitewire.interfaces.realtime import RealtimeServer
    from sitewire.interfaces.users import UsersServer

    from .collaborators import Collaborators

logger = logging.getLogger(__name__)

type Fields = dict[str, Any]
type Builder = Callable[..., Awaitable[Fields]]


def inject_dependencies(
    builder: Builder, dependencies: Mapping[str, object]
) -> Callable[[], Awaitable[Fields]]:
    """Bind the dependencies a builder declares as parameters."""
    params = inspect.signature(builder).parameters
    deps = {
        name: dependency for name, dependency in dependencies.items() if name in params
    }
    return lambda: builder(**deps)


def _shared_network(site_config: SiteConfig) -> NetworkOptions | None:
    network = site_config.network
    return network if is_present(network) else None  # type: ignore[return-value]


def _bind(
    site_config: SiteConfig,
    collaborators: Collaborators,
    shared: NetworkBinding | None,
    *,
    host: str | None,
    port: int | None,
    tls: TLSOptions | None,
) -> NetworkBinding:
    """Use the shared binding, unless a local port asks for a listener of its own."""
    if shared is not None and port is None:
        return shared
    options = merge_network_options(
        _shared_network(site_config), host=host, port=port, tls=tls
    )
    logger.debug("Own listener on port %s", options.port)
    return collaborators.binding(options)


async def build_database(
    site_config: SiteConfig, collaborators: Collaborators
) -> Fields:
    handle = await collaborators.connect(site_config.database)
    return {
        "client": handle.client,
        "db": handle.database,
        "collections": handle.collections,
    }


async def build_config_store(
    site_config: SiteConfig, collaborators: Collaborators, collections: Collections
) -> Fields:
    store = await collaborators.config_store(collections, site_config.config_store)
    return {"config": store}


async def build_network(
    site_config: SiteConfig, collaborators: Collaborators
) -> Fields:
    return {"binding": collaborators.binding(site_config.network)}


async def build_realtime(
    site_config: SiteConfig,
    collaborators: Collaborators,
    binding: NetworkBinding | None = None,
) -> Fields:
    options = site_config.realtime
    own = _bind(
        site_config,
        collaborators,
        binding,
        host=options.host,  # type: ignore[union-attr]
        port=options.port,  # type: ignore[union-attr]
        tls=options.ssl,  # type: ignore[union-attr]
    )
    return {"wss": collaborators.realtime(options, own)}


async def build_subscriptions(
    collaborators: Collaborators,
    wss: RealtimeServer,
    collections: Collections | None = None,
) -> Fields:
    handler = collaborators.subscriptions(wss, collections is not None)
    return {"subscription_handler": handler}


async def build_incoming_transport(
    site_config: SiteConfig, collaborators: Collaborators, wss: RealtimeServer
) -> Fields:
    requested = site_config.realtime.incoming_transport  # type: ignore[union-attr]
    options = (
        requested
        if isinstance(requested, IncomingTransportOptions)
        else IncomingTransportOptions()
    )
    return {"incoming_transport": collaborators.incoming_transport(wss, options)}


async def build_outgoing_transport(
    collaborators: Collaborators, wss: RealtimeServer
) -> Fields:
    return {"outgoing_transport": collaborators.outgoing_transport(wss)}


async def build_users_server(
    site_config: SiteConfig,
    collaborators: Collaborators,
    wss: RealtimeServer,
    collections: Collections,
    incoming_transport: Any = None,
) -> Fields:
    users = site_config.users
    server = await collaborators.users_server(
        users=users,
        server=users.server,  # type: ignore[union-attr]
        wss=wss,
        collections=collections,
        incoming_transport=incoming_transport,
        public=site_config.public,
    )
    return {"users_server": server, "users": server.users}


async def build_users(
    site_config: SiteConfig, collaborators: Collaborators, collections: Collections
) -> Fields:
    return {"users": await collaborators.users(collections, site_config.users)}


def build_middlewares(
    site_config: SiteConfig, collaborators: Collaborators
) -> tuple[Any, ...]:
    """Assemble the HTTP middleware list.

    Order: cookie, static, template, then the configured custom middlewares.
    A built-in is left out when its section is explicitly disabled; falsy
    custom entries are dropped.
    """
    options = site_config.http_options
    middlewares: list[Any] = []
    if not is_disabled(site_config.cookie):
        cookie = site_config.cookie
        middleware_options = (
            cookie.middleware
            if isinstance(cookie, CookieOptions)
            else CookieMiddlewareOptions()
        )
        middlewares.append(collaborators.cookie_middleware(middleware_options))
    if not is_disabled(options.static):
        middlewares.append(
            collaborators.static_middleware(resolve(options.static, StaticOptions()))
        )
    if not is_disabled(options.template):
        middlewares.append(
            collaborators.template_middleware(
                resolve(options.template, TemplateOptions())
            )
        )
    middlewares.extend(m for m in options.middlewares if m)
    return tuple(middlewares)


async def build_http(
    site_config: SiteConfig,
    collaborators: Collaborators,
    binding: NetworkBinding | None = None,
) -> Fields:
    options = site_config.http_options
    own = _bind(
        site_config,
        collaborators,
        binding,
        host=options.host,
        port=options.port,
        tls=options.ssl,
    )
    middlewares = build_middlewares(site_config, collaborators)
    return {"http": collaborators.http(options, own, middlewares)}


async def build_cookie(
    site_config: SiteConfig,
    collaborators: Collaborators,
    users_server: UsersServer,
) -> Fields:
    options = site_config.cookie
    if not isinstance(options, CookieOptions):
        options = CookieOptions()
    return {"cookie": collaborators.cookie(options, users_server)}


BUILDERS: dict[Subsystem, Builder] = {
    Subsystem.DATABASE: build_database,
    Subsystem.CONFIG_STORE: build_config_store,
    Subsystem.NETWORK: build_network,
    Subsystem.REALTIME: build_realtime,
    Subsystem.SUBSCRIPTIONS: build_subscriptions,
    Subsystem.INCOMING_TRANSPORT: build_incoming_transport,
    Subsystem.OUTGOING_TRANSPORT: build_outgoing_transport,
    Subsystem.USERS_SERVER: build_users_server,
    Subsystem.USERS: build_users,
    Subsystem.HTTP: build_http,
    Subsystem.COOKIE: build_cookie,
}
