"""Factories for the collaborators a site is composed of.

`Collaborators` bundles one factory per collaborator, defaulting to the
bundled adapters. Swap any of them (``dataclasses.replace``) to build a site
against other implementations, e.g. fakes in tests.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from sitewire.adapters.config_store import SqlAlchemyConfigStore
from sitewire.adapters.db import connect
from sitewire.adapters.http import (
    AiohttpHTTPServer,
    CookieMiddleware,
    SignedCookieSetter,
    StaticMiddleware,
    TemplateMiddleware,
)
from sitewire.adapters.network import AiohttpBinding
from sitewire.adapters.realtime import (
    IncomingTransport,
    OutgoingTransport,
    SubscriptionHandler,
    WebSocketServer,
)
from sitewire.adapters.users import NetworkedUsers, Users
from sitewire.interfaces.config_store import ConfigStore
from sitewire.interfaces.database import Connect
from sitewire.interfaces.http import CookieSetter, HTTPServer
from sitewire.interfaces.network import NetworkBinding
from sitewire.interfaces.realtime import RealtimeServer
from sitewire.interfaces.users import UsersServer, UsersService

# pylint: disable=too-many-instance-attributes


@dataclass(frozen=True)
class Collaborators:
    """One factory per collaborator."""

    connect: Connect = connect
    config_store: Callable[..., Awaitable[ConfigStore]] = SqlAlchemyConfigStore.init
    binding: Callable[..., NetworkBinding] = AiohttpBinding
    realtime: Callable[..., RealtimeServer] = WebSocketServer
    subscriptions: Callable[..., Any] = SubscriptionHandler
    incoming_transport: Callable[..., Any] = IncomingTransport
    outgoing_transport: Callable[..., Any] = OutgoingTransport
    users: Callable[..., Awaitable[UsersService]] = Users.init
    users_server: Callable[..., Awaitable[UsersServer]] = NetworkedUsers.init
    http: Callable[..., HTTPServer] = AiohttpHTTPServer
    cookie: Callable[..., CookieSetter] = SignedCookieSetter
    cookie_middleware: Callable[..., Any] = CookieMiddleware
    static_middleware: Callable[..., Any] = StaticMiddleware
    template_middleware: Callable[..., Any] = TemplateMiddleware
