"""The site configuration model.

A `SiteConfig` is an immutable description of which subsystems a site should
have. Every top-level section is optional and independent:

| Section         | Builds                               | Needs                      |
|-----------------|--------------------------------------|----------------------------|
| ``database``    | ``client``, ``db``, ``collections``  |                            |
| ``config_store``| ``config``                           | ``database``               |
| ``network``     | ``binding`` (shared listener)        | ``realtime`` or ``http``   |
| ``realtime``    | ``wss`` (+ sub-sections)             |                            |
| ``users``       | ``users`` or ``users_server``        | ``database``               |
| ``http``        | ``http``                             |                            |
| ``cookie``      | ``cookie``                           | ``users_server`` + ``http``|

A section's *presence* is the only trigger for building it. Sections typed
``Unsettable`` additionally accept ``None`` as an explicit opt-out, which
overrides any default (see `sitewire.domain.unsettable`).

`SiteConfig.from_mapping` builds a config from plain data (e.g. a parsed TOML
file), where a missing key means ``UNSET`` and ``false``/``None`` mean an
explicit opt-out.
"""

from __future__ import annotations

import importlib
import secrets
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Literal

from .errors import ConfigurationError
from .unsettable import UNSET, Unsettable, _UnsetType, is_present

# pylint: disable=too-many-instance-attributes

type ConfigSchema = Mapping[str, Any]

MAX_PORT = 65535


def _check_port(section: str, port: int | None) -> None:
    if port is None:
        return
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= MAX_PORT:
        raise ConfigurationError(section, f"port must be an integer in 0..{MAX_PORT}")


# --- Network ---


@dataclass(frozen=True)
class TLSOptions:
    """Paths to the TLS certificate chain and private key."""

    cert: str
    key: str


@dataclass(frozen=True)
class NetworkOptions:
    """Shared listener settings used by both the real-time and HTTP servers.

    A shared binding is only created when ``port`` is given.
    """

    host: str = "0.0.0.0"
    port: int | None = None
    ssl: TLSOptions | None = None

    def __post_init__(self) -> None:
        _check_port("network", self.port)


# --- Database / config store ---


@dataclass(frozen=True)
class DatabaseOptions:
    """Connection settings for the database collaborator.

    Attributes:
        url: SQLAlchemy database URL.
        echo: Log SQL statements.
        create_tables: Create missing tables on demand instead of relying on
            ``sitewire db upgrade``.
    """

    url: str
    echo: bool = False
    create_tables: bool = True


# --- Real-time ---


@dataclass(frozen=True)
class IncomingTransportOptions:
    """Limits for transfers received from real-time clients."""

    max_size: int = 64 * 1024 * 1024
    max_transfers: int = 16


@dataclass(frozen=True)
class RealtimeOptions:
    """Settings for the WebSocket server.

    ``host``/``port``/``ssl`` override the shared ``network`` section. If
    ``port`` is set here the server gets its own listener.

    Sub-sections:
        subscriptions: on unless explicitly ``None``/``False``.
        incoming_transport: explicitly ``None``/``False`` disables it; ``True``
            or options enable it; left ``UNSET`` it is enabled only when the
            site also has a database and users.
        outgoing_transport: on only if truthy.
    """

    path: str = "/ws"
    host: str | None = None
    port: int | None = None
    ssl: TLSOptions | None = None
    heartbeat: float | None = 30.0
    subscriptions: Unsettable[bool] = UNSET
    incoming_transport: Unsettable[bool | IncomingTransportOptions] = UNSET
    outgoing_transport: Unsettable[bool] = UNSET

    def __post_init__(self) -> None:
        _check_port("realtime", self.port)


# --- Users ---


@dataclass(frozen=True)
class UsersServerOptions:
    """Settings that turn the users layer into a networked users server."""

    sessions_name: str = "sessions"
    session_ttl: float = 14 * 24 * 3600.0


@dataclass(frozen=True)
class UsersOptions:
    """Settings for the users layer.

    Attributes:
        name: Name of the users table.
        min_password_length: Passwords shorter than this are rejected.
        server: When given, and the site has real-time subscriptions, the
            users layer is exposed over the WebSocket server.
    """

    name: str = "users"
    min_password_length: int = 8
    server: UsersServerOptions | _UnsetType = UNSET


# --- Cookie ---


@dataclass(frozen=True)
class CookieMiddlewareOptions:
    """Settings for the HTTP middleware that resolves the session cookie."""

    request_key: str = "session"


@dataclass(frozen=True)
class CookieOptions:
    """Session cookie settings."""

    name: str = "session"
    secret: str = field(default_factory=lambda: secrets.token_hex(32), repr=False)
    max_age: int | None = 14 * 24 * 3600
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    http_only: bool = True
    same_site: Literal["Strict", "Lax", "None"] = "Lax"
    middleware: CookieMiddlewareOptions = field(default_factory=CookieMiddlewareOptions)


# --- HTTP ---


@dataclass(frozen=True)
class StaticOptions:
    """Serve files below ``root`` under the URL ``prefix``."""

    root: str = "public"
    prefix: str = "/"
    index: str = "index.html"


@dataclass(frozen=True)
class TemplateOptions:
    """Render Jinja templates below ``root``."""

    root: str = "templates"
    extension: str = ".html"
    globals: Mapping[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class HTTPOptions:
    """Settings for the HTTP server.

    The built-in static and template middlewares are on by default; set them
    to ``None`` to leave them out. ``middlewares`` are appended after the
    built-ins; falsy entries are ignored.
    """

    host: str | None = None
    port: int | None = None
    ssl: TLSOptions | None = None
    static: Unsettable[StaticOptions] = UNSET
    template: Unsettable[TemplateOptions] = UNSET
    middlewares: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        _check_port("http", self.port)


# --- Site ---


@dataclass(frozen=True)
class SiteConfig:
    """Declarative description of a site.

    Attributes:
        database: Database connection settings.
        config_store: Schema (name -> default) of persisted settings.
        network: Shared listener settings.
        realtime: WebSocket server settings.
        users: Users layer settings.
        cookie: Session cookie settings, or ``None`` to force-disable.
        http: HTTP server settings, or ``True`` for defaults.
        public: Whether the server is public.
        verbose_connection_logs: Log every new real-time connection at INFO.
    """

    database: DatabaseOptions | _UnsetType = UNSET
    config_store: Unsettable[ConfigSchema] = UNSET
    network: NetworkOptions | _UnsetType = UNSET
    realtime: RealtimeOptions | _UnsetType = UNSET
    users: UsersOptions | _UnsetType = UNSET
    cookie: Unsettable[CookieOptions] = UNSET
    http: HTTPOptions | Literal[True] | _UnsetType = UNSET
    public: bool = False
    verbose_connection_logs: bool = False

    def has(self, section: str) -> bool:
        """Return True if *section* was supplied and not explicitly disabled."""
        return is_present(getattr(self, section))

    @property
    def http_options(self) -> HTTPOptions:
        """The HTTP settings, with ``http = True`` expanded to the defaults."""
        if self.http is True:
            return HTTPOptions()
        if isinstance(self.http, HTTPOptions):
            return self.http
        raise AttributeError("http is not configured")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SiteConfig:
        """Build a `SiteConfig` from plain data.

        Args:
            data: Nested mappings, e.g. the result of ``tomllib.load``. A
                string is accepted for ``database`` as a URL shorthand;
                ``middlewares`` entries may be ``"module:attribute"`` strings.

        Returns:
            The parsed configuration.

        Raises:
            ConfigurationError: On unknown keys or values of the wrong shape.
        """
        kwargs = _kwargs(cls, "site", data)
        parsers: dict[str, Callable[[Any], Any]] = {
            "database": _parse_database,
            "config_store": _parse_config_store,
            "network": lambda v: _section(
                NetworkOptions, "network", v, nested={"ssl": _parse_tls("network")}
            ),
            "realtime": _parse_realtime,
            "users": lambda v: _section(
                UsersOptions,
                "users",
                v,
                nested={
                    "server": lambda s: _section(UsersServerOptions, "users.server", s)
                },
            ),
            "cookie": lambda v: _section(
                CookieOptions,
                "cookie",
                v,
                nullable=True,
                nested={
                    "middleware": lambda m: _section(
                        CookieMiddlewareOptions, "cookie.middleware", m
                    )
                    or CookieMiddlewareOptions()
                },
            ),
            "http": _parse_http,
        }
        for key, parse in parsers.items():
            if key in kwargs:
                kwargs[key] = parse(kwargs[key])
        return _construct(cls, "site", kwargs)


# --- from_mapping helpers ---


def _kwargs(cls: type, section: str, data: Any) -> dict[str, Any]:
    if not isinstance(data, Mapping):
        raise ConfigurationError(
            section, f"expected a table, got {type(data).__name__}"
        )
    known = {f.name for f in fields(cls)}
    if unknown := set(data) - known:
        raise ConfigurationError(section, f"unknown keys: {', '.join(sorted(unknown))}")
    return dict(data)


def _construct(cls: type, section: str, kwargs: dict[str, Any]) -> Any:
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ConfigurationError(section, str(e)) from e


def _section(
    cls: type,
    section: str,
    data: Any,
    *,
    nullable: bool = False,
    nested: Mapping[str, Callable[[Any], Any]] | None = None,
) -> Any:
    if data is None or data is False:
        return None if nullable else UNSET
    kwargs = _kwargs(cls, section, data)
    for key, parse in (nested or {}).items():
        if key in kwargs:
            kwargs[key] = parse(kwargs[key])
    return _construct(cls, section, kwargs)


def _parse_tls(section: str) -> Callable[[Any], TLSOptions | None]:
    return lambda v: _section(TLSOptions, f"{section}.ssl", v, nullable=True)


def _parse_flag(value: Any) -> bool | None:
    # explicit opt-outs collapse to None; anything else must be True
    if value is None or value is False:
        return None
    if value is True:
        return True
    raise ConfigurationError("realtime", f"expected true/false, got {value!r}")


def _parse_database(value: Any) -> DatabaseOptions | _UnsetType:
    if isinstance(value, str):
        return DatabaseOptions(url=value)
    return _section(DatabaseOptions, "database", value)


def _parse_config_store(value: Any) -> ConfigSchema | None:
    if value is None or value is False:
        return None
    if not isinstance(value, Mapping):
        raise ConfigurationError("config_store", "expected a table of defaults")
    return MappingProxyType(dict(value))


def _parse_realtime(value: Any) -> RealtimeOptions | _UnsetType:
    def incoming(v: Any) -> bool | IncomingTransportOptions | None:
        if isinstance(v, Mapping):
            return _section(
                IncomingTransportOptions, "realtime.incoming_transport", v
            )
        return _parse_flag(v)

    return _section(
        RealtimeOptions,
        "realtime",
        value,
        nested={
            "ssl": _parse_tls("realtime"),
            "subscriptions": _parse_flag,
            "incoming_transport": incoming,
            "outgoing_transport": _parse_flag,
        },
    )


def _parse_http(value: Any) -> HTTPOptions | Literal[True] | _UnsetType:
    if value is True:
        return True
    return _section(
        HTTPOptions,
        "http",
        value,
        nested={
            "ssl": _parse_tls("http"),
            "static": lambda v: _section(StaticOptions, "http.static", v, nullable=True),
            "template": lambda v: _section(
                TemplateOptions, "http.template", v, nullable=True
            ),
            "middlewares": lambda v: tuple(_import_middleware(m) for m in v),
        },
    )


def _import_middleware(ref: Any) -> Any:
    """Resolve a ``"package.module:attribute"`` reference to a middleware."""
    if not isinstance(ref, str):
        return ref
    module_name, sep, attribute = ref.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(
            "http.middlewares", f"expected 'module:attribute', got {ref!r}"
        )
    try:
        return getattr(importlib.import_module(module_name), attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError("http.middlewares", f"cannot import {ref!r}") from e
