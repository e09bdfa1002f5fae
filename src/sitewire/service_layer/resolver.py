"""Dependency resolution: from a `SiteConfig` to an ordered build plan.

`resolve` is a pure function. It inspects only the *shape* of the
configuration (which sections are present, absent or explicitly disabled) and
returns a `BuildPlan`: the subsystems to build, in dependency order, each with
the subsystems whose outputs it consumes.

The fixed order is:

1. database, then config store
2. shared network binding
3. real-time server
4. subscription dispatcher
5. incoming transport
6. outgoing transport
7. users server, or plain users
8. HTTP server
9. cookie setter

A dependent never pulls in its prerequisite: if ``realtime`` is absent, no
transport, subscription dispatcher or users server is planned, whatever the
other sections say.

`project_fields` is the shape projection: the exact set of site fields a
configuration produces once initialized.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from sitewire.domain.options import UsersOptions
from sitewire.domain.unsettable import is_disabled, is_present, is_unset

if TYPE_CHECKING:
    from sitewire.domain.options import SiteConfig


class Subsystem(str, Enum):
    """Identifiers of the subsystems a site can be composed of."""

    DATABASE = "database"
    CONFIG_STORE = "config_store"
    NETWORK = "network"
    REALTIME = "realtime"
    SUBSCRIPTIONS = "subscriptions"
    INCOMING_TRANSPORT = "incoming_transport"
    OUTGOING_TRANSPORT = "outgoing_transport"
    USERS_SERVER = "users_server"
    USERS = "users"
    HTTP = "http"
    COOKIE = "cookie"

    @property
    def fields(self) -> tuple[str, ...]:
        """Site attributes populated when this subsystem is built."""
        return SUBSYSTEM_FIELDS[self]


SUBSYSTEM_FIELDS: dict[Subsystem, tuple[str, ...]] = {
    Subsystem.DATABASE: ("client", "db", "collections"),
    Subsystem.CONFIG_STORE: ("config",),
    Subsystem.NETWORK: ("binding",),
    Subsystem.REALTIME: ("wss",),
    Subsystem.SUBSCRIPTIONS: ("subscription_handler",),
    Subsystem.INCOMING_TRANSPORT: ("incoming_transport",),
    Subsystem.OUTGOING_TRANSPORT: ("outgoing_transport",),
    Subsystem.USERS_SERVER: ("users_server", "users"),
    Subsystem.USERS: ("users",),
    Subsystem.HTTP: ("http",),
    Subsystem.COOKIE: ("cookie",),
}

#: Every field a site can ever expose, mapped to the subsystem owning it.
FIELD_OWNERS: dict[str, Subsystem] = {
    name: subsystem
    for subsystem in Subsystem  # later members win: "users" resolves to USERS
    for name in subsystem.fields
}


@dataclass(frozen=True)
class BuildStep:
    """One subsystem to build and the subsystems whose outputs it consumes."""

    subsystem: Subsystem
    requires: tuple[Subsystem, ...] = ()

    def __str__(self) -> str:
        if not self.requires:
            return self.subsystem.value
        deps = ", ".join(dep.value for dep in self.requires)
        return f"{self.subsystem.value} <- {deps}"


@dataclass(frozen=True)
class BuildPlan:
    """An ordered, dependency-respecting sequence of build steps."""

    steps: tuple[BuildStep, ...] = ()

    def __iter__(self) -> Iterator[BuildStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __contains__(self, subsystem: object) -> bool:
        return any(step.subsystem == subsystem for step in self.steps)

    @property
    def subsystems(self) -> tuple[Subsystem, ...]:
        """The planned subsystems, in build order."""
        return tuple(step.subsystem for step in self.steps)

    @property
    def fields(self) -> frozenset[str]:
        """Site fields this plan populates."""
        return frozenset(name for step in self.steps for name in step.subsystem.fields)

    def stages(self) -> tuple[tuple[BuildStep, ...], ...]:
        """Group steps into dependency levels.

        Steps in the same stage do not depend on each other and may be run
        concurrently; every step's requirements live in earlier stages. Plan
        order is preserved inside each stage.
        """
        level: dict[Subsystem, int] = {}
        for step in self.steps:
            level[step.subsystem] = 1 + max(
                (level[dep] for dep in step.requires), default=-1
            )
        depth = max(level.values(), default=-1) + 1
        return tuple(
            tuple(step for step in self.steps if level[step.subsystem] == stage)
            for stage in range(depth)
        )

    def describe(self) -> list[str]:
        """Human-readable lines, one per step."""
        return [str(step) for step in self.steps]


def resolve(config: SiteConfig) -> BuildPlan:
    """Compute the build plan for a configuration.

    Args:
        config: The site configuration.

    Returns:
        The steps to run, in dependency order.
    """
    steps: list[BuildStep] = []
    planned: set[Subsystem] = set()

    def add(subsystem: Subsystem, *requires: Subsystem) -> None:
        steps.append(BuildStep(subsystem, tuple(r for r in requires if r in planned)))
        planned.add(subsystem)

    has_database = config.has("database")
    has_realtime = config.has("realtime")
    has_http = config.has("http")
    has_users = config.has("users")

    # 1. database and config store
    if has_database:
        add(Subsystem.DATABASE)
        if config.has("config_store"):
            add(Subsystem.CONFIG_STORE, Subsystem.DATABASE)

    # 2. shared network binding
    network = config.network
    if (
        is_present(network)
        and network.port is not None  # type: ignore[union-attr]
        and (has_realtime or has_http)
    ):
        add(Subsystem.NETWORK)

    # 3.-6. real-time server and its extensions
    if has_realtime:
        realtime = config.realtime
        add(Subsystem.REALTIME, Subsystem.NETWORK)

        if not is_disabled(realtime.subscriptions):  # type: ignore[union-attr]
            add(Subsystem.SUBSCRIPTIONS, Subsystem.REALTIME, Subsystem.DATABASE)

        incoming = realtime.incoming_transport  # type: ignore[union-attr]
        if not is_disabled(incoming) and (
            is_present(incoming) or (has_database and has_users)
        ):
            add(Subsystem.INCOMING_TRANSPORT, Subsystem.REALTIME)

        if is_present(realtime.outgoing_transport):  # type: ignore[union-attr]
            add(Subsystem.OUTGOING_TRANSPORT, Subsystem.REALTIME)

    # 7. users: networked if everything it needs is planned, plain otherwise
    if has_database and has_users:
        users: UsersOptions = config.users  # type: ignore[assignment]
        if Subsystem.SUBSCRIPTIONS in planned and not is_unset(users.server):
            add(
                Subsystem.USERS_SERVER,
                Subsystem.DATABASE,
                Subsystem.REALTIME,
                Subsystem.SUBSCRIPTIONS,
                Subsystem.INCOMING_TRANSPORT,
            )
        else:
            add(Subsystem.USERS, Subsystem.DATABASE)

    # 8. HTTP server
    if has_http:
        add(Subsystem.HTTP, Subsystem.NETWORK)

    # 9. cookie setter
    if (
        Subsystem.USERS_SERVER in planned
        and Subsystem.HTTP in planned
        and not is_disabled(config.cookie)
    ):
        add(Subsystem.COOKIE, Subsystem.USERS_SERVER, Subsystem.HTTP)

    return BuildPlan(tuple(steps))


def project_fields(config: SiteConfig) -> frozenset[str]:
    """Return the site fields that exist once *config* is initialized."""
    return resolve(config).fields
