"""The site: a composition root for optional subsystems.

A `Site` turns one `SiteConfig` into live collaborators. `resolve` decides
what to build; `Site.initialize` runs the builders, stage by stage, exactly
once, then settles the readiness signal with the site itself.

Fields of subsystems that were not built are not merely ``None``: reading
them raises `SubsystemNotBuiltError` (an `AttributeError`), so ``hasattr``
and ``site.has(...)`` tell what exists.

Example:
    ```py
    site = await Site.create(SiteConfig(database=DatabaseOptions("sqlite://")))
    site.fields   # frozenset({"client", "db", "collections"})
    site.http     # SubsystemNotBuiltError
    ```
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from sitewire.domain.errors import InitializationCancelledError, SubsystemNotBuiltError
from sitewire.service_layer.readiness import Readiness, ReadinessState
from sitewire.service_layer.resolver import FIELD_OWNERS, Subsystem, resolve
from sitewire.utils.events import EventEmitter

from .builders import BUILDERS, inject_dependencies
from .collaborators import Collaborators

if TYPE_CHECKING:
    from sitewire.domain.options import SiteConfig
    from sitewire.interfaces.network import NetworkBinding
    from sitewire.interfaces.realtime import RealtimeClient, RealtimeServer
    from sitewire.service_layer.resolver import BuildStep

logger = logging.getLogger(__name__)


class InitStatus(Enum):
    """Initialization lifecycle of a site."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    READY = "ready"
    FAILED = "failed"


class Site(EventEmitter):
    """Subsystems built from one configuration.

    Args:
        options: The site configuration.
        collaborators: Factories for the subsystems; the bundled adapters by
            default.
        autostart: Start initializing right away when constructed inside a
            running event loop. Otherwise call `initialize` (or use `create`).

    Events:
        ``error`` (exception) and ``close`` (), re-emitted from the real-time
        server.
    """

    def __init__(
        self,
        options: SiteConfig,
        *,
        collaborators: Collaborators | None = None,
        autostart: bool = True,
    ) -> None:
        super().__init__()
        self.options = options
        self.collaborators = collaborators or Collaborators()
        self.plan = resolve(options)
        self._status = InitStatus.NOT_STARTED
        self._lock = threading.Lock()
        self._ready: Readiness[Site] = Readiness()
        self._built: dict[str, Any] = {}
        self._task: asyncio.Task[Site] | None = None

        if autostart:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._task = loop.create_task(self.initialize())
                self._task.add_done_callback(_retrieve_failure)

    def __repr__(self) -> str:
        return f"<Site {self._status.value} [{', '.join(self.plan.describe())}]>"

    def __getattr__(self, name: str) -> Any:
        built = self.__dict__.get("_built", {})
        if name in built:
            return built[name]
        if name in FIELD_OWNERS:
            raise SubsystemNotBuiltError(name, FIELD_OWNERS[name].value)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    @classmethod
    async def create(
        cls, options: SiteConfig, *, collaborators: Collaborators | None = None
    ) -> Site:
        """Build a site and wait until it is ready."""
        return await cls(
            options, collaborators=collaborators, autostart=False
        ).initialize()

    @property
    def status(self) -> InitStatus:
        return self._status

    @property
    def fields(self) -> frozenset[str]:
        """Names of the fields built so far."""
        return frozenset(self._built)

    def has(self, field: str) -> bool:
        """Return True if *field* was built."""
        return field in self._built

    @property
    def bindings(self) -> tuple[NetworkBinding, ...]:
        """Distinct listeners the real-time and HTTP servers are attached to."""
        found: list[NetworkBinding] = []
        for name in ("binding", "wss", "http"):
            if name not in self._built:
                continue
            handle = self._built[name]
            binding = handle if name == "binding" else handle.binding
            if all(binding is not b for b in found):
                found.append(binding)
        return tuple(found)

    async def initialize(self) -> Site:
        """Build every planned subsystem, once.

        Calls made while initialization is running, or after it finished,
        wait for the same outcome instead of building again.

        Returns:
            This site.

        Raises:
            Exception: Whatever a builder raised. Subsystems built before the
                failure stay built.
            asyncio.CancelledError: If initialization was cancelled; readiness
                observers get `InitializationCancelledError` instead.
        """
        with self._lock:
            first = self._status is InitStatus.NOT_STARTED
            if first:
                self._status = InitStatus.IN_PROGRESS
        if not first:
            return await self._ready.wait()

        logger.debug("Initializing %d subsystem(s)", len(self.plan))
        try:
            for stage in self.plan.stages():
                results = await asyncio.gather(
                    *(self._build(step) for step in stage), return_exceptions=True
                )
                for step, result in zip(stage, results):
                    if isinstance(result, BaseException):
                        logger.error("Building %s failed: %s", step.subsystem.value, result)
                        raise result
        except asyncio.CancelledError as e:
            # futures cannot carry a CancelledError
            cancelled = InitializationCancelledError()
            cancelled.__cause__ = e
            self._fail(cancelled)
            raise
        except Exception as e:
            self._fail(e)
            raise

        self._status = InitStatus.READY
        logger.info("Site ready: %s", ", ".join(sorted(self._built)) or "nothing built")
        self._ready.resolve(self)
        return self

    def _fail(self, error: BaseException) -> None:
        self._status = InitStatus.FAILED
        self._ready.reject(error)

    async def when_ready(self) -> Site:
        """Wait until the site is initialized.

        Raises:
            Exception: The builder error, if initialization failed.
        """
        return await self._ready.wait()

    def on_ready(self, callback: Callable[[Site], Any]) -> None:
        """Call *callback* with the site once it is ready.

        Runs immediately if the site is already ready; never runs if
        initialization failed.
        """

        def settled(ready: Readiness[Site]) -> None:
            if ready.state is ReadinessState.RESOLVED:
                callback(ready.result())

        self._ready.on_settled(settled)

    async def _build(self, step: BuildStep) -> None:
        dependencies = {
            **self._built,
            "site_config": self.options,
            "collaborators": self.collaborators,
        }
        fields = await inject_dependencies(BUILDERS[step.subsystem], dependencies)()
        self._built.update(fields)
        logger.debug("Built %s: %s", step.subsystem.value, ", ".join(fields))

        if step.subsystem is Subsystem.REALTIME:
            self._watch(fields["wss"])
        elif step.subsystem is Subsystem.COOKIE:
            self._built["http"].attach_cookie(fields["cookie"])

    def _watch(self, wss: RealtimeServer) -> None:
        if self.options.verbose_connection_logs:
            wss.on("client-connect", _log_connect)
        wss.on("error", self._on_wss_error)
        wss.on("close", self._on_wss_close)

    def _on_wss_error(self, error: BaseException) -> None:
        logger.error("Real-time server error: %s", error)
        self.emit("error", error)

    def _on_wss_close(self) -> None:
        logger.warning("Real-time server closed")
        self.emit("close")


def _log_connect(client: RealtimeClient) -> None:
    user = getattr(client.session, "user", None)
    logger.info("Real-time client connected: %s", user.email if user else client.id)


def _retrieve_failure(task: asyncio.Task[Site]) -> None:
    # builder errors were logged and rejected the readiness signal
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Background initialization failed", exc_info=task.exception())
