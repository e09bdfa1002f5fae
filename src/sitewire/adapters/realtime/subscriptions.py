"""Publication/subscription dispatcher over the WebSocket server.

The server side *publishes* named data sources; clients *subscribe* to them:

- ``subscribe`` ``{"id": str, "name": str, "params": any}``: the client gets
  a ``subscription`` ``{"id": ..., "data": ...}`` envelope right away, and
  again every time the publication is notified.
- ``unsubscribe`` ``{"id": str}``: stop receiving updates.

Publications backed by a table (`publish_collection`) are only available
when the site has a database.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.engine import Engine

    from sitewire.interfaces.realtime import RealtimeClient, RealtimeServer

logger = logging.getLogger(__name__)

SUBSCRIBE = "subscribe"
UNSUBSCRIBE = "unsubscribe"
UPDATE = "subscription"

type Fetch = Callable[["RealtimeClient", Any], Awaitable[Any] | Any]


class PersistenceUnavailableError(RuntimeError):
    """Raised when publishing a table on a site without a database."""


@dataclass(eq=False)
class Subscription:
    """One client's subscription to a publication."""

    id: str
    name: str
    client: RealtimeClient
    params: Any = field(default=None)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return None
    return value


class SubscriptionHandler:
    """Route subscriptions to publications and push their data.

    Args:
        wss: Real-time server to register the message handlers on.
        with_persistence: Whether table-backed publications are available.
    """

    def __init__(self, wss: RealtimeServer, with_persistence: bool) -> None:
        self.wss = wss
        self.with_persistence = with_persistence
        self._publications: dict[str, Fetch] = {}
        self._subscriptions: dict[tuple[str, str], Subscription] = {}
        wss.on_message(SUBSCRIBE, self._subscribe)
        wss.on_message(UNSUBSCRIBE, self._unsubscribe)
        wss.on("client-disconnect", self._drop_client)

    @property
    def publications(self) -> tuple[str, ...]:
        """Names of the registered publications."""
        return tuple(self._publications)

    def subscriptions(self, name: str | None = None) -> list[Subscription]:
        """Live subscriptions, optionally filtered by publication name."""
        return [
            sub for sub in self._subscriptions.values() if name in (None, sub.name)
        ]

    def publish(self, name: str, fetch: Fetch) -> None:
        """Register a publication.

        Args:
            name: Publication name clients subscribe to.
            fetch: Called with ``(client, params)``; returns (or resolves to)
                the JSON-serializable data to push.

        Raises:
            ValueError: If *name* is already published.
        """
        if name in self._publications:
            raise ValueError(f"Publication {name!r} already exists")
        self._publications[name] = fetch

    def publish_collection(
        self, name: str, engine: Engine, table: Table, *, limit: int | None = None
    ) -> None:
        """Publish the rows of *table* under *name*.

        Raises:
            PersistenceUnavailableError: If the site has no database.
        """
        if not self.with_persistence:
            raise PersistenceUnavailableError(
                f"Cannot publish {table.name!r}: the site has no database"
            )

        def load() -> list[dict[str, Any]]:
            stmt = select(table)
            if limit is not None:
                stmt = stmt.limit(limit)
            with engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
            return [{k: _jsonable(v) for k, v in row.items()} for row in rows]

        async def fetch(client: RealtimeClient, params: Any) -> Any:  # pylint: disable=unused-argument
            return await asyncio.to_thread(load)

        self.publish(name, fetch)

    async def notify(self, name: str) -> int:
        """Push fresh data of publication *name* to all its subscribers.

        Returns:
            The number of subscriptions updated.
        """
        subs = [sub for sub in self.subscriptions(name) if not sub.client.closed]
        for sub in subs:
            await self._push(sub)
        return len(subs)

    async def _push(self, sub: Subscription) -> None:
        data = self._publications[sub.name](sub.client, sub.params)
        if inspect.isawaitable(data):
            data = await data
        await sub.client.send(UPDATE, {"id": sub.id, "data": data})

    async def _subscribe(self, client: RealtimeClient, payload: Any) -> None:
        if not isinstance(payload, dict) or not isinstance(payload.get("id"), str):
            await client.send("error", {"type": SUBSCRIBE, "message": "Missing id"})
            return
        name = payload.get("name")
        if name not in self._publications:
            await client.send(
                "error",
                {"type": SUBSCRIBE, "id": payload["id"], "message": "Unknown publication"},
            )
            return
        sub = Subscription(payload["id"], name, client, payload.get("params"))
        self._subscriptions[(client.id, sub.id)] = sub
        logger.debug("%r subscribed to %s", client, name)
        await self._push(sub)

    def _unsubscribe(self, client: RealtimeClient, payload: Any) -> None:
        if isinstance(payload, dict):
            self._subscriptions.pop((client.id, payload.get("id")), None)

    def _drop_client(self, client: RealtimeClient) -> None:
        for key in [key for key in self._subscriptions if key[0] == client.id]:
            del self._subscriptions[key]
