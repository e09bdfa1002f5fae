"""Chunked binary transfers over the WebSocket server.

A transfer is a sequence of envelopes sharing an ``id``:

- ``transfer.begin`` ``{"id", "kind", "size", "metadata"}``
- ``transfer.chunk`` ``{"id", "data"}`` (base64), any number of times
- ``transfer.end`` ``{"id"}``

`IncomingTransport` receives transfers from clients and hands complete ones
to the handler registered for their ``kind``; the client gets
``transfer.done`` or ``transfer.error``. `OutgoingTransport` sends transfers
to clients using the same envelopes.
"""

from __future__ import annotations

import base64
import binascii
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sitewire.domain.errors import TransferError
from sitewire.domain.options import IncomingTransportOptions

if TYPE_CHECKING:
    from sitewire.interfaces.realtime import RealtimeClient, RealtimeServer

logger = logging.getLogger(__name__)

BEGIN = "transfer.begin"
CHUNK = "transfer.chunk"
END = "transfer.end"
DONE = "transfer.done"
FAILED = "transfer.error"

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(eq=False)
class Transfer:
    """A transfer being received from a client."""

    id: str
    kind: str
    size: int
    client: RealtimeClient
    metadata: dict[str, Any] = field(default_factory=dict)
    data: bytearray = field(default_factory=bytearray, repr=False)

    @property
    def received(self) -> int:
        """Number of bytes received so far."""
        return len(self.data)


type TransferHandler = Callable[[RealtimeClient, Transfer], Awaitable[None] | None]


class IncomingTransport:
    """Receive transfers from real-time clients.

    Args:
        wss: Real-time server to register the message handlers on.
        options: Size and concurrency limits.
    """

    def __init__(
        self, wss: RealtimeServer, options: IncomingTransportOptions | None = None
    ) -> None:
        self.wss = wss
        self.options = options or IncomingTransportOptions()
        self._handlers: dict[str, TransferHandler] = {}
        self._pending: dict[tuple[str, str], Transfer] = {}
        wss.on_message(BEGIN, self._begin)
        wss.on_message(CHUNK, self._chunk)
        wss.on_message(END, self._end)
        wss.on("client-disconnect", self._drop_client)

    def on_transfer(self, kind: str, handler: TransferHandler) -> None:
        """Hand complete transfers of *kind* to *handler*.

        Raises:
            ValueError: If a handler is already registered for *kind*.
        """
        if kind in self._handlers:
            raise ValueError(f"A transfer handler for {kind!r} is already registered")
        self._handlers[kind] = handler

    def pending(self, client: RealtimeClient) -> list[Transfer]:
        """Transfers of *client* that have begun but not ended."""
        return [t for (cid, _), t in self._pending.items() if cid == client.id]

    async def _begin(self, client: RealtimeClient, payload: Any) -> None:
        try:
            transfer = self._validate_begin(client, payload)
        except TransferError as e:
            await client.send(FAILED, {"id": _id_of(payload), "message": str(e)})
            return
        self._pending[(client.id, transfer.id)] = transfer
        logger.debug("Transfer %s (%s, %d bytes) begun", transfer.id, transfer.kind, transfer.size)

    def _validate_begin(self, client: RealtimeClient, payload: Any) -> Transfer:
        if not isinstance(payload, dict) or not isinstance(payload.get("id"), str):
            raise TransferError("Missing transfer id")
        kind, size = payload.get("kind"), payload.get("size")
        if kind not in self._handlers:
            raise TransferError(f"Unsupported transfer kind {kind!r}")
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            raise TransferError("Transfer size must be a non-negative integer")
        if size > self.options.max_size:
            raise TransferError(f"Transfer exceeds {self.options.max_size} bytes")
        if (client.id, payload["id"]) in self._pending:
            raise TransferError("Transfer id already in use")
        if len(self.pending(client)) >= self.options.max_transfers:
            raise TransferError("Too many concurrent transfers")
        return Transfer(payload["id"], kind, size, client, dict(payload.get("metadata") or {}))

    async def _chunk(self, client: RealtimeClient, payload: Any) -> None:
        transfer = self._pending.get((client.id, _id_of(payload)))
        if transfer is None:
            await client.send(FAILED, {"id": _id_of(payload), "message": "Unknown transfer"})
            return
        try:
            chunk = base64.b64decode(payload.get("data") or "", validate=True)
        except (binascii.Error, TypeError, ValueError):
            await self._fail(transfer, "Invalid chunk encoding")
            return
        if transfer.received + len(chunk) > transfer.size:
            await self._fail(transfer, "Transfer exceeds its declared size")
            return
        transfer.data.extend(chunk)

    async def _end(self, client: RealtimeClient, payload: Any) -> None:
        transfer = self._pending.pop((client.id, _id_of(payload)), None)
        if transfer is None:
            await client.send(FAILED, {"id": _id_of(payload), "message": "Unknown transfer"})
            return
        if transfer.received != transfer.size:
            await client.send(
                FAILED, {"id": transfer.id, "message": "Transfer is incomplete"}
            )
            return
        result = self._handlers[transfer.kind](client, transfer)
        if inspect.isawaitable(result):
            await result
        await client.send(DONE, {"id": transfer.id})
        logger.debug("Transfer %s completed", transfer.id)

    async def _fail(self, transfer: Transfer, message: str) -> None:
        self._pending.pop((transfer.client.id, transfer.id), None)
        await transfer.client.send(FAILED, {"id": transfer.id, "message": message})

    def _drop_client(self, client: RealtimeClient) -> None:
        for key in [key for key in self._pending if key[0] == client.id]:
            del self._pending[key]


class OutgoingTransport:
    """Send transfers to real-time clients.

    Args:
        wss: Real-time server the clients are connected to.
    """

    def __init__(self, wss: RealtimeServer) -> None:
        self.wss = wss

    async def send(
        self,
        client: RealtimeClient,
        kind: str,
        data: bytes,
        *,
        metadata: dict[str, Any] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> str:
        """Send *data* to *client* as one transfer.

        Returns:
            The transfer id.
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        transfer_id = uuid.uuid4().hex
        await client.send(
            BEGIN,
            {"id": transfer_id, "kind": kind, "size": len(data), "metadata": metadata or {}},
        )
        for offset in range(0, len(data), chunk_size):
            chunk = base64.b64encode(data[offset : offset + chunk_size]).decode("ascii")
            await client.send(CHUNK, {"id": transfer_id, "data": chunk})
        await client.send(END, {"id": transfer_id})
        return transfer_id


def _id_of(payload: Any) -> Any:
    return payload.get("id") if isinstance(payload, dict) else None
