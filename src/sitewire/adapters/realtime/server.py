"""aiohttp WebSocket server.

Clients exchange JSON envelopes ``{"type": str, "payload": any}`` with the
server. Each envelope type is routed to exactly one handler registered with
`WebSocketServer.on_message`. Malformed envelopes and unknown types are
answered with an ``error`` envelope; the connection stays open.

A handler that raises does not drop the connection either: the client gets an
``error`` envelope and the exception is emitted as an ``error`` event.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import uuid
from typing import TYPE_CHECKING, Any

from aiohttp import WSCloseCode, WSMsgType, web

from sitewire.interfaces.realtime import MessageHandler, RealtimeClient, RealtimeServer

if TYPE_CHECKING:
    from sitewire.domain.options import RealtimeOptions
    from sitewire.interfaces.network import NetworkBinding

logger = logging.getLogger(__name__)

ERROR = "error"


class WebSocketClient(RealtimeClient):
    """One connected WebSocket client."""

    def __init__(self, ws: web.WebSocketResponse, request: web.Request) -> None:
        self.id = uuid.uuid4().hex
        self.ws = ws
        self.request = request
        self.session: Any = None

    def __repr__(self) -> str:
        return f"<WebSocketClient {self.id} from {self.request.remote}>"

    @property
    def closed(self) -> bool:
        return self.ws.closed

    async def send(self, type_: str, payload: Any = None) -> None:
        await self.ws.send_json({"type": type_, "payload": payload})


class WebSocketServer(RealtimeServer):
    """WebSocket endpoint mounted on a network binding.

    Args:
        options: Real-time settings (path, heartbeat).
        binding: Binding whose application gets the WebSocket route.
    """

    def __init__(self, options: RealtimeOptions, binding: NetworkBinding) -> None:
        super().__init__()
        self.options = options
        self.binding = binding
        self.clients: set[RealtimeClient] = set()
        self._handlers: dict[str, MessageHandler] = {}
        binding.app.router.add_get(options.path, self._handle)
        binding.app.on_shutdown.append(self._on_shutdown)

    def on_message(self, type_: str, handler: MessageHandler) -> None:
        if type_ in self._handlers:
            raise ValueError(f"A handler for {type_!r} is already registered")
        self._handlers[type_] = handler

    async def broadcast(self, type_: str, payload: Any = None) -> None:
        clients = [client for client in self.clients if not client.closed]
        results = await asyncio.gather(
            *(client.send(type_, payload) for client in clients),
            return_exceptions=True,
        )
        for client, result in zip(clients, results):
            if isinstance(result, Exception):
                logger.debug("Broadcast to %r failed: %s", client, result)

    async def close(self) -> None:
        clients, self.clients = list(self.clients), set()
        for client in clients:
            if isinstance(client, WebSocketClient) and not client.closed:
                await client.ws.close(
                    code=WSCloseCode.GOING_AWAY, message=b"Server shutdown"
                )
        self.emit("close")

    async def _on_shutdown(self, app: web.Application) -> None:  # pylint: disable=unused-argument
        await self.close()

    async def _handle(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=self.options.heartbeat)
        await ws.prepare(request)

        client = WebSocketClient(ws, request)
        self.clients.add(client)
        self.emit("client-connect", client)
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._dispatch(client, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    self.emit("error", ws.exception())
        finally:
            self.clients.discard(client)
            self.emit("client-disconnect", client)
        return ws

    async def _dispatch(self, client: WebSocketClient, raw: str) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            await client.send(ERROR, {"message": "Invalid JSON"})
            return
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            await client.send(ERROR, {"message": "Invalid envelope"})
            return

        type_ = message["type"]
        if (handler := self._handlers.get(type_)) is None:
            await client.send(ERROR, {"type": type_, "message": "Unknown message type"})
            return

        logger.debug("Dispatching %s from %r", type_, client)
        try:
            result = handler(client, message.get("payload"))
            if inspect.isawaitable(result):
                await result
        except Exception as e:  # pylint: disable=broad-except
            self.emit("error", e)
            await client.send(ERROR, {"type": type_, "message": str(e)})
