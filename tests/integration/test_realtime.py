"""Integration tests for the WebSocket server, over a real aiohttp server."""

import asyncio

import pytest
from aiohttp import WSCloseCode, WSMsgType

from sitewire.adapters.realtime import WebSocketServer
from tests.fixtures.web import TIMEOUT, WS_PATH, next_event, request, serve

# mypy: disable-error-code=no-untyped-def


def echo(client, payload):
    return client.send("echo", payload)


@pytest.mark.asyncio
async def test_envelopes_are_routed_by_type(binding, wss):
    wss.on_message("echo", echo)
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        assert await request(ws, "echo", {"n": 1}) == {"type": "echo", "payload": {"n": 1}}
        await ws.close()


def test_one_handler_per_type(wss):
    wss.on_message("echo", echo)
    with pytest.raises(ValueError, match="already registered"):
        wss.on_message("echo", echo)


@pytest.mark.asyncio
async def test_bad_input_is_answered_with_errors(binding, wss):
    wss.on_message("echo", echo)
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)

        await ws.send_str("{not json")
        reply = await ws.receive_json(timeout=TIMEOUT)
        assert reply == {"type": "error", "payload": {"message": "Invalid JSON"}}

        await ws.send_json(["echo"])
        reply = await ws.receive_json(timeout=TIMEOUT)
        assert reply["payload"]["message"] == "Invalid envelope"

        reply = await request(ws, "nope")
        assert reply["payload"] == {"type": "nope", "message": "Unknown message type"}

        # the connection survived all of the above
        assert (await request(ws, "echo", 2))["payload"] == 2
        await ws.close()


@pytest.mark.asyncio
async def test_failing_handler_reports_and_emits(binding, wss):
    async def explode(client, payload):
        raise RuntimeError(f"cannot {payload}")

    wss.on_message("explode", explode)
    wss.on_message("echo", echo)
    errors = next_event(wss, "error")
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        reply = await request(ws, "explode", "compute")
        assert reply == {
            "type": "error",
            "payload": {"type": "explode", "message": "cannot compute"},
        }
        assert isinstance(await errors, RuntimeError)
        assert (await request(ws, "echo", "still here"))["payload"] == "still here"
        await ws.close()


@pytest.mark.asyncio
async def test_connect_and_disconnect_events(binding, wss):
    connected = next_event(wss, "client-connect")
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        client = await asyncio.wait_for(connected, TIMEOUT)
        assert wss.clients == {client}
        disconnected = next_event(wss, "client-disconnect")
        await ws.close()
        assert await asyncio.wait_for(disconnected, TIMEOUT) is client
        assert not wss.clients


@pytest.mark.asyncio
async def test_broadcast_reaches_every_client(binding, wss):
    async with serve(binding) as http:
        first = await http.ws_connect(WS_PATH)
        second = await http.ws_connect(WS_PATH)
        while len(wss.clients) < 2:
            await asyncio.sleep(0.01)
        await wss.broadcast("news", "hello")
        for ws in (first, second):
            assert await ws.receive_json(timeout=TIMEOUT) == {
                "type": "news",
                "payload": "hello",
            }
            await ws.close()


@pytest.mark.asyncio
async def test_close_disconnects_clients_and_emits_close(binding, wss: WebSocketServer):
    closed = next_event(wss, "close")
    connected = next_event(wss, "client-connect")
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        await asyncio.wait_for(connected, TIMEOUT)
        # the server waits for the close handshake, so keep reading meanwhile
        closing = asyncio.create_task(wss.close())
        msg = await ws.receive(timeout=TIMEOUT)
        await asyncio.wait_for(closing, TIMEOUT)
        await asyncio.wait_for(closed, TIMEOUT)
        assert msg.type is WSMsgType.CLOSE
        assert msg.data == WSCloseCode.GOING_AWAY
        assert not wss.clients
