"""Integration tests for chunked transfers over the WebSocket server."""

import asyncio
import base64

import pytest

from sitewire.adapters.realtime import IncomingTransport, OutgoingTransport
from sitewire.adapters.realtime.transports import BEGIN, CHUNK, DONE, END, FAILED
from sitewire.domain.options import IncomingTransportOptions
from tests.fixtures.web import TIMEOUT, WS_PATH, next_event, request, serve

# mypy: disable-error-code=no-untyped-def


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def received():
    return []


@pytest.fixture
def incoming(wss, received):
    transport = IncomingTransport(wss, IncomingTransportOptions(max_size=10, max_transfers=1))

    async def keep(client, transfer):
        received.append((bytes(transfer.data), transfer.metadata))

    transport.on_transfer("blob", keep)
    return transport


async def upload(ws, transfer_id, chunks, *, size=None, kind="blob"):
    """Send a whole transfer; return the reply to ``transfer.end``."""
    total = sum(len(c) for c in chunks) if size is None else size
    await ws.send_json(
        {
            "type": BEGIN,
            "payload": {"id": transfer_id, "kind": kind, "size": total, "metadata": {"name": "a.bin"}},
        }
    )
    for chunk in chunks:
        await ws.send_json({"type": CHUNK, "payload": {"id": transfer_id, "data": b64(chunk)}})
    return await request(ws, END, {"id": transfer_id})


@pytest.mark.asyncio
async def test_complete_transfer_reaches_the_handler(binding, incoming, received):
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        reply = await upload(ws, "t1", [b"hel", b"lo"])
        assert reply == {"type": DONE, "payload": {"id": "t1"}}
        assert received == [(b"hello", {"name": "a.bin"})]
        # the id can be reused once the transfer ended
        assert (await upload(ws, "t1", [b""]))["type"] == DONE
        await ws.close()


def test_one_handler_per_kind(incoming):
    with pytest.raises(ValueError):
        incoming.on_transfer("blob", lambda client, transfer: None)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"kind": "blob", "size": 1}, "Missing transfer id"),
        ({"id": "t", "kind": "video", "size": 1}, "Unsupported transfer kind"),
        ({"id": "t", "kind": "blob", "size": -1}, "non-negative"),
        ({"id": "t", "kind": "blob", "size": "3"}, "non-negative"),
        ({"id": "t", "kind": "blob", "size": 11}, "exceeds 10 bytes"),
    ],
)
async def test_invalid_begin_is_rejected(binding, incoming, payload, message):
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        reply = await request(ws, BEGIN, payload)
        assert reply["type"] == FAILED
        assert message in reply["payload"]["message"]
        await ws.close()


@pytest.mark.asyncio
async def test_concurrency_limit(binding, incoming):
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        await ws.send_json({"type": BEGIN, "payload": {"id": "a", "kind": "blob", "size": 1}})
        reply = await request(ws, BEGIN, {"id": "b", "kind": "blob", "size": 1})
        assert reply["payload"] == {"id": "b", "message": "Too many concurrent transfers"}
        reply = await request(ws, BEGIN, {"id": "a", "kind": "blob", "size": 1})
        assert reply["payload"]["message"] == "Transfer id already in use"
        await ws.close()


@pytest.mark.asyncio
async def test_chunk_errors_abort_the_transfer(binding, incoming, received):
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)

        await ws.send_json({"type": BEGIN, "payload": {"id": "t", "kind": "blob", "size": 4}})
        reply = await request(ws, CHUNK, {"id": "t", "data": "!!not base64!!"})
        assert reply["payload"] == {"id": "t", "message": "Invalid chunk encoding"}
        reply = await request(ws, END, {"id": "t"})
        assert reply["payload"]["message"] == "Unknown transfer"

        await ws.send_json({"type": BEGIN, "payload": {"id": "u", "kind": "blob", "size": 2}})
        reply = await request(ws, CHUNK, {"id": "u", "data": b64(b"too long")})
        assert reply["payload"]["message"] == "Transfer exceeds its declared size"

        reply = await request(ws, CHUNK, {"id": "nope", "data": ""})
        assert reply["payload"]["message"] == "Unknown transfer"
        await ws.close()
    assert received == []


@pytest.mark.asyncio
async def test_incomplete_transfer_is_reported(binding, incoming, received):
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        reply = await upload(ws, "t", [b"ab"], size=5)
        assert reply["payload"] == {"id": "t", "message": "Transfer is incomplete"}
        await ws.close()
    assert received == []


@pytest.mark.asyncio
async def test_disconnect_drops_pending_transfers(binding, wss, incoming):
    connected = next_event(wss, "client-connect")
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        client = await asyncio.wait_for(connected, TIMEOUT)
        await ws.send_json({"type": BEGIN, "payload": {"id": "t", "kind": "blob", "size": 3}})
        while not incoming.pending(client):
            await asyncio.sleep(0.01)
        gone = next_event(wss, "client-disconnect")
        await ws.close()
        await asyncio.wait_for(gone, TIMEOUT)
    assert incoming.pending(client) == []


@pytest.mark.asyncio
async def test_outgoing_transfer_is_chunked(binding, wss):
    outgoing = OutgoingTransport(wss)

    async def download(client, payload):
        await outgoing.send(client, "file", b"abcdefghij", metadata={"n": payload}, chunk_size=4)

    wss.on_message("download", download)
    async with serve(binding) as http:
        ws = await http.ws_connect(WS_PATH)
        begin = await request(ws, "download", 1)
        assert begin["type"] == BEGIN
        transfer_id = begin["payload"]["id"]
        assert begin["payload"] == {
            "id": transfer_id,
            "kind": "file",
            "size": 10,
            "metadata": {"n": 1},
        }

        data = b""
        while (msg := await ws.receive_json(timeout=TIMEOUT))["type"] == CHUNK:
            assert msg["payload"]["id"] == transfer_id
            data += base64.b64decode(msg["payload"]["data"])
        assert msg == {"type": END, "payload": {"id": transfer_id}}
        assert data == b"abcdefghij"
        await ws.close()


@pytest.mark.asyncio
async def test_outgoing_chunk_size_must_be_positive(wss):
    with pytest.raises(ValueError):
        await OutgoingTransport(wss).send(object(), "file", b"x", chunk_size=0)  # type: ignore[arg-type]
