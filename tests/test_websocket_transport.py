"""Integration tests for the WebSocket transport against a local server."""

import asyncio

import pytest
import websockets

from resocket.core.client import ManagedSocket
from resocket.core.exceptions import TransportError
from resocket.core.websocket_transport import WebSocketHandle, WebSocketTransport
from resocket.models.state import ConnectionState


async def echo(websocket):
    async for message in websocket:
        await websocket.send(message)


async def wait_for(predicate, timeout=5.0):
    """Poll until ``predicate()`` is true."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def test_connect_requires_running_loop():
    """Test that connecting outside an event loop fails."""
    with pytest.raises(TransportError, match="running asyncio event loop"):
        WebSocketTransport().connect("ws://localhost:8080")


@pytest.mark.asyncio
async def test_round_trip_through_echo_server():
    """Test open, send, receive and close over a real connection."""
    async with websockets.serve(echo, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        closes = []
        socket = ManagedSocket(f"ws://127.0.0.1:{port}", on_close=lambda event: closes.append(event.code))

        await wait_for(lambda: socket.state is ConnectionState.OPEN)
        socket.send("hello")
        socket.send(b"\x01\x02")
        await wait_for(lambda: len(socket.received_messages) == 2)

        assert [entry.message.data for entry in socket.received_messages] == [b"\x01\x02", "hello"]
        assert [entry.message for entry in socket.sent_messages] == [b"\x01\x02", "hello"]

        socket.close()
        assert socket.state is ConnectionState.CLOSED
        assert closes == [1000]


@pytest.mark.asyncio
async def test_reconnects_after_server_closes_connection():
    """Test that a server-side close triggers a reconnect."""
    async def close_first(websocket):
        await websocket.close(1011, "going away")

    async with websockets.serve(close_first, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        opens = []
        socket = ManagedSocket(
            f"ws://127.0.0.1:{port}",
            on_open=lambda event: opens.append(event),
            reconnect={"enabled": True, "delay": 0.01, "max_attempts": 2},
        )
        try:
            await wait_for(lambda: len(opens) >= 2)
        finally:
            socket.close()

        assert socket.state is ConnectionState.CLOSED


@pytest.mark.asyncio
async def test_connection_refused_reports_error_and_close():
    """Test connecting to a port nobody listens on."""
    async with websockets.serve(echo, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]

    errors = []
    closes = []
    socket = ManagedSocket(
        f"ws://127.0.0.1:{port}",
        on_error=lambda event: errors.append(event.error),
        on_close=lambda event: closes.append(event.code),
    )
    await wait_for(lambda: closes)

    assert isinstance(errors[0], TransportError)
    assert closes == [1006]
    assert socket.state is ConnectionState.CLOSED
    socket.close()


@pytest.mark.asyncio
async def test_unexpected_connect_failure_reports_error_and_close():
    """Test a failure outside the usual network errors still ends in error and close events."""
    transport = WebSocketTransport()
    handle = transport.connect("ws://127.0.0.1:99999")
    errors = []
    closes = []
    transport.on(handle, "error", lambda event: errors.append(event.error))
    transport.on(handle, "close", lambda event: closes.append(event.code))

    await wait_for(lambda: closes)
    await handle.task

    assert len(errors) == 1
    assert isinstance(errors[0], TransportError)
    assert closes == [1006]


def test_transport_close_after_loop_closed():
    """Test closing and sending on a handle whose event loop is gone."""
    loop = asyncio.new_event_loop()
    loop.close()
    transport = WebSocketTransport()
    handle = WebSocketHandle("ws://127.0.0.1:8080", loop)

    transport.close(handle)
    transport.close(handle)

    assert handle.closed is True
    with pytest.raises(TransportError):
        transport.send(handle, "late")


def test_client_close_after_loop_finished():
    """Test that a socket created inside asyncio.run can be closed after the loop ends."""
    closes = []

    async def make():
        return ManagedSocket("ws://127.0.0.1:1", on_close=lambda event: closes.append(event.code))

    socket = asyncio.run(make())
    socket.close()
    socket.close()

    assert socket.state is ConnectionState.CLOSED
    assert socket.is_connected is False
    assert socket.sent_messages == []
    assert socket.reconnect_attempts == 0
    assert len(closes) == 1
