"""Unit tests for the context-local socket registry."""

import asyncio

import pytest

from resocket.core.client import ManagedSocket
from resocket.core.exceptions import SocketNotFoundError
from resocket.core.registry import get_socket, provide_socket, reset_socket, set_socket, use_socket
from resocket.models.state import ConnectionState
from resocket.testing import ManualScheduler, MemoryTransport


@pytest.fixture
def socket():
    """Socket on an in-memory transport."""
    socket = ManagedSocket("ws://localhost:8080", transport=MemoryTransport(), scheduler=ManualScheduler())
    yield socket
    socket.close()


def test_get_socket_without_provider():
    """Test that looking up a socket that was never set fails clearly."""
    with pytest.raises(SocketNotFoundError, match="Did you forget to call set_socket"):
        get_socket()


def test_set_and_reset_socket(socket):
    """Test setting, reading and restoring the current socket."""
    token = set_socket(socket)
    try:
        assert get_socket() is socket
        assert use_socket() is socket
    finally:
        reset_socket(token)

    with pytest.raises(SocketNotFoundError):
        get_socket()


def test_provide_socket_nests(socket):
    """Test nested providers restore the outer socket."""
    inner = ManagedSocket("ws://localhost:9090", transport=MemoryTransport(), scheduler=ManualScheduler())

    with provide_socket(socket):
        with provide_socket(inner, close_on_exit=True):
            assert use_socket() is inner
        assert use_socket() is socket

    assert inner.state is ConnectionState.CLOSED
    assert socket.state is ConnectionState.CONNECTING


@pytest.mark.asyncio
async def test_socket_is_isolated_per_task(socket):
    """Test that a socket set inside a task does not leak into others."""
    async def child():
        set_socket(socket)
        return get_socket()

    assert await asyncio.create_task(child()) is socket
    with pytest.raises(SocketNotFoundError):
        get_socket()
