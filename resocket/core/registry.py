"""Context-local slot for sharing a ManagedSocket with the code that runs under it."""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

from resocket.core.client import ManagedSocket
from resocket.core.exceptions import SocketNotFoundError

# Context variable holding the current socket (isolated per thread and per asyncio task)
current_socket_var: ContextVar[Optional[ManagedSocket]] = ContextVar("current_socket", default=None)


def set_socket(socket: ManagedSocket) -> Token:
    """
    Make ``socket`` the current socket.

    Returns:
        Token that ``reset_socket`` uses to restore the previous value
    """
    return current_socket_var.set(socket)


def reset_socket(token: Token) -> None:
    current_socket_var.reset(token)


def get_socket() -> ManagedSocket:
    """
    Return the current socket.

    Raises:
        SocketNotFoundError: If no socket has been set
    """
    socket = current_socket_var.get()
    if socket is None:
        raise SocketNotFoundError("ManagedSocket not found. Did you forget to call set_socket()?")
    return socket


def use_socket() -> ManagedSocket:
    """Return the current socket; alias of ``get_socket`` for handler code."""
    return get_socket()


@contextmanager
def provide_socket(socket: ManagedSocket, close_on_exit: bool = False) -> Iterator[ManagedSocket]:
    """Set ``socket`` as current for the duration of the block, then restore the previous one."""
    token = set_socket(socket)
    try:
        yield socket
    finally:
        reset_socket(token)
        if close_on_exit:
            socket.close()
