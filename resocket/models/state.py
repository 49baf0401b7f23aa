"""Connection state model."""

from enum import Enum


class ConnectionState(Enum):
    """Lifecycle states of a socket, numbered like WebSocket ``readyState``."""
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3

    def __str__(self) -> str:
        return self.name
