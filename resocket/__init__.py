"""Reconnecting socket client with connection-state tracking and bounded message history."""

from resocket.core.client import ManagedSocket
from resocket.core.exceptions import (
    ConfigurationError,
    InvalidStateError,
    NotConnectedError,
    SocketError,
    SocketNotFoundError,
    TransportError,
)
from resocket.core.listeners import ListenerRegistry
from resocket.core.registry import get_socket, provide_socket, reset_socket, set_socket, use_socket
from resocket.core.transport import Transport, TransportHandle
from resocket.core.websocket_transport import WebSocketTransport
from resocket.models.event import EventKind, SocketEvent
from resocket.models.history import HistoryBuffer, ReceivedMessage, SentMessage
from resocket.models.options import ReconnectPolicy, SocketOptions, validate_url
from resocket.models.state import ConnectionState

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "ConnectionState",
    "EventKind",
    "HistoryBuffer",
    "InvalidStateError",
    "ListenerRegistry",
    "ManagedSocket",
    "NotConnectedError",
    "ReceivedMessage",
    "ReconnectPolicy",
    "SentMessage",
    "SocketError",
    "SocketEvent",
    "SocketNotFoundError",
    "SocketOptions",
    "Transport",
    "TransportError",
    "TransportHandle",
    "WebSocketTransport",
    "get_socket",
    "provide_socket",
    "reset_socket",
    "set_socket",
    "use_socket",
    "validate_url",
]
