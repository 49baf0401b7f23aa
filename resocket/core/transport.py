"""Transport interface used by the managed socket."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Union

from resocket.models.event import EventKind, SocketEvent

logger = logging.getLogger(__name__)


class TransportHandle:
    """
    A single connection created by a transport.

    Keeps the listeners registered for each event kind and dispatches
    events to them in registration order.
    """

    def __init__(self, address: str):
        self.address = address
        self.closed = False
        self._listeners: Dict[EventKind, List[Callable[[SocketEvent], None]]] = {
            kind: [] for kind in EventKind
        }

    def add_listener(self, kind: Union[str, EventKind], callback: Callable[[SocketEvent], None]) -> None:
        self._listeners[EventKind.parse(kind)].append(callback)

    def remove_listener(self, kind: Union[str, EventKind], callback: Callable[[SocketEvent], None]) -> None:
        """Remove one registration of ``callback``; unknown callbacks are ignored."""
        callbacks = self._listeners[EventKind.parse(kind)]
        for index, registered in enumerate(callbacks):
            if registered is callback:
                del callbacks[index]
                return

    def listener_count(self, kind: Union[str, EventKind]) -> int:
        return len(self._listeners[EventKind.parse(kind)])

    def dispatch(self, event: SocketEvent) -> None:
        """
        Call every listener registered for the event's kind.

        A listener that raises is logged and the remaining listeners still run.
        """
        for callback in list(self._listeners[event.kind]):
            try:
                callback(event)
            except Exception:
                logger.exception(f"Listener for '{event.kind.value}' on {self.address} failed")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address!r}, closed={self.closed!r})"


class Transport(ABC):
    """Creates connections and moves payloads over them."""

    @abstractmethod
    def connect(self, address: str) -> TransportHandle:
        """
        Start connecting to ``address``.

        Must return without waiting for the connection; the outcome is
        reported later through ``open``, ``error`` and ``close`` events.

        Raises:
            TransportError: If the connection cannot even be started
        """

    @abstractmethod
    def send(self, handle: TransportHandle, payload) -> None:
        """Queue ``payload`` on the connection."""

    @abstractmethod
    def close(self, handle: TransportHandle, code: int = 1000, reason: str = "") -> None:
        """Start closing the connection. Closing twice must be harmless."""

    def on(self, handle: TransportHandle, kind: Union[str, EventKind], callback: Callable[[SocketEvent], None]) -> None:
        handle.add_listener(kind, callback)

    def off(self, handle: TransportHandle, kind: Union[str, EventKind], callback: Callable[[SocketEvent], None]) -> None:
        handle.remove_listener(kind, callback)
