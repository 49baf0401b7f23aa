"""Managed socket client with reconnection and message history."""

import logging
import threading
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Union

from resocket.core.exceptions import (
    ConfigurationError,
    InvalidStateError,
    NotConnectedError,
    TransportError,
)
from resocket.core.listeners import ListenerRegistry
from resocket.core.scheduler import Cancellable, Scheduler, default_scheduler
from resocket.core.transport import Transport, TransportHandle
from resocket.models.event import EventKind, SocketEvent
from resocket.models.history import HistoryBuffer, ReceivedMessage, SentMessage
from resocket.models.options import SocketOptions, validate_url
from resocket.models.state import ConnectionState

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000


class ManagedSocket:
    """
    Socket client that owns one transport connection at a time.

    Tracks the connection state, keeps bounded newest-first histories of
    sent and received messages, and re-opens the connection after an
    unexpected close according to its ``ReconnectPolicy``.

    The connection is opened on construction. ``open``, ``send`` and
    ``close`` never block; the transport reports progress through events.
    """

    def __init__(self, options: Union[str, SocketOptions, Mapping[str, Any]],
                 transport: Optional[Transport] = None,
                 scheduler: Optional[Scheduler] = None,
                 **kwargs):
        """
        Initialize the client and start connecting.

        Args:
            options: A URL, a ``SocketOptions`` instance or a mapping of options
            transport: Transport to connect through; a ``WebSocketTransport`` by default
            scheduler: Callable used to defer reconnects; ``default_scheduler`` by default
            **kwargs: Option overrides when ``options`` is a URL or mapping

        Raises:
            ConfigurationError: If the URL or any option is invalid
        """
        self._options = self._build_options(options, kwargs)

        if transport is None:
            from resocket.core.websocket_transport import WebSocketTransport
            transport = WebSocketTransport()

        self._transport = transport
        self._scheduler = scheduler or default_scheduler
        self._lock = threading.RLock()
        self._url = self._options.url
        self._handle: Optional[TransportHandle] = None
        self._state = ConnectionState.CLOSED
        self._sent: HistoryBuffer[SentMessage] = HistoryBuffer(self._options.max_message_history)
        self._received: HistoryBuffer[ReceivedMessage] = HistoryBuffer(self._options.max_message_history)
        self._listeners = ListenerRegistry()
        self._reconnect_attempts = 0
        self._reconnect_timer: Optional[Cancellable] = None
        self._timer_generation = 0
        self._intentional_close = False
        self._close_reported = False

        self._trace("Created")
        self.open()

    @staticmethod
    def _build_options(options, overrides: Dict[str, Any]) -> SocketOptions:
        if isinstance(options, SocketOptions):
            if overrides:
                raise ConfigurationError("Keyword options cannot be combined with a SocketOptions instance")
            options.validate()
            return options
        if isinstance(options, Mapping):
            return SocketOptions.from_dict({**options, **overrides})
        return SocketOptions.from_dict({'url': options, **overrides})

    # Read surface

    @property
    def url(self) -> str:
        with self._lock:
            return self._url

    @property
    def options(self) -> SocketOptions:
        return self._options

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._handle is not None and self._state is ConnectionState.OPEN

    @property
    def sent_messages(self) -> List[SentMessage]:
        """Sent messages, newest first."""
        with self._lock:
            return self._sent.snapshot()

    @property
    def received_messages(self) -> List[ReceivedMessage]:
        """Received message events, newest first."""
        with self._lock:
            return self._received.snapshot()

    @property
    def max_message_history(self) -> int:
        return self._options.max_message_history

    @property
    def reconnect_attempts(self) -> int:
        with self._lock:
            return self._reconnect_attempts

    @property
    def reconnect_pending(self) -> bool:
        with self._lock:
            return self._reconnect_timer is not None

    @property
    def listeners(self) -> Dict[str, List[Callable]]:
        """Externally registered listeners by event kind, in registration order."""
        with self._lock:
            return self._listeners.snapshot()

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of the client for diagnostics."""
        with self._lock:
            return {
                'url': self._url,
                'state': self._state.name,
                'is_connected': self.is_connected,
                'reconnect': self._options.reconnect.to_dict(),
                'reconnect_attempts': self._reconnect_attempts,
                'reconnect_pending': self.reconnect_pending,
                'max_message_history': self.max_message_history,
                'sent_messages': [entry.to_dict() for entry in self._sent],
                'received_messages': [entry.to_dict() for entry in self._received],
                'listeners': {kind: len(callbacks) for kind, callbacks in self._listeners.snapshot().items()}
            }

    # Connection management

    def open(self, url: Optional[str] = None) -> None:
        """
        Start a new connection, replacing the current one if there is one.

        Args:
            url: Address to connect to; defaults to the configured URL

        Raises:
            ConfigurationError: If the address is not a WebSocket URL
        """
        with self._lock:
            url = validate_url(self._url if url is None else url)
            self._cancel_reconnect()
            self._intentional_close = False

            if self._handle is not None:
                self._trace("Socket already exists, closing existing connection")
                previous, self._handle = self._handle, None
                self._listeners.clear()
                self._release(previous)

            self._url = url
            self._state = ConnectionState.CONNECTING
            self._close_reported = False
            self._trace("Connecting")

            try:
                handle = self._transport.connect(url)
            except TransportError as e:
                logger.warning(f"Could not connect to {url}: {e}")
                self._handle_error(SocketEvent(EventKind.ERROR, origin=url, error=e))
                self._handle_close(SocketEvent(EventKind.CLOSE, origin=url, code=1006, reason=str(e)))
                return

            self._handle = handle
            for kind in EventKind:
                self._transport.on(handle, kind, self._bind(handle, kind))

    def _bind(self, handle: TransportHandle, kind: EventKind) -> Callable[[SocketEvent], None]:
        handlers = {
            EventKind.OPEN: self._handle_open,
            EventKind.CLOSE: self._handle_close,
            EventKind.ERROR: self._handle_error,
            EventKind.MESSAGE: self._handle_message,
        }
        handler = handlers[kind]

        def dispatch(event: SocketEvent) -> None:
            with self._lock:
                # Events from a replaced or released connection are stale.
                if handle is not self._handle:
                    return
                handler(event)

        return dispatch

    def send(self, payload) -> None:
        """
        Send a text or binary payload and record it in the sent history.

        Raises:
            NotConnectedError: If there is no connection
            InvalidStateError: If the connection is not open
            TypeError: If the payload is neither text nor bytes-like
            TransportError: If the transport rejects the payload (also forwarded to ``on_error``)
        """
        with self._lock:
            if self._handle is None:
                raise NotConnectedError("Cannot send message: Socket not connected")
            if self._state is not ConnectionState.OPEN:
                raise InvalidStateError(
                    f"Cannot send message: Socket is in {self._state.name} state", self._state
                )
            if not isinstance(payload, (str, bytes, bytearray, memoryview)):
                raise TypeError(f"payload must be str or bytes-like, got {type(payload).__name__}")

            try:
                self._transport.send(self._handle, payload)
            except TransportError as e:
                self._handle_error(SocketEvent(EventKind.ERROR, origin=self._url, error=e))
                raise

            self._sent.record(SentMessage(payload))
            self._trace("Sent message")

    def close(self) -> None:
        """
        Close the connection on purpose.

        Cancels any pending reconnect, clears both histories and the
        attempt counter. Safe to call more than once.
        """
        with self._lock:
            self._intentional_close = True
            self._cancel_reconnect()

            handle = self._handle
            if handle is not None:
                if not self._close_reported:
                    self._state = ConnectionState.CLOSING
                    self._trace("Closing")
                self._release(handle)
                if not self._close_reported:
                    self._handle_close(SocketEvent(
                        EventKind.CLOSE, origin=self._url, code=NORMAL_CLOSURE, reason="Client closed"
                    ))
                self._handle = None

            self._state = ConnectionState.CLOSED
            self._sent.clear()
            self._received.clear()
            self._listeners.clear()
            self._reconnect_attempts = 0

    def _release(self, handle: TransportHandle) -> None:
        try:
            self._transport.close(handle, NORMAL_CLOSURE, "")
        except TransportError as e:
            logger.warning(f"Error while closing connection to {handle.address}: {e}")

    # Event handlers

    def _handle_open(self, event: SocketEvent) -> None:
        self._state = ConnectionState.OPEN
        self._reconnect_attempts = 0
        self._cancel_reconnect()
        self._trace("Connected")
        self._invoke(self._options.on_open, event)

    def _handle_message(self, event: SocketEvent) -> None:
        self._received.record(ReceivedMessage(event))
        self._trace("Received message")
        self._invoke(self._options.on_message, event)

    def _handle_error(self, event: SocketEvent) -> None:
        logger.warning(f"Socket error on {self._url}: {event.error}")
        self._invoke(self._options.on_error, event)

    def _handle_close(self, event: SocketEvent) -> None:
        self._state = ConnectionState.CLOSED
        self._close_reported = True
        self._trace(f"Closed (code={event.code}, reason={event.reason!r})")
        self._invoke(self._options.on_close, event)
        if not self._intentional_close:
            self._schedule_reconnect()

    def _invoke(self, callback: Optional[Callable[[SocketEvent], Any]], event: SocketEvent) -> None:
        if callback is None:
            return
        try:
            callback(event)
        except Exception:
            logger.exception(f"on_{event.kind.value} callback failed")

    # Reconnection

    def _schedule_reconnect(self) -> None:
        policy = self._options.reconnect
        if not policy.enabled:
            return
        if self._reconnect_attempts >= policy.max_attempts:
            self._trace(f"Giving up after {self._reconnect_attempts} reconnect attempts")
            return

        self._cancel_reconnect()
        self._reconnect_attempts += 1
        generation = self._timer_generation
        self._trace(
            f"Reconnecting in {policy.delay}s "
            f"(attempt {self._reconnect_attempts}/{policy.max_attempts})"
        )
        self._reconnect_timer = self._scheduler(policy.delay, lambda: self._fire_reconnect(generation))

    def _fire_reconnect(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation or self._intentional_close:
                return
            self._reconnect_timer = None
            self.open()

    def _cancel_reconnect(self) -> None:
        # Bumping the generation also invalidates a timer that is already running.
        self._timer_generation += 1
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    # Event fan-out

    def add_listener(self, kind: Union[str, EventKind], callback: Callable[[SocketEvent], Any]) -> None:
        """
        Register ``callback`` for raw events of ``kind`` on the current connection.

        Listeners run after the client's own handlers, in registration order.

        Raises:
            NotConnectedError: If there is no connection
            ValueError: If ``kind`` is not open, close, error or message
        """
        with self._lock:
            if self._handle is None:
                raise NotConnectedError("Cannot add event listener: Socket not connected")
            kind = EventKind.parse(kind)
            self._transport.on(self._handle, kind, callback)
            self._listeners.add(kind, callback)

    def remove_listener(self, kind: Union[str, EventKind], callback: Callable[[SocketEvent], Any]) -> None:
        """
        Remove a listener added with ``add_listener``; unknown pairs are ignored.

        Raises:
            NotConnectedError: If there is no connection
        """
        with self._lock:
            if self._handle is None:
                raise NotConnectedError("Cannot remove event listener: Socket not connected")
            kind = EventKind.parse(kind)
            if self._listeners.remove(kind, callback):
                self._transport.off(self._handle, kind, callback)

    # History

    def clear_sent_messages(self) -> None:
        with self._lock:
            self._sent.clear()

    def clear_received_messages(self) -> None:
        with self._lock:
            self._received.clear()

    def _trace(self, message: str) -> None:
        if self._options.debug:
            logger.info(f"[{self._url}] {message}")

    def __repr__(self) -> str:
        return f"ManagedSocket(url={self._url!r}, state={self._state.name})"
