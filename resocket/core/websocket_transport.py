"""WebSocket transport built on the ``websockets`` library."""

import asyncio
import logging
from typing import Any, Optional, Set

import websockets
from websockets.exceptions import WebSocketException

from resocket.core.exceptions import TransportError
from resocket.core.transport import Transport, TransportHandle
from resocket.models.event import EventKind, SocketEvent

logger = logging.getLogger(__name__)

ABNORMAL_CLOSURE = 1006


class WebSocketHandle(TransportHandle):
    """A WebSocket connection driven by a task on the event loop."""

    def __init__(self, address: str, loop: asyncio.AbstractEventLoop):
        super().__init__(address)
        self.loop = loop
        self.connection: Optional[Any] = None
        self.task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Future] = set()
        self._close_dispatched = False

    def dispatch_close(self, code: int, reason: str = "") -> None:
        """Dispatch the close event; later calls are ignored."""
        if self._close_dispatched:
            return
        self._close_dispatched = True
        self.dispatch(SocketEvent(EventKind.CLOSE, origin=self.address, code=code, reason=reason))

    def submit(self, coro) -> None:
        """Run ``coro`` on the handle's loop, from any thread."""
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self.loop:
            future = self.loop.create_task(coro)
        else:
            future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        self._pending.add(future)
        future.add_done_callback(self._pending.discard)


class WebSocketTransport(Transport):
    """
    Transport that talks to a WebSocket server.

    Connections run as tasks on the asyncio loop that was running when
    ``connect`` was called. Extra keyword arguments are passed through to
    ``websockets.connect``.
    """

    def __init__(self, **connect_kwargs):
        self.connect_kwargs = connect_kwargs

    def connect(self, address: str) -> WebSocketHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise TransportError("WebSocketTransport needs a running asyncio event loop") from e

        handle = WebSocketHandle(address, loop)
        handle.task = loop.create_task(self._run(handle))
        return handle

    async def _run(self, handle: WebSocketHandle) -> None:
        """Connect, pump incoming frames and report the close."""
        connection = None
        try:
            async with websockets.connect(handle.address, **self.connect_kwargs) as connection:
                handle.connection = connection
                handle.dispatch(SocketEvent(EventKind.OPEN, origin=handle.address))
                async for data in connection:
                    handle.dispatch(SocketEvent(EventKind.MESSAGE, data=data, origin=handle.address))
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._dispatch_error(handle, e)
        except Exception as e:
            logger.warning(f"Unexpected error on {handle.address}: {e!r}")
            self._dispatch_error(handle, e)
        finally:
            handle.connection = None
            code = getattr(connection, 'close_code', None)
            if code is None:
                handle.dispatch_close(ABNORMAL_CLOSURE)
            else:
                handle.dispatch_close(code, getattr(connection, 'close_reason', None) or "")

    def send(self, handle: WebSocketHandle, payload) -> None:
        if handle.closed or handle.connection is None or handle.loop.is_closed():
            raise TransportError(f"Cannot send on {handle.address}: connection is not open")
        if isinstance(payload, (bytearray, memoryview)):
            payload = bytes(payload)
        handle.submit(self._send(handle, payload))

    async def _send(self, handle: WebSocketHandle, payload) -> None:
        connection = handle.connection
        if connection is None:
            self._dispatch_error(handle, TransportError("connection closed before the message was sent"))
            return
        try:
            await connection.send(payload)
        except (OSError, WebSocketException) as e:
            self._dispatch_error(handle, e)

    def close(self, handle: WebSocketHandle, code: int = 1000, reason: str = "") -> None:
        if handle.closed:
            return
        handle.closed = True
        if handle.loop.is_closed():
            # The loop took the connection task down with it; nothing left to close.
            handle.connection = None
            return
        connection = handle.connection
        if connection is not None:
            handle.submit(connection.close(code, reason))
        elif handle.task is not None:
            handle.loop.call_soon_threadsafe(handle.task.cancel)

    @staticmethod
    def _dispatch_error(handle: WebSocketHandle, error: BaseException) -> None:
        if isinstance(error, TransportError):
            wrapped = error
        else:
            wrapped = TransportError(f"WebSocket error on {handle.address}: {error}")
            wrapped.__cause__ = error
        logger.debug(f"Transport error on {handle.address}: {error!r}")
        handle.dispatch(SocketEvent(EventKind.ERROR, origin=handle.address, error=wrapped))
