"""In-memory transport and manual clock for exercising a ManagedSocket without a network."""

from typing import Any, Callable, List, Optional, Tuple

from resocket.core.exceptions import TransportError
from resocket.core.transport import Transport, TransportHandle
from resocket.models.event import EventKind, SocketEvent


class MemoryHandle(TransportHandle):
    """Connection that records what was sent over it."""

    def __init__(self, address: str):
        super().__init__(address)
        self.sent: List[Any] = []
        self.close_code: Optional[int] = None
        self.close_reason = ""


class MemoryTransport(Transport):
    """
    Transport whose events are driven by the test.

    Nothing happens on its own: call ``simulate_open``, ``simulate_message``,
    ``simulate_error`` or ``simulate_close`` to produce events. The
    ``simulate_*`` helpers act on the most recent connection unless a
    handle is given.

    Args:
        close_synchronously: Dispatch the close event from inside ``close()``
    """

    def __init__(self, close_synchronously: bool = True):
        self.close_synchronously = close_synchronously
        self.handles: List[MemoryHandle] = []
        self.connect_error: Optional[TransportError] = None

    @property
    def latest(self) -> MemoryHandle:
        if not self.handles:
            raise LookupError("No connection has been created")
        return self.handles[-1]

    @property
    def connect_count(self) -> int:
        return len(self.handles)

    def connect(self, address: str) -> MemoryHandle:
        if self.connect_error is not None:
            raise self.connect_error
        handle = MemoryHandle(address)
        self.handles.append(handle)
        return handle

    def send(self, handle: MemoryHandle, payload) -> None:
        if handle.closed:
            raise TransportError(f"Cannot send on {handle.address}: connection is closed")
        handle.sent.append(payload)

    def close(self, handle: MemoryHandle, code: int = 1000, reason: str = "") -> None:
        if handle.closed:
            return
        handle.closed = True
        handle.close_code = code
        handle.close_reason = reason
        if self.close_synchronously:
            handle.dispatch(SocketEvent(EventKind.CLOSE, origin=handle.address, code=code, reason=reason))

    def simulate_open(self, handle: Optional[MemoryHandle] = None) -> None:
        handle = handle or self.latest
        handle.dispatch(SocketEvent(EventKind.OPEN, origin=handle.address))

    def simulate_message(self, data: Any, handle: Optional[MemoryHandle] = None) -> SocketEvent:
        handle = handle or self.latest
        event = SocketEvent(EventKind.MESSAGE, data=data, origin=handle.address)
        handle.dispatch(event)
        return event

    def simulate_error(self, error: Optional[BaseException] = None, handle: Optional[MemoryHandle] = None) -> None:
        handle = handle or self.latest
        error = error or TransportError(f"Connection to {handle.address} failed")
        handle.dispatch(SocketEvent(EventKind.ERROR, origin=handle.address, error=error))

    def simulate_close(self, code: int = 1006, reason: str = "", handle: Optional[MemoryHandle] = None) -> None:
        """Close the connection from the remote side."""
        handle = handle or self.latest
        handle.closed = True
        handle.close_code = code
        handle.close_reason = reason
        handle.dispatch(SocketEvent(EventKind.CLOSE, origin=handle.address, code=code, reason=reason))


class ScheduledCall:
    """A deferred call registered with a ``ManualScheduler``."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when ``advance`` is called."""

    def __init__(self):
        self.now = 0.0
        self.calls: List[ScheduledCall] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        call = ScheduledCall(self.now + delay, callback)
        self.calls.append(call)
        return call

    @property
    def pending(self) -> List[ScheduledCall]:
        return [call for call in self.calls if not call.cancelled]

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward and run every call that came due, in order.

        Returns:
            The number of calls that ran
        """
        target = self.now + seconds
        ran = 0
        while True:
            due: List[Tuple[float, int, ScheduledCall]] = [
                (call.when, index, call)
                for index, call in enumerate(self.calls)
                if not call.cancelled and call.when <= target
            ]
            if not due:
                break
            when, _, call = min(due, key=lambda item: (item[0], item[1]))
            self.calls.remove(call)
            self.now = when
            call.callback()
            ran += 1
        self.now = target
        return ran
