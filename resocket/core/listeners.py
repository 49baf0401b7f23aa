"""Bookkeeping of externally registered event listeners."""

from typing import Callable, Dict, List, Union

from resocket.models.event import EventKind


class ListenerRegistry:
    """
    Ordered record of listeners per event kind.

    Only tracks what was registered so it can be inspected; dispatch is
    done by the transport.
    """

    def __init__(self):
        self._listeners: Dict[EventKind, List[Callable]] = {}

    def add(self, kind: Union[str, EventKind], callback: Callable) -> None:
        kind = EventKind.parse(kind)
        self._listeners.setdefault(kind, []).append(callback)

    def remove(self, kind: Union[str, EventKind], callback: Callable) -> bool:
        """
        Remove the first registration of ``callback`` for ``kind``.

        Returns:
            True if a registration was removed, False if there was none
        """
        kind = EventKind.parse(kind)
        callbacks = self._listeners.get(kind)
        if not callbacks:
            return False
        for index, registered in enumerate(callbacks):
            if registered is callback:
                del callbacks[index]
                if not callbacks:
                    del self._listeners[kind]
                return True
        return False

    def get(self, kind: Union[str, EventKind]) -> List[Callable]:
        return list(self._listeners.get(EventKind.parse(kind), []))

    def clear(self) -> None:
        self._listeners.clear()

    def snapshot(self) -> Dict[str, List[Callable]]:
        """Return ``{kind: [callbacks]}`` in registration order."""
        return {kind.value: list(callbacks) for kind, callbacks in self._listeners.items()}

    def __len__(self) -> int:
        return sum(len(callbacks) for callbacks in self._listeners.values())
