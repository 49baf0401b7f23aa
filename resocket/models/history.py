"""History models for recording sent and received traffic."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, Iterator, List, TypeVar, Union

from resocket.models.event import SocketEvent

T = TypeVar('T')

Payload = Union[str, bytes, bytearray, memoryview]


@dataclass
class SentMessage:
    """A payload handed to the transport."""

    message: Payload
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to dictionary representation."""
        return {
            'message': self.message if isinstance(self.message, str) else repr(self.message),
            'timestamp': self.timestamp.isoformat()
        }


@dataclass
class ReceivedMessage:
    """A raw message event as delivered by the transport."""

    message: SocketEvent
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to dictionary representation."""
        return {
            'message': self.message.to_dict(),
            'timestamp': self.timestamp.isoformat()
        }


class HistoryBuffer(Generic[T]):
    """
    Bounded newest-first sequence.

    New entries go to index 0. When ``capacity`` is positive and an insert
    pushes the length over it, entries are dropped from the tail, so the
    buffer always holds the ``capacity`` most recent entries. A capacity of
    0 means unbounded.
    """

    def __init__(self, capacity: int = 0):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self.capacity = capacity
        self._entries: List[T] = []

    def record(self, entry: T) -> None:
        """Insert an entry at the front and evict from the tail if needed."""
        self._entries.insert(0, entry)
        if self.capacity > 0 and len(self._entries) > self.capacity:
            del self._entries[self.capacity:]

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> List[T]:
        """Return a copy of the entries, newest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())

    def __getitem__(self, index):
        return self._entries[index]

    def __repr__(self) -> str:
        return f"HistoryBuffer(capacity={self.capacity!r}, size={len(self._entries)!r})"
