"""Event model for raw socket events delivered by a transport."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class EventKind(str, Enum):
    """Kinds of events a transport can dispatch."""
    OPEN = "open"
    CLOSE = "close"
    ERROR = "error"
    MESSAGE = "message"

    @classmethod
    def parse(cls, kind: Union[str, "EventKind"]) -> "EventKind":
        """Return the matching kind, raising ``ValueError`` for unknown names."""
        try:
            return cls(kind)
        except ValueError:
            valid = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown event kind: {kind!r} (expected one of {valid})") from None


@dataclass
class SocketEvent:
    """A single event as produced by the transport."""

    kind: EventKind
    data: Any = None
    origin: Optional[str] = None
    code: Optional[int] = None
    reason: str = ""
    error: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def type(self) -> str:
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary representation."""
        result: Dict[str, Any] = {
            'type': self.kind.value,
            'timestamp': self.timestamp.isoformat()
        }
        if self.origin is not None:
            result['origin'] = self.origin
        if self.kind is EventKind.MESSAGE:
            result['data'] = self.data if isinstance(self.data, str) else repr(self.data)
        if self.kind is EventKind.CLOSE:
            result.update({'code': self.code, 'reason': self.reason})
        if self.error is not None:
            result['error'] = str(self.error)
        return result

    def __repr__(self) -> str:
        return f"SocketEvent(kind={self.kind.value!r}, data={self.data!r}, origin={self.origin!r})"
