"""Option models for configuring a managed socket."""

from dataclasses import dataclass, field, fields
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit

from resocket.core.exceptions import ConfigurationError
from resocket.models.event import SocketEvent

EventCallback = Callable[[SocketEvent], Any]

VALID_SCHEMES = ("ws", "wss")
DEFAULT_MAX_MESSAGE_HISTORY = 50


def validate_url(url: Any) -> str:
    """
    Check that ``url`` is a WebSocket address.

    Args:
        url: Address to check

    Returns:
        The address, unchanged

    Raises:
        ConfigurationError: If the address does not use the ws:// or wss:// scheme
    """
    if not isinstance(url, str) or not url:
        raise ConfigurationError(
            f'Invalid WebSocket URL: "{url}". URL must start with ws:// or wss://'
        )
    try:
        parts = urlsplit(url)
        # Reading the port raises ValueError for non-numeric or out-of-range ports
        parts.port
    except ValueError as e:
        raise ConfigurationError(f'Invalid WebSocket URL: "{url}". {e}') from e
    if parts.scheme.lower() not in VALID_SCHEMES or not parts.hostname:
        raise ConfigurationError(
            f'Invalid WebSocket URL: "{url}". URL must start with ws:// or wss://'
        )
    return url


@dataclass
class ReconnectPolicy:
    """Rules for re-opening a connection that closed unexpectedly."""

    enabled: bool = False
    delay: float = 1.0  # seconds
    max_attempts: int = 5

    def validate(self) -> None:
        if not isinstance(self.delay, (int, float)) or isinstance(self.delay, bool) or self.delay < 0:
            raise ConfigurationError(f"reconnect delay must be a number >= 0, got {self.delay!r}")
        if not isinstance(self.max_attempts, int) or isinstance(self.max_attempts, bool) or self.max_attempts < 0:
            raise ConfigurationError(
                f"reconnect max_attempts must be an integer >= 0, got {self.max_attempts!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'delay': self.delay,
            'max_attempts': self.max_attempts
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ReconnectPolicy':
        """Create a policy from a mapping of its field names."""
        data = dict(data)
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown reconnect options: {', '.join(sorted(unknown))}")
        policy = cls(**data)
        policy.validate()
        return policy


@dataclass
class SocketOptions:
    """Construction-time configuration of a ``ManagedSocket``."""

    url: str
    on_message: Optional[EventCallback] = None
    on_open: Optional[EventCallback] = None
    on_close: Optional[EventCallback] = None
    on_error: Optional[EventCallback] = None
    debug: bool = False
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)
    max_message_history: int = DEFAULT_MAX_MESSAGE_HISTORY

    def validate(self) -> None:
        """
        Validate all options.

        Raises:
            ConfigurationError: If any option is out of range
        """
        validate_url(self.url)
        if not isinstance(self.reconnect, ReconnectPolicy):
            raise ConfigurationError(
                f"reconnect must be a ReconnectPolicy, got {type(self.reconnect).__name__}"
            )
        self.reconnect.validate()
        if (not isinstance(self.max_message_history, int)
                or isinstance(self.max_message_history, bool)
                or self.max_message_history < 0):
            raise ConfigurationError(
                f"max_message_history must be an integer >= 0, got {self.max_message_history!r}"
            )
        for name in ('on_message', 'on_open', 'on_close', 'on_error'):
            callback = getattr(self, name)
            if callback is not None and not callable(callback):
                raise ConfigurationError(f"{name} must be callable")

    def to_dict(self) -> Dict[str, Any]:
        """Export the plain settings (callbacks are left out)."""
        return {
            'url': self.url,
            'debug': self.debug,
            'reconnect': self.reconnect.to_dict(),
            'max_message_history': self.max_message_history
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'SocketOptions':
        """
        Create options from a mapping.

        A nested ``reconnect`` mapping is converted into a ``ReconnectPolicy``.

        Raises:
            ConfigurationError: If the mapping has unknown keys or invalid values
        """
        data = dict(data)
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown socket options: {', '.join(sorted(unknown))}")
        if 'url' not in data:
            raise ConfigurationError("url is required")
        reconnect = data.get('reconnect')
        if isinstance(reconnect, Mapping):
            data['reconnect'] = ReconnectPolicy.from_dict(reconnect)
        elif reconnect is None:
            data.pop('reconnect', None)
        options = cls(**data)
        options.validate()
        return options
