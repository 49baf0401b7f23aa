"""Custom exceptions for the socket client."""


class SocketError(Exception):
    """Base exception for socket client errors."""
    pass


class ConfigurationError(SocketError, ValueError):
    """Exception raised for an invalid address or invalid client options."""
    pass


class NotConnectedError(SocketError):
    """Exception raised when an operation needs a socket and there is none."""
    pass


class InvalidStateError(SocketError):
    """Exception raised when the socket is not in a state that allows the operation."""

    def __init__(self, message: str, state=None):
        super().__init__(message)
        self.state = state


class TransportError(SocketError):
    """Exception raised by a transport; forwarded to the error callback."""
    pass


class SocketNotFoundError(SocketError, LookupError):
    """Exception raised when no socket has been registered for the current context."""
    pass
