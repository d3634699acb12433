"""
Liveview Errors
===============

Exception hierarchy for the liveview client.

Taxonomy:
    - ControlCommandError: a control call could not be delivered
    - StreamConnectError: the streaming endpoint could not be opened
    - StreamDecodeError: the current connection can no longer be parsed
        - FramingError: sentinel bytes did not match
        - StreamReadError: short read, end of stream or I/O failure
        - UnknownPayloadTypeError: payload body length is unknown
    - ClientStateError: operation not valid in the client's current state
    - ReconnectExhaustedError: the reconnect policy gave up

Every StreamDecodeError is fatal for the connection it was raised on.
Callers are expected to close the session and connect again.
"""

from typing import Optional


class LiveviewError(Exception):
    """Base class for all liveview client errors."""
    pass


class ControlCommandError(LiveviewError):
    """Raised when a control command fails."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(f"Control command '{method}' failed: {message}")
        self.method = method


class StreamConnectError(LiveviewError):
    """Raised when the liveview stream cannot be opened."""
    pass


class StreamDecodeError(LiveviewError):
    """Base class for errors that desynchronize the byte stream."""
    pass


class FramingError(StreamDecodeError):
    """Raised when a start byte or start code does not match."""
    pass


class StreamReadError(StreamDecodeError):
    """Raised when fewer bytes than requested could be read."""

    def __init__(self, message: str, expected: int = 0, received: int = 0) -> None:
        super().__init__(message)
        self.expected = expected
        self.received = received


class UnknownPayloadTypeError(StreamDecodeError):
    """Raised for payload types with no known body layout."""

    def __init__(self, payload_type: int) -> None:
        super().__init__(f"Unknown payload type: 0x{payload_type:02x}")
        self.payload_type = payload_type


class ClientStateError(LiveviewError):
    """Raised when an operation is invalid for the client state."""
    pass


class ReconnectExhaustedError(LiveviewError):
    """Raised when the maximum number of reconnect attempts is exceeded."""

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None) -> None:
        message = f"Giving up after {attempts} reconnect attempts"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
