"""Error types raised by the MPD transport.

All of them subclass the built-in ``ConnectionError`` so callers can catch
the whole family with a single ``except ConnectionError`` clause. Plain
network failures are raised as the built-in itself.
"""

from __future__ import annotations


class ConnectionClosedError(ConnectionError):
    """Raised when the server ends the stream before a response terminator."""

    def __init__(self, received: int = 0) -> None:
        self.received = received
        super().__init__(
            f"Connection closed by server after {received} bytes "
            "without a response terminator"
        )


class NotConnectedError(ConnectionError):
    """Raised when an operation is attempted on a closed connection."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation}: no open connection")


class ConnectionTimeoutError(ConnectionError):
    """Raised when a read, write or connect exceeds the connection timeout."""

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout} seconds")
