"""Music Player Daemon client transport and MCP server."""

__version__ = "0.1.0"

# Errors
from .errors import (
    ConnectionClosedError,
    NotConnectedError,
    ConnectionTimeoutError,
)

# Raw transport
from .connection import Connection

# Response framing
from .protocol import (
    SUCCESS_TERMINATOR,
    ERROR_TERMINATOR,
    ReadStrategy,
    ResponseStatus,
    ResponseAccumulator,
    find_terminator,
    read_immediate,
    read_greeting,
)

# Command client
from .client import TCPConnection, TCPClient

# Settings
from .config import Settings, configure_logging
