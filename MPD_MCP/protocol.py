"""Response framing for the MPD text protocol.

MPD answers every command with zero or more ``key: value`` lines followed by
either ``OK\\n`` (success) or a single ``ACK [error@line] {command} message``
line (failure). Replies arrive over TCP in arbitrary chunks, so the reader
accumulates chunks until one of the two terminators shows up:

- ``OK\\n`` must be the last bytes received so far.
- ``ACK `` may appear anywhere in the freshly received data.

Each chunk is checked together with the last few bytes already buffered, so
a terminator split across two TCP segments (``"O"`` then ``"K\\n"``) is still
detected.

There is no limit on response size and, unless the connection carries a
timeout, no deadline: a server that never terminates a reply and never closes
the socket blocks the reader forever.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from .connection import Connection
from .errors import ConnectionClosedError

logger = logging.getLogger(__name__)

SUCCESS_TERMINATOR = b"OK\n"
ERROR_TERMINATOR = b"ACK "
GREETING_PREFIX = b"OK MPD "

# Bytes of already-buffered data rescanned with each chunk
_TERMINATOR_OVERLAP = max(len(SUCCESS_TERMINATOR), len(ERROR_TERMINATOR)) - 1

RESPONSE_CHUNK_SIZE = 512
IMMEDIATE_READ_SIZE = 128
IMMEDIATE_READ_WAIT = 0.1


class ReadStrategy(Enum):
    """How a command's reply is read back."""

    ACCUMULATE = "accumulate"
    IMMEDIATE = "immediate"


class ResponseStatus(Enum):
    """Which terminator completed a response."""

    OK = "ok"
    ACK = "ack"


def find_terminator(window: bytes) -> Optional[ResponseStatus]:
    """Return the terminator ``window`` satisfies, or None.

    The success terminator is a suffix match and is checked first; the error
    terminator matches anywhere.
    """
    if window.endswith(SUCCESS_TERMINATOR):
        return ResponseStatus.OK
    if ERROR_TERMINATOR in window:
        return ResponseStatus.ACK
    return None


class ResponseAccumulator:
    """Reads chunks from a connection until a complete reply has arrived.

    Args:
        connection: Open connection to read from.
        chunk_size: Maximum bytes requested per read.
    """

    def __init__(self, connection: Connection, chunk_size: int = RESPONSE_CHUNK_SIZE) -> None:
        self._connection = connection
        self._chunk_size = chunk_size
        self.last_status: Optional[ResponseStatus] = None

    async def accumulate(self) -> bytes:
        """Run one accumulation pass and return every byte received.

        Bytes after an ``ACK `` match in the final chunk are kept.

        Returns:
            The concatenation of all chunks, terminator included.

        Raises:
            ConnectionClosedError: If the server closes the stream before a
                terminator is seen. Partial data is discarded.
            ConnectionError: On I/O failure.
            NotConnectedError: If the connection is closed.
        """
        self.last_status = None
        response = bytearray()
        chunks = 0

        while True:
            chunk = await self._connection.read(self._chunk_size)
            if not chunk:
                raise ConnectionClosedError(len(response))

            window_start = max(len(response) - _TERMINATOR_OVERLAP, 0)
            response += chunk
            chunks += 1

            status = find_terminator(response[window_start:])
            if status is not None:
                self.last_status = status
                logger.debug(
                    "Response complete (%s) after %d chunk(s), %d bytes",
                    status.value, chunks, len(response),
                )
                return bytes(response)


async def read_immediate(
    connection: Connection,
    size: int = IMMEDIATE_READ_SIZE,
    wait: Optional[float] = IMMEDIATE_READ_WAIT,
) -> bytes:
    """Issue a single bounded read with no framing.

    Used for commands such as ``noidle`` whose reply may be empty. Whatever
    arrives within ``wait`` seconds is returned as is; a reply that is late
    or longer than ``size`` is truncated or left on the socket.

    Args:
        connection: Open connection to read from.
        size: Maximum number of bytes to read.
        wait: Seconds to wait for data before giving up with ``b""``.
            ``None`` waits for the first delivery.

    Returns:
        The bytes read, possibly empty.
    """
    if wait is None:
        return await connection.read(size)
    try:
        return await asyncio.wait_for(connection.read(size), wait)
    except asyncio.TimeoutError:
        logger.debug("Immediate read got no data within %ss", wait)
        return b""


async def read_greeting(connection: Connection, chunk_size: int = RESPONSE_CHUNK_SIZE) -> str:
    """Read the ``OK MPD <version>`` line a server sends right after connecting.

    The greeting ends in a bare newline rather than ``OK\\n``, so it cannot
    go through :class:`ResponseAccumulator`.

    Returns:
        The protocol version announced by the server.

    Raises:
        ConnectionClosedError: If the stream ends before a full line.
        ConnectionError: If the line is not an MPD greeting.
    """
    line = bytearray()
    while b"\n" not in line:
        chunk = await connection.read(chunk_size)
        if not chunk:
            raise ConnectionClosedError(len(line))
        line += chunk

    greeting, _, rest = bytes(line).partition(b"\n")
    if rest:
        logger.warning("Discarding %d unexpected bytes after greeting", len(rest))
    if not greeting.startswith(GREETING_PREFIX):
        raise ConnectionError(f"Unexpected greeting from server: {greeting!r}")
    return greeting[len(GREETING_PREFIX):].decode("ascii", errors="replace").strip()
