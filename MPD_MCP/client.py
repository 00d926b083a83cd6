"""Command-level client for an MPD server.

``TCPClient`` writes one command at a time and reads back its reply, either
framed (wait for ``OK``/``ACK``) or immediate (a single short read).

Usage::

    async with await TCPClient.connect("localhost", 6600) as client:
        status = await client.send_command("status\\n")
        art = await client.send_binary_command('albumart "a.flac" 0\\n')

Only one command may be in flight per client; callers sharing a client
between tasks must serialize access themselves.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .connection import Connection
from .protocol import (
    IMMEDIATE_READ_SIZE,
    IMMEDIATE_READ_WAIT,
    RESPONSE_CHUNK_SIZE,
    ReadStrategy,
    ResponseAccumulator,
    read_greeting,
    read_immediate,
)

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


class TCPConnection(Protocol):
    """Caller-facing surface of an MPD command client."""

    async def send_command(self, command: str, immediate: bool = False) -> str: ...

    async def send_binary_command(self, command: str, immediate: bool = False) -> bytes: ...

    async def close(self) -> None: ...


class TCPClient:
    """Sends MPD commands over a single owned :class:`Connection`.

    Args:
        connection: Open connection; the client takes ownership of it.
        chunk_size: Read size used while accumulating a framed reply.
        immediate_size: Read size used in immediate mode.
        immediate_timeout: Seconds an immediate read waits for data before
            returning ``b""``. ``None`` waits for the first delivery.
    """

    def __init__(
        self,
        connection: Connection,
        chunk_size: int = RESPONSE_CHUNK_SIZE,
        immediate_size: int = IMMEDIATE_READ_SIZE,
        immediate_timeout: Optional[float] = IMMEDIATE_READ_WAIT,
    ) -> None:
        self._connection = connection
        self._accumulator = ResponseAccumulator(connection, chunk_size)
        self._immediate_size = immediate_size
        self._immediate_timeout = immediate_timeout

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> "TCPClient":
        """Open a connection to ``host:port`` and wrap it in a client.

        ``timeout`` bounds connecting and every later read and write; extra
        keyword arguments are passed to the constructor.

        Raises:
            ConnectionError: If the server cannot be reached.
            ConnectionTimeoutError: If connecting exceeds ``timeout``.
        """
        connection = await Connection.open(host, port, timeout=timeout)
        return cls(connection, **kwargs)

    async def read_greeting(self) -> str:
        """Consume the server greeting and return the announced protocol version.

        Call once, right after connecting and before the first command.
        """
        version = await read_greeting(self._connection)
        logger.info("Server speaks MPD protocol %s", version)
        return version

    @property
    def closed(self) -> bool:
        return self._connection.closed

    async def send_binary_command(self, command: str, immediate: bool = False) -> bytes:
        """Send ``command`` and return the raw reply bytes.

        The command is sent as UTF-8 exactly as given; no line terminator is
        appended.

        Args:
            command: Command text, including its trailing newline.
            immediate: Do a single short read instead of waiting for a
                terminator. The result may be empty or truncated.

        Raises:
            NotConnectedError: If the client has been closed.
            ConnectionClosedError: If the server closes mid-reply.
            ConnectionError: On I/O failure.
        """
        strategy = ReadStrategy.IMMEDIATE if immediate else ReadStrategy.ACCUMULATE
        await self.write_command(command)
        return await self._read_reply(strategy)

    async def write_command(self, command: str) -> int:
        """Send ``command`` without reading a reply.

        For ``noidle``, whose reply is read by the ``idle`` call it cancels.
        """
        return await self._connection.write(command.encode(ENCODING))

    async def send_command(self, command: str, immediate: bool = False) -> str:
        """Send ``command`` and return the reply decoded as UTF-8 text.

        Same arguments and errors as :meth:`send_binary_command`.
        """
        data = await self.send_binary_command(command, immediate)
        return data.decode(ENCODING, errors="replace")

    async def close(self) -> None:
        """Close the underlying connection. Safe to call more than once."""
        await self._connection.close()

    async def __aenter__(self) -> "TCPClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _read_reply(self, strategy: ReadStrategy) -> bytes:
        if strategy is ReadStrategy.IMMEDIATE:
            data = await read_immediate(
                self._connection, self._immediate_size, self._immediate_timeout
            )
            logger.debug("Immediate read returned %d bytes", len(data))
            return data

        data = await self._accumulator.accumulate()
        status = self._accumulator.last_status
        logger.debug("Response received, status: %s", status.value if status else "unknown")
        return data
