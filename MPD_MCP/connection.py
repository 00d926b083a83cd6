"""Raw TCP byte transport to an MPD server.

The connection knows nothing about the protocol: it reads, writes and
closes. Framing lives in :mod:`MPD_MCP.protocol`.

Usage::

    conn = await Connection.open("localhost", 6600)
    await conn.write(b"status\\n")
    chunk = await conn.read(512)
    await conn.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .errors import ConnectionTimeoutError, NotConnectedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Connection:
    """One open TCP stream, owned exclusively by whoever opened it.

    A connection starts open and is closed exactly once. After
    :meth:`close`, ``read`` and ``write`` raise :class:`NotConnectedError`
    without touching the socket; further ``close`` calls do nothing.

    Not safe for concurrent use: two tasks reading from the same
    connection will interleave their bytes.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: Optional[float] = None,
    ) -> None:
        self._reader: asyncio.StreamReader | None = reader
        self._writer: asyncio.StreamWriter | None = writer
        self._timeout = timeout
        self._peer = writer.get_extra_info("peername")

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        timeout: Optional[float] = None,
    ) -> "Connection":
        """Open a TCP connection to ``host:port``.

        Args:
            host: Server host name or address.
            port: Server TCP port.
            timeout: Optional deadline in seconds applied to connecting and
                to every later read and write. ``None`` means wait forever.

        Returns:
            An open Connection.

        Raises:
            ConnectionError: If the host cannot be resolved or reached.
            ConnectionTimeoutError: If connecting exceeds ``timeout``.
        """
        try:
            if timeout is None:
                reader, writer = await asyncio.open_connection(host, port)
            else:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(host, port), timeout
                )
        except asyncio.TimeoutError as e:
            raise ConnectionTimeoutError("connect", timeout) from e
        except OSError as e:
            raise ConnectionError(f"Could not connect to {host}:{port}: {e}") from e

        logger.info("Connected to %s:%s", host, port)
        return cls(reader, writer, timeout=timeout)

    @property
    def closed(self) -> bool:
        return self._writer is None

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    async def read(self, size: int) -> bytes:
        """Read at most ``size`` bytes.

        Suspends until at least one byte arrives or the peer closes the
        stream.

        Returns:
            The bytes delivered, or ``b""`` once the peer has closed the
            stream and nothing is left to read.

        Raises:
            NotConnectedError: If the connection has been closed.
            ConnectionError: On an I/O failure.
            ConnectionTimeoutError: If the connection timeout expires.
        """
        if self._reader is None:
            raise NotConnectedError("read")
        if size < 1:
            raise ValueError(f"read size must be positive, got {size}")

        try:
            data = await self._bounded("read", self._reader.read(size))
        except ConnectionError:
            raise
        except OSError as e:
            raise ConnectionError(f"Read failed: {e}") from e

        logger.debug("Read %d bytes from %s", len(data), self._peer)
        return data

    async def write(self, data: bytes) -> int:
        """Write ``data`` and wait until the OS has accepted it.

        Returns:
            Number of bytes written.

        Raises:
            NotConnectedError: If the connection has been closed.
            ConnectionError: On a broken pipe or similar failure.
            ConnectionTimeoutError: If the connection timeout expires.
        """
        if self._writer is None:
            raise NotConnectedError("write")

        try:
            self._writer.write(data)
            await self._bounded("write", self._writer.drain())
        except ConnectionError:
            raise
        except OSError as e:
            raise ConnectionError(f"Write failed: {e}") from e

        logger.debug("Wrote %d bytes to %s", len(data), self._peer)
        return len(data)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._writer is None:
            return

        writer = self._writer
        self._reader = None
        self._writer = None
        try:
            writer.close()
            await writer.wait_closed()
        except Exception as e:
            logger.warning("Error closing connection to %s: %s", self._peer, e)
        finally:
            logger.info("Disconnected from %s", self._peer)

    async def _bounded(self, operation: str, aw: Awaitable[T]) -> T:
        if self._timeout is None:
            return await aw
        try:
            return await asyncio.wait_for(aw, self._timeout)
        except asyncio.TimeoutError as e:
            raise ConnectionTimeoutError(operation, self._timeout) from e
