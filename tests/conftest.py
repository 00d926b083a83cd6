"""Shared fixtures for MPD_MCP tests.

Two stand-ins for a real MPD server:
- FakeConnection: a scripted Connection that hands out pre-cut chunks,
  for exact control over how a reply is split.
- FakeMPDServer: a loopback TCP server answering command lines from a
  script, for end-to-end tests over real sockets.
"""

import asyncio
import socket
from typing import Dict, List, Optional

import pytest

from MPD_MCP.errors import NotConnectedError


# ---------------------------------------------------------------------------
# Scripted connection
# ---------------------------------------------------------------------------

class FakeConnection:
    """Connection double that returns ``chunks`` one read at a time.

    Once the script runs out, reads return ``b""`` (end of stream), or
    block forever when ``hang_when_empty`` is set.
    """

    def __init__(self, chunks=(), hang_when_empty: bool = False):
        self.chunks = list(chunks)
        self.hang_when_empty = hang_when_empty
        self.written: List[bytes] = []
        self.read_sizes: List[int] = []
        self.close_calls = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def read(self, size: int) -> bytes:
        if self._closed:
            raise NotConnectedError("read")
        self.read_sizes.append(size)
        if not self.chunks:
            if self.hang_when_empty:
                await asyncio.Event().wait()
            return b""
        chunk = self.chunks.pop(0)
        assert len(chunk) <= size, "scripted chunk larger than requested read"
        return chunk

    async def write(self, data: bytes) -> int:
        if self._closed:
            raise NotConnectedError("write")
        self.written.append(data)
        return len(data)

    async def close(self) -> None:
        self.close_calls += 1
        self._closed = True


@pytest.fixture
def fake_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


# ---------------------------------------------------------------------------
# Loopback MPD server
# ---------------------------------------------------------------------------

GREETING = b"OK MPD 0.23.5\n"


def unused_port() -> int:
    """Return a loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# Reply entry that makes the server hang up instead of writing
HANG_UP = None


class FakeMPDServer:
    """Loopback TCP server speaking just enough MPD for the tests.

    ``replies`` maps a full command line (newline included) to the chunks
    written back, each followed by a drain and a short pause so they tend
    to arrive as separate TCP segments. A ``HANG_UP`` entry closes the
    connection. Unknown commands get an ACK line.
    """

    def __init__(
        self,
        replies: Optional[Dict[bytes, list]] = None,
        greeting: bytes = GREETING,
        chunk_delay: float = 0.01,
    ):
        self.replies = replies or {}
        self.greeting = greeting
        self.chunk_delay = chunk_delay
        self.received: List[bytes] = []
        self.host = "127.0.0.1"
        self.port = 0
        self._server = None
        self._writers: List[asyncio.StreamWriter] = []

    async def _handle(self, reader, writer):
        self._writers.append(writer)
        try:
            if self.greeting:
                writer.write(self.greeting)
                await writer.drain()
            while True:
                line = await reader.readline()
                if not line:
                    break
                self.received.append(line)
                chunks = self.replies.get(line)
                if chunks is None:
                    name = line.strip().split(b" ")[0]
                    chunks = [b"ACK [5@0] {" + name + b"} unknown command\n"]
                for chunk in chunks:
                    if chunk is HANG_UP:
                        return
                    writer.write(chunk)
                    await writer.drain()
                    await asyncio.sleep(self.chunk_delay)
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def __aenter__(self):
        self._server = await asyncio.start_server(self._handle, self.host, 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, exc_type, exc, tb):
        for writer in self._writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()


@pytest.fixture
def mpd_server():
    """Factory for FakeMPDServer instances, used as ``async with``."""
    return FakeMPDServer
