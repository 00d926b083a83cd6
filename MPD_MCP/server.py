# mpd_mcp_server.py
from mcp.server.fastmcp import FastMCP, Context
import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Any, Optional

from .client import TCPClient
from .config import Settings, configure_logging

logger = logging.getLogger("MPDMCPServer")


@asynccontextmanager
async def server_lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    """Manage server startup and shutdown lifecycle.

    Note: We do NOT connect to MPD on startup (lazy connect).
    The connection is opened on the first tool call.
    """
    try:
        logger.info("MPD MCP server starting up (MPD connection opens on first tool call)")
        yield {}
    finally:
        await close_mpd_client()
        logger.info("MPD MCP server shut down")

# Create the MCP server with lifespan support
mcp = FastMCP(
    "MPD_MCP",
    instructions="Music Player Daemon control through the Model Context Protocol",
    lifespan=server_lifespan
)

# Shared connection state, guarded by _client_lock
_mpd_client: Optional[TCPClient] = None
_client_lock = asyncio.Lock()
_settings: Optional[Settings] = None
# Client with an idle in flight; noidle is written to it without the lock
_idle_client: Optional[TCPClient] = None


def get_settings() -> Settings:
    """Return the active settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Replace the active settings. ``None`` re-reads the environment next time."""
    global _settings
    _settings = settings


async def get_mpd_client() -> TCPClient:
    """Get or create the persistent MPD connection.

    Implements lazy connect: the connection is opened on first use and
    reopened on a later call once it has been closed. A failed open is not
    retried.
    """
    global _mpd_client

    if _mpd_client is not None and not _mpd_client.closed:
        return _mpd_client

    _mpd_client = None
    settings = get_settings()
    logger.info(f"Connecting to MPD at {settings.host}:{settings.port}...")

    client = None
    try:
        client = await TCPClient.connect(settings.host, settings.port, timeout=settings.timeout)
        version = await client.read_greeting()
    except ConnectionError as e:
        logger.error(f"Failed to connect to MPD: {str(e)}")
        if client is not None:
            await client.close()
        raise RuntimeError(
            f"Could not connect to MPD at {settings.host}:{settings.port}. "
            f"Make sure MPD is running. ({e})"
        ) from e

    logger.info(f"Connected to MPD {version}")
    _mpd_client = client
    return _mpd_client


async def close_mpd_client() -> bool:
    """Close the shared connection if one is open. Returns True if it was."""
    global _mpd_client
    if _mpd_client is None:
        return False
    client, _mpd_client = _mpd_client, None
    logger.info("Disconnecting from MPD")
    await client.close()
    return True


def _command_name(command: str) -> str:
    parts = command.split(None, 1)
    return parts[0].lower() if parts else ""


def _is_complete_reply(response: str) -> bool:
    return response.endswith("OK\n") or "ACK " in response


async def run_command(command: str, immediate: bool = False) -> str:
    """Send one command on the shared connection, one caller at a time.

    A connection that failed mid-command is closed so the next call opens a
    fresh one; its framing can no longer be trusted. The same goes for an
    immediate call that returned part of a reply: the rest is still on the
    socket.

    While an ``idle`` is waiting, ``noidle`` is written straight to its
    connection without taking the lock. MPD then answers the pending
    ``idle``, which returns the reply; the ``noidle`` call returns "".
    """
    global _idle_client

    name = _command_name(command)
    if name == "noidle" and _idle_client is not None and not _idle_client.closed:
        logger.info("Cancelling pending idle")
        await _idle_client.write_command(command)
        return ""

    async with _client_lock:
        client = await get_mpd_client()
        try:
            if name == "idle" and not immediate:
                _idle_client = client
                try:
                    return await client.send_command(command)
                finally:
                    _idle_client = None
            response = await client.send_command(command, immediate)
        except ConnectionError:
            await close_mpd_client()
            raise

        if immediate and response and not _is_complete_reply(response):
            logger.warning("Immediate read returned a partial reply; dropping the connection")
            await close_mpd_client()
        return response


# Tool endpoints

@mcp.tool()
async def send_command(ctx: Context, command: str, immediate: bool = False) -> str:
    """
    Send a raw MPD protocol command and return the server's reply.

    Successful replies end with "OK"; errors come back as an "ACK ..." line.

    Parameters:
    - command: The command line, e.g. 'status' or 'find artist "Bach"'
    - immediate: Do a single short read instead of waiting for the reply to finish.
      A partial reply closes the connection; the next command reopens it.

    'idle' waits until MPD reports a change. Send 'noidle' from another call to
    end it early: the 'idle' call then returns MPD's reply and 'noidle' returns "".
    """
    if not command.endswith("\n"):
        command += "\n"
    try:
        return await run_command(command, immediate)
    except Exception as e:
        logger.error(f"Error sending command: {str(e)}")
        return f"Error sending command: {str(e)}"


@mcp.tool()
async def close_connection(ctx: Context) -> str:
    """Close the connection to MPD. The next command opens a new one."""
    try:
        async with _client_lock:
            was_open = await close_mpd_client()
        return "Connection closed" if was_open else "No open connection"
    except Exception as e:
        logger.error(f"Error closing connection: {str(e)}")
        return f"Error closing connection: {str(e)}"


def main():
    """Run the MCP server."""
    parser = argparse.ArgumentParser(description="MPD MCP Server")
    parser.add_argument("--host", help="MPD host (default: $MPD_HOST or localhost)")
    parser.add_argument("--port", type=int, help="MPD port (default: $MPD_PORT or 6600)")
    parser.add_argument("--timeout", type=float,
                        help="Seconds to wait on MPD reads and writes (default: no limit)")
    parser.add_argument("--log-level", help="Logging level (default: $LOG_LEVEL or INFO)")
    args = parser.parse_args()

    try:
        settings = Settings.from_env()
    except ValueError as e:
        parser.error(str(e))

    if args.host:
        settings.host = args.host
    if args.port is not None:
        settings.port = args.port
    if args.timeout is not None:
        settings.timeout = args.timeout
    if args.log_level:
        settings.log_level = args.log_level

    configure_logging(settings.log_level)
    set_settings(settings)
    mcp.run()

if __name__ == "__main__":
    main()
