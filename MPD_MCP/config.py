"""Runtime settings and logging setup for the MPD MCP server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 6600
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Settings:
    """Where the MPD server lives and how long to wait for it.

    ``timeout`` of ``None`` means reads wait forever, which is how MPD
    clients traditionally behave.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: Optional[float] = None
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``MPD_HOST``, ``MPD_PORT``, ``MPD_TIMEOUT`` and ``LOG_LEVEL``.

        Raises:
            ValueError: If ``MPD_PORT`` or ``MPD_TIMEOUT`` is not a number.
        """
        env = os.environ if environ is None else environ

        port_text = env.get("MPD_PORT", str(DEFAULT_PORT))
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"MPD_PORT must be an integer, got {port_text!r}") from None

        timeout = None
        timeout_text = env.get("MPD_TIMEOUT", "").strip()
        if timeout_text:
            try:
                timeout = float(timeout_text)
            except ValueError:
                raise ValueError(f"MPD_TIMEOUT must be a number, got {timeout_text!r}") from None

        return cls(
            host=env.get("MPD_HOST", DEFAULT_HOST) or DEFAULT_HOST,
            port=port,
            timeout=timeout,
            log_level=env.get("LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )


def configure_logging(level_name: str = DEFAULT_LOG_LEVEL) -> int:
    """Configure process-wide logging and return the resolved level.

    Unknown level names fall back to INFO with a warning.
    """
    level = getattr(logging, level_name.upper(), None)
    invalid = not isinstance(level, int)
    if invalid:
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)

    if invalid:
        logging.getLogger(__name__).warning(
            "Invalid log level '%s'; using %s", level_name, logging.getLevelName(level)
        )
    return level
