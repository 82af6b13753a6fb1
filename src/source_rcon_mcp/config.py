"""Environment-driven RCON settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .models.connection import Endpoint

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 27015
DEFAULT_TIMEOUT = 5.0

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass
class RconSettings:
    """Connection settings for an RCON server.

    Read from the environment by :meth:`from_env`:

    - ``RCON_HOST``: server address (default 127.0.0.1)
    - ``RCON_PORT``: server port (default 27015)
    - ``RCON_PASSWORD``: RCON password (default empty)
    - ``RCON_TIMEOUT``: connect and reply timeout in seconds (default 5)
    - ``RCON_NULL_PACKET``: follow commands with an empty trailer packet so
      multi-packet replies are merged (default true)
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    password: str = ""
    timeout: float = DEFAULT_TIMEOUT
    send_null_packet: bool = True

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(self.host, self.port)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RconSettings:
        env = os.environ if environ is None else environ

        port_text = env.get("RCON_PORT", str(DEFAULT_PORT))
        try:
            port = int(port_text)
        except ValueError as e:
            raise ValueError(f"RCON_PORT must be an integer, got {port_text!r}") from e

        timeout_text = env.get("RCON_TIMEOUT", str(DEFAULT_TIMEOUT))
        try:
            timeout = float(timeout_text)
        except ValueError as e:
            raise ValueError(
                f"RCON_TIMEOUT must be a number, got {timeout_text!r}"
            ) from e
        if timeout <= 0:
            raise ValueError(f"RCON_TIMEOUT must be positive, got {timeout}")

        settings = cls(
            host=env.get("RCON_HOST", DEFAULT_HOST),
            port=port,
            password=env.get("RCON_PASSWORD", ""),
            timeout=timeout,
            send_null_packet=_parse_bool(
                "RCON_NULL_PACKET", env.get("RCON_NULL_PACKET", "true")
            ),
        )
        Endpoint(settings.host, settings.port)  # raises on empty host or bad port
        return settings
