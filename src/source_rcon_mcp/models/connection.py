"""Connection endpoint and lifecycle state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Endpoint:
    """Address of an RCON server."""

    host: str
    port: int

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("Endpoint host must not be empty")
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"Port must be 0-65535, got {self.port}")

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class ConnectionState(Enum):
    """Lifecycle of an RCON connection.

    DISCONNECTED -> CONNECTING -> AUTHENTICATING -> READY -> DISCONNECTED,
    with DISCONNECTING passed through on every teardown.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    DISCONNECTING = "disconnecting"
