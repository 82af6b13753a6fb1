"""Notifications emitted by :class:`~.connection.RconConnection`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .errors import RconError
from .packet import Packet


@dataclass(frozen=True)
class RconEvent:
    """Base class for connection events."""


@dataclass(frozen=True)
class PacketSent(RconEvent):
    """A packet was handed to the transport."""

    packet: Packet


@dataclass(frozen=True)
class PacketReceived(RconEvent):
    """A logical reply arrived, after reassembly and aggregation."""

    packet: Packet


@dataclass(frozen=True)
class ErrorOccurred(RconEvent):
    """A transport, protocol or auth failure."""

    message: str
    error: RconError


@dataclass(frozen=True)
class Disconnected(RconEvent):
    """The connection was closed, locally or by the peer."""


Listener = Callable[[RconEvent], None]
