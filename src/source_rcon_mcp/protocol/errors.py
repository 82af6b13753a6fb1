"""Exceptions raised by the RCON protocol layer."""

from __future__ import annotations


class RconError(Exception):
    """Base class for all RCON errors."""


class TransportError(RconError, ConnectionError):
    """The underlying transport failed to connect, send or receive."""


class MalformedPacket(RconError):
    """The inbound byte stream cannot be decoded as RCON packets."""


class EncodeError(RconError, ValueError):
    """A packet cannot be serialized to the wire format."""


class AuthFailed(RconError):
    """The server rejected the RCON password."""


class AlreadyConnected(RconError):
    """``connect`` was called on a connection that is not disconnected."""


class NotConnected(RconError):
    """A command was issued while no connection is open."""
