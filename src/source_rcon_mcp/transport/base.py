"""Transport contract consumed by the RCON connection."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models.connection import Endpoint


class TransportListener(ABC):
    """Receives lifecycle and data notifications from a transport."""

    @abstractmethod
    def connection_made(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def data_received(self, chunk: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def connection_lost(self, error: Exception | None) -> None:
        """Called once when the stream ends; ``error`` is None on a clean close."""
        raise NotImplementedError


class Transport(ABC):
    """A bidirectional byte stream to one server."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def bind(self, listener: TransportListener) -> None:
        """Register the listener that receives this transport's notifications."""
        raise NotImplementedError

    @abstractmethod
    def open(self, endpoint: Endpoint) -> None:
        """Connect to ``endpoint`` and call ``connection_made`` on success.

        Raises:
            TransportError: If the connection cannot be established.
        """
        raise NotImplementedError

    @abstractmethod
    def send(self, data: bytes) -> None:
        """Write ``data`` to the stream.

        Raises:
            TransportError: If the write fails or the transport is closed.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Close the stream. Safe to call more than once."""
        raise NotImplementedError
