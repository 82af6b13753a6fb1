"""Blocking TCP transport with a background reader thread.

``open`` connects synchronously; inbound data is read on a daemon thread and
handed, exactly as the socket returns it, to the listener that was bound
when the socket opened. That listener sees ``connection_lost`` once, when
the peer closes or the socket fails, but not after a local ``close``.
"""

from __future__ import annotations

import logging
import socket
import threading

from ..models.connection import Endpoint
from ..protocol.errors import TransportError
from .base import Transport, TransportListener

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
SEND_BUFFER_SIZE = 65536
RECV_BUFFER_SIZE = 32768


class TCPTransport(Transport):
    """Manages one TCP stream to an RCON server.

    Usage::

        transport = TCPTransport()
        transport.bind(listener)
        transport.open(Endpoint("127.0.0.1", 27015))
        transport.send(data)
        transport.close()
    """

    def __init__(
        self,
        connect_timeout: float = CONNECT_TIMEOUT,
        recv_size: int = RECV_BUFFER_SIZE,
    ) -> None:
        self._connect_timeout = connect_timeout
        self._recv_size = recv_size
        self._listener: TransportListener | None = None
        self._sock: socket.socket | None = None
        self._reader: threading.Thread | None = None
        self._send_lock = threading.Lock()
        self._closing = False

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def bind(self, listener: TransportListener) -> None:
        self._listener = listener

    def open(self, endpoint: Endpoint) -> None:
        if self._listener is None:
            raise RuntimeError("Transport has no listener bound")
        if self._sock is not None:
            raise TransportError("Transport is already open")

        try:
            sock = socket.create_connection(
                (endpoint.host, endpoint.port), timeout=self._connect_timeout
            )
        except OSError as e:
            raise TransportError(f"Could not connect to {endpoint}: {e}") from e

        sock.settimeout(None)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, SEND_BUFFER_SIZE)

        self._sock = sock
        self._closing = False
        logger.info("Connected to %s", endpoint)

        listener = self._listener
        listener.connection_made()

        self._reader = threading.Thread(
            target=self._read_loop,
            args=(sock, listener),
            name=f"rcon-reader-{endpoint}",
            daemon=True,
        )
        self._reader.start()

    def send(self, data: bytes) -> None:
        sock = self._sock
        if sock is None:
            raise TransportError("Transport is not connected")
        with self._send_lock:
            try:
                sock.sendall(data)
            except OSError as e:
                raise TransportError(f"Send failed: {e}") from e

    def close(self) -> None:
        sock = self._sock
        if sock is None:
            return

        self._closing = True
        self._sock = None
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Error shutting down socket: %s", e)
        finally:
            sock.close()
            logger.info("Disconnected")

    def _read_loop(self, sock: socket.socket, listener: TransportListener) -> None:
        error: Exception | None = None
        while True:
            try:
                chunk = sock.recv(self._recv_size)
            except OSError as e:
                if not self._closing:
                    error = TransportError(f"Receive failed: {e}")
                break
            if not chunk:
                break
            listener.data_received(chunk)

        # Closed locally, or a stale reader from an earlier session.
        if self._closing or self._sock is not sock:
            return

        self._sock = None
        sock.close()
        logger.info("Connection closed by peer")
        listener.connection_lost(error)
