"""Blocking request/reply client on top of :class:`RconConnection`.

The connection itself is fire-and-forget: it never waits for replies. This
module adds the waiting, matching each reply to its command by request id.
"""

from __future__ import annotations

import logging
import threading

from .config import RconSettings
from .models.connection import ConnectionState, Endpoint
from .protocol.commands import AUTH_FAILED_REQUEST_ID
from .protocol.connection import RconConnection
from .protocol.errors import AuthFailed, NotConnected, RconError, TransportError
from .protocol.events import Disconnected, ErrorOccurred, PacketReceived, RconEvent
from .protocol.packet import Packet, PacketKind
from .transport.base import Transport
from .transport.tcp_connection import TCPTransport

logger = logging.getLogger(__name__)

# Replies nobody has claimed yet; the oldest are dropped beyond this.
MAX_UNCLAIMED_REPLIES = 256


class RconClient:
    """Synchronous RCON client.

    Usage::

        with RconClient(RconSettings(password="secret")) as client:
            client.connect()
            print(client.execute("status"))
    """

    def __init__(
        self,
        settings: RconSettings | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._settings = settings or RconSettings.from_env()
        self._transport = transport or TCPTransport(
            connect_timeout=self._settings.timeout
        )
        self._connection = RconConnection(
            self._transport, send_null_packet=self._settings.send_null_packet
        )
        self._cond = threading.Condition()
        self._replies: dict[int, Packet] = {}
        self._auth_reply: Packet | None = None
        self._last_error: RconError | None = None
        self._connection.subscribe(self._on_event)

    @property
    def connection(self) -> RconConnection:
        return self._connection

    @property
    def settings(self) -> RconSettings:
        return self._settings

    @property
    def connected(self) -> bool:
        return self._connection.state is ConnectionState.READY

    def connect(
        self,
        host: str | None = None,
        port: int | None = None,
        password: str | None = None,
        timeout: float | None = None,
    ) -> Endpoint:
        """Connect and wait until the server accepts or rejects the password.

        Arguments left as None fall back to the client's settings.

        Raises:
            AuthFailed: If the password is rejected.
            TransportError: If the server cannot be reached or closes the
                connection during authentication.
            TimeoutError: If no auth response arrives in time.
        """
        endpoint = Endpoint(
            host or self._settings.host,
            port if port is not None else self._settings.port,
        )
        if password is None:
            password = self._settings.password
        timeout = timeout or self._settings.timeout

        with self._cond:
            self._auth_reply = None
            self._last_error = None
            self._replies.clear()

        if not self._connection.connect(endpoint, password):
            raise self._last_error or TransportError(f"Could not connect to {endpoint}")

        with self._cond:
            done = self._cond.wait_for(
                lambda: self._auth_reply is not None or self._closed(), timeout
            )
            auth_reply = self._auth_reply

        if auth_reply is not None and auth_reply.request_id == AUTH_FAILED_REQUEST_ID:
            raise AuthFailed(f"Authentication with {endpoint} failed")
        if not done:
            self._connection.disconnect()
            raise TimeoutError(f"No auth response from {endpoint} after {timeout}s")
        if auth_reply is None:
            raise self._last_error or TransportError(
                f"{endpoint} closed the connection during authentication"
            )

        logger.info("RCON session ready on %s", endpoint)
        return endpoint

    def execute(self, command: str, timeout: float | None = None) -> str:
        """Run a console command and return its output.

        Raises:
            NotConnected: If there is no open connection, or it closes before
                the reply arrives.
            TimeoutError: If the reply does not arrive in time.
        """
        timeout = timeout or self._settings.timeout
        request_id = self._connection.send_command(command)

        with self._cond:
            done = self._cond.wait_for(
                lambda: request_id in self._replies or self._closed(), timeout
            )
            reply = self._replies.pop(request_id, None)

        if reply is not None:
            return reply.text
        if not done:
            raise TimeoutError(f"No reply to {command!r} after {timeout}s")
        raise NotConnected(f"Connection closed before {command!r} was answered")

    def close(self) -> None:
        self._connection.disconnect()

    def __enter__(self) -> RconClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _closed(self) -> bool:
        return self._connection.state is ConnectionState.DISCONNECTED

    def _on_event(self, event: RconEvent) -> None:
        with self._cond:
            if isinstance(event, PacketReceived):
                self._store_reply(event.packet)
            elif isinstance(event, ErrorOccurred):
                self._last_error = event.error
            elif isinstance(event, Disconnected):
                logger.debug("RCON session closed")
            self._cond.notify_all()

    def _store_reply(self, packet: Packet) -> None:
        if packet.kind is PacketKind.AUTH_RESPONSE:
            self._auth_reply = packet
            return

        previous = self._replies.pop(packet.request_id, None)
        if previous is not None:
            # Unaggregated multi-packet reply.
            packet = Packet(
                request_id=packet.request_id,
                kind=packet.kind,
                body=previous.body + packet.body,
            )
        self._replies[packet.request_id] = packet
        while len(self._replies) > MAX_UNCLAIMED_REPLIES:
            del self._replies[next(iter(self._replies))]
