"""RCON connection state machine.

:class:`RconConnection` sits between a :class:`~..transport.base.Transport`
and the caller. It authenticates on connect, turns caller commands into
packets, and turns the inbound byte stream into logical replies:

    transport bytes -> StreamReassembler -> ResponseAggregator -> listeners

Every entry point (transport callbacks, ``connect``, ``send_command``,
``disconnect``) runs under one re-entrant lock, so the buffer, the pending
aggregate and the state only ever change one event at a time.
"""

from __future__ import annotations

import logging
import random
import threading
from typing import Callable

from ..models.connection import ConnectionState, Endpoint
from ..transport.base import Transport, TransportListener
from .aggregator import ResponseAggregator
from .commands import (
    AUTH_FAILED_REQUEST_ID,
    AUTH_REQUEST_ID,
    build_auth,
    build_exec_command,
    build_null_packet,
    next_request_id,
)
from .errors import (
    AlreadyConnected,
    AuthFailed,
    MalformedPacket,
    NotConnected,
    RconError,
    TransportError,
)
from .events import (
    Disconnected,
    ErrorOccurred,
    Listener,
    PacketReceived,
    PacketSent,
    RconEvent,
)
from .packet import Packet, PacketKind, encode_packet
from .reassembly import StreamReassembler

logger = logging.getLogger(__name__)

_CLOSED_STATES = (ConnectionState.DISCONNECTED, ConnectionState.DISCONNECTING)


class _SessionListener(TransportListener):
    """Forwards transport callbacks tagged with the session they belong to.

    A fresh instance is bound to the transport on every connect, so a
    reader thread still running for a closed session reports under a stale
    session number and is ignored.
    """

    def __init__(self, connection: RconConnection, session: int) -> None:
        self._connection = connection
        self._session = session

    def connection_made(self) -> None:
        self._connection._on_connection_made(self._session)

    def data_received(self, chunk: bytes) -> None:
        self._connection._on_data_received(self._session, chunk)

    def connection_lost(self, error: Exception | None) -> None:
        self._connection._on_connection_lost(self._session, error)


class RconConnection:
    """One authenticated RCON session over a transport.

    Usage::

        conn = RconConnection(TCPTransport())
        conn.subscribe(print)
        conn.connect(Endpoint("127.0.0.1", 27015), "secret")
        request_id = conn.send_command("status")
        ...
        conn.disconnect()

    Replies arrive asynchronously as :class:`PacketReceived` events on the
    transport's thread; listeners must not block.

    Commands issued while the connection is still authenticating are queued
    and sent, in order, once the server accepts the password. They are
    dropped if authentication fails or the connection closes first.
    """

    def __init__(
        self,
        transport: Transport,
        send_null_packet: bool = True,
        rng: random.Random | None = None,
    ) -> None:
        self._transport = transport
        self._lock = threading.RLock()
        self._state = ConnectionState.DISCONNECTED
        self._endpoint: Endpoint | None = None
        self._auth_packet: Packet | None = None
        self._send_null_packet = send_null_packet
        self._rng = rng or random.Random()
        self._reassembler = StreamReassembler()
        self._aggregator = ResponseAggregator(enabled=send_null_packet)
        self._listeners: list[Listener] = []
        self._queued: list[Packet] = []
        self._trailer_ids: set[int] = set()
        self._session = 0

    # ─── properties ──────────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def endpoint(self) -> Endpoint | None:
        return self._endpoint

    @property
    def send_null_packet(self) -> bool:
        """Whether commands are followed by an empty trailer packet.

        The trailer is what marks the end of a multi-packet reply, so turning
        it off also turns off reply aggregation.
        """
        return self._send_null_packet

    @send_null_packet.setter
    def send_null_packet(self, value: bool) -> None:
        with self._lock:
            self._send_null_packet = value
            self._aggregator.enabled = value
            if not value:
                # Without the trailer nothing would ever close the reply being
                # collected, so hand it over as it stands.
                for reply in self._aggregator.flush():
                    self._deliver(reply)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an event listener and return a function that removes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    # ─── public operations ───────────────────────────────────────────

    def connect(self, endpoint: Endpoint, password: str) -> bool:
        """Open the transport and send the auth packet.

        Returns:
            True once the auth packet is on its way; False if the transport
            could not connect (an :class:`ErrorOccurred` has been emitted).

        Raises:
            AlreadyConnected: If the connection is not disconnected.
            EncodeError: If the password cannot be encoded.
        """
        with self._lock:
            if self._state is not ConnectionState.DISCONNECTED:
                raise AlreadyConnected(
                    f"Connection is {self._state.value}, not disconnected"
                )

            auth_packet = build_auth(password)
            encode_packet(auth_packet)

            self._auth_packet = auth_packet
            self._endpoint = endpoint
            self._state = ConnectionState.CONNECTING
            logger.info("Connecting to %s", endpoint)

            self._session += 1
            self._transport.bind(_SessionListener(self, self._session))

            try:
                self._transport.open(endpoint)
            except TransportError as e:
                self._state = ConnectionState.DISCONNECTED
                self._emit_error(f"Error while trying to connect: {e}", e)
                return False

            return self._state is not ConnectionState.DISCONNECTED

    def send_command(self, command: str) -> int:
        """Send a console command.

        Returns:
            The request id that the command's reply will carry.

        Raises:
            NotConnected: If the connection is closed.
            EncodeError: If the command is not ASCII or is too long.
        """
        with self._lock:
            if self._state in _CLOSED_STATES:
                raise NotConnected("Not connected to an RCON server")

            request_id = next_request_id(self._rng)
            packet = build_exec_command(command, request_id)
            encode_packet(packet)

            if self._state is ConnectionState.READY:
                self._dispatch_command(packet)
            else:
                logger.debug("Queued command %d until authenticated", request_id)
                self._queued.append(packet)
            return request_id

    def disconnect(self) -> None:
        """Close the connection. Does nothing if already disconnected."""
        with self._lock:
            if self._state is ConnectionState.DISCONNECTED:
                return
            self._teardown(close_transport=True)

    # ─── transport callbacks ─────────────────────────────────────────

    def _on_connection_made(self, session: int) -> None:
        with self._lock:
            if session != self._session:
                return
            if self._state is not ConnectionState.CONNECTING:
                return
            self._state = ConnectionState.AUTHENTICATING
            if not self._send(self._auth_packet):
                self._teardown(close_transport=True)
                return
            # A synchronous transport may already have delivered a failed
            # auth response and torn the connection down.
            if self._state not in _CLOSED_STATES:
                self._emit(PacketSent(self._auth_packet))

    def _on_data_received(self, session: int, chunk: bytes) -> None:
        with self._lock:
            if session != self._session or self._state in _CLOSED_STATES:
                return
            try:
                for packet in self._reassembler.feed(chunk):
                    self._handle_packet(packet)
                    if self._state is ConnectionState.DISCONNECTED:
                        return
            except MalformedPacket as e:
                self._emit_error(f"Malformed packet: {e}", e)
                self._teardown(close_transport=True)

    def _on_connection_lost(self, session: int, error: Exception | None) -> None:
        with self._lock:
            if session != self._session or self._state in _CLOSED_STATES:
                return
            if error is not None:
                if not isinstance(error, RconError):
                    error = TransportError(str(error))
                self._emit_error(f"Disconnection error: {error}", error)
            self._teardown(close_transport=False)

    # ─── internals ───────────────────────────────────────────────────

    def _send(self, packet: Packet) -> bool:
        try:
            self._transport.send(encode_packet(packet))
        except TransportError as e:
            self._emit_error(f"Error sending {packet.kind}: {e}", e)
            return False
        logger.debug("Sent %r", packet)
        return True

    def _dispatch_command(self, packet: Packet) -> None:
        if not self._send(packet):
            return
        if self._send_null_packet:
            trailer = build_null_packet(
                next_request_id(self._rng, exclude=packet.request_id)
            )
            self._trailer_ids.add(trailer.request_id)
            self._send(trailer)
        self._emit(PacketSent(packet))

    def _handle_packet(self, packet: Packet) -> None:
        for reply in self._aggregator.add(packet):
            self._deliver(reply)

    def _deliver(self, reply: Packet) -> None:
        if reply.kind is PacketKind.AUTH_RESPONSE:
            self._emit(PacketReceived(reply))
            self._handle_auth_response(reply)
        elif self._is_echo(reply):
            logger.debug("Dropping echo reply %d", reply.request_id)
        else:
            self._emit(PacketReceived(reply))

    def _handle_auth_response(self, packet: Packet) -> None:
        if packet.request_id == AUTH_FAILED_REQUEST_ID:
            error = AuthFailed("RCON authentication failed: bad password")
            self._emit_error(str(error), error)
            self._teardown(close_transport=True)
            return

        if self._state is not ConnectionState.AUTHENTICATING:
            logger.debug("Ignoring auth response in state %s", self._state.value)
            return

        self._state = ConnectionState.READY
        logger.info("Authenticated with %s", self._endpoint)
        queued, self._queued = self._queued, []
        for command in queued:
            self._dispatch_command(command)

    def _is_echo(self, packet: Packet) -> bool:
        # Servers answer both the auth packet and each trailer with an empty
        # response value carrying the same id.
        if packet.request_id == AUTH_REQUEST_ID:
            return True
        if packet.request_id in self._trailer_ids:
            self._trailer_ids.discard(packet.request_id)
            return True
        return False

    def _teardown(self, close_transport: bool) -> None:
        self._state = ConnectionState.DISCONNECTING
        self._session += 1
        if close_transport:
            self._transport.close()
        self._reassembler.reset()
        self._aggregator.reset()
        self._queued.clear()
        self._trailer_ids.clear()
        self._state = ConnectionState.DISCONNECTED
        logger.info("Disconnected from %s", self._endpoint)
        self._emit(Disconnected())

    def _emit_error(self, message: str, error: RconError) -> None:
        logger.warning("%s", message)
        self._emit(ErrorOccurred(message=message, error=error))

    def _emit(self, event: RconEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("RCON event listener failed on %r", event)
