"""Shared fixtures: an in-memory transport and a connection bound to it."""

from __future__ import annotations

import random

import pytest

from source_rcon_mcp.models.connection import Endpoint
from source_rcon_mcp.protocol.connection import RconConnection
from source_rcon_mcp.protocol.errors import TransportError
from source_rcon_mcp.protocol.packet import Direction, Packet, decode_packet
from source_rcon_mcp.transport.base import Transport, TransportListener


class FakeTransport(Transport):
    """Records outbound bytes; inbound data is pushed by the test."""

    def __init__(self) -> None:
        self.listener: TransportListener | None = None
        self.sent: list[bytes] = []
        self.opened = False
        self.close_calls = 0
        self.fail_open = False
        self.fail_send = False

    @property
    def connected(self) -> bool:
        return self.opened

    def bind(self, listener: TransportListener) -> None:
        self.listener = listener

    def open(self, endpoint: Endpoint) -> None:
        if self.fail_open:
            raise TransportError(f"Connection refused by {endpoint}")
        self.opened = True
        self.listener.connection_made()

    def send(self, data: bytes) -> None:
        if self.fail_send:
            raise TransportError("Broken pipe")
        self.sent.append(data)

    def close(self) -> None:
        self.close_calls += 1
        self.opened = False

    def sent_packets(self) -> list[Packet]:
        packets = []
        for data in self.sent:
            packet, consumed = decode_packet(data, Direction.OUTBOUND)
            assert consumed == len(data)
            packets.append(packet)
        return packets


@pytest.fixture
def endpoint() -> Endpoint:
    return Endpoint("127.0.0.1", 27015)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def connection(transport, events) -> RconConnection:
    conn = RconConnection(transport, rng=random.Random(1234))
    conn.subscribe(events.append)
    return conn
