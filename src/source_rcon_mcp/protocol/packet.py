"""Source RCON packet encoder and decoder.

Packet layout (all integers little-endian)::

    +----------+-----------+----------+--------------------+------+------+
    |   Size   | RequestId |   Type   |        Body        | 0x00 | 0x00 |
    | int32    | int32     | int32    | body_length bytes  |      |      |
    +----------+-----------+----------+--------------------+------+------+

- Size: number of bytes that follow the size field (body_length + 10)
- RequestId: chosen by the client; -1 in a failed auth response
- Type: 3 (auth), 2 (auth response / exec command), 0 (response value)
- Body: ASCII text, no embedded NUL, at most 4086 bytes
- The first zero byte terminates the body, the second the packet
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum

from .errors import EncodeError, MalformedPacket

SIZE_FIELD = 4
HEADER_SIZE = 12  # size + request id + type
PACKET_OVERHEAD = 10  # request id + type + two terminators
MIN_PACKET_BYTES = 14  # SIZE_FIELD + PACKET_OVERHEAD
MAX_PACKET_BYTES = 4096
MAX_BODY_LENGTH = MAX_PACKET_BYTES - PACKET_OVERHEAD  # 4086

_HEADER = struct.Struct("<iii")
_SIZE = struct.Struct("<i")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class Direction(Enum):
    """Which way a packet travels relative to the client."""

    OUTBOUND = "outbound"
    INBOUND = "inbound"


class PacketKind(Enum):
    """RCON packet types.

    ``AUTH_RESPONSE`` and ``EXEC_COMMAND`` share wire value 2; a client only
    ever sends the latter and only ever receives the former, so decoding needs
    the packet's :class:`Direction` to tell them apart.
    """

    RESPONSE_VALUE = ("SERVERDATA_RESPONSE_VALUE", 0)
    AUTH_RESPONSE = ("SERVERDATA_AUTH_RESPONSE", 2)
    EXEC_COMMAND = ("SERVERDATA_EXECCOMMAND", 2)
    AUTH = ("SERVERDATA_AUTH", 3)

    def __init__(self, label: str, wire_value: int) -> None:
        self.label = label
        self.wire_value = wire_value

    @classmethod
    def from_wire(cls, value: int, direction: Direction) -> PacketKind:
        """Map a wire type value to a kind for the given direction."""
        if value == 0:
            return cls.RESPONSE_VALUE
        if value == 3:
            return cls.AUTH
        if value == 2:
            if direction is Direction.INBOUND:
                return cls.AUTH_RESPONSE
            return cls.EXEC_COMMAND
        raise MalformedPacket(f"Unknown packet type {value}")

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class Packet:
    """A single RCON packet."""

    request_id: int
    kind: PacketKind
    body: bytes = b""

    @property
    def body_length(self) -> int:
        return len(self.body)

    @property
    def text(self) -> str:
        """The body decoded for display."""
        return self.body.decode("ascii", errors="replace")

    def __repr__(self) -> str:
        return (
            f"Packet(request_id={self.request_id}, kind={self.kind.label}, "
            f"body={self.body!r})"
        )


def encode_packet(packet: Packet) -> bytes:
    """Serialize a packet to wire bytes.

    Raises:
        EncodeError: If the body is too long or contains a NUL byte, or the
            request id does not fit a signed 32-bit integer.
    """
    if packet.body_length > MAX_BODY_LENGTH:
        raise EncodeError(
            f"Packet body must be at most {MAX_BODY_LENGTH} bytes, "
            f"got {packet.body_length}"
        )
    if b"\x00" in packet.body:
        raise EncodeError("Packet body must not contain NUL bytes")
    if not _INT32_MIN <= packet.request_id <= _INT32_MAX:
        raise EncodeError(f"Request id {packet.request_id} is not an int32")

    header = _HEADER.pack(
        packet.body_length + PACKET_OVERHEAD,
        packet.request_id,
        packet.kind.wire_value,
    )
    return header + packet.body + b"\x00\x00"


def decode_packet(
    buffer: bytes | bytearray,
    direction: Direction = Direction.INBOUND,
) -> tuple[Packet, int] | None:
    """Decode the packet at the start of ``buffer``.

    Args:
        buffer: At least 4 bytes of buffered stream data.
        direction: Direction used to resolve the shared wire type value 2.

    Returns:
        ``(packet, bytes_consumed)``, or ``None`` if the buffer does not yet
        hold the whole packet.

    Raises:
        MalformedPacket: If the size field is below the protocol minimum or
            the type is unknown.
    """
    if len(buffer) < SIZE_FIELD:
        return None

    (size,) = _SIZE.unpack_from(buffer, 0)
    if size < PACKET_OVERHEAD:
        raise MalformedPacket(
            f"Packet size {size} is below the minimum of {PACKET_OVERHEAD}"
        )

    total = size + SIZE_FIELD
    if len(buffer) < total:
        return None

    _, request_id, wire_type = _HEADER.unpack_from(buffer, 0)
    kind = PacketKind.from_wire(wire_type, direction)
    body = bytes(buffer[HEADER_SIZE : HEADER_SIZE + size - PACKET_OVERHEAD])
    return Packet(request_id=request_id, kind=kind, body=body), total
