"""Protocol layer: packet codec, stream reassembly, reply aggregation and the connection state machine."""

from .packet import Direction, Packet, PacketKind, decode_packet, encode_packet
from .reassembly import StreamReassembler
from .aggregator import ResponseAggregator
from .connection import RconConnection
from .errors import (
    AlreadyConnected,
    AuthFailed,
    EncodeError,
    MalformedPacket,
    NotConnected,
    RconError,
    TransportError,
)
