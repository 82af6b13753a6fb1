"""Tests for stream reassembly."""

import struct

import pytest

from source_rcon_mcp.protocol.errors import MalformedPacket
from source_rcon_mcp.protocol.packet import Packet, PacketKind, encode_packet
from source_rcon_mcp.protocol.reassembly import MIRROR_FRAMES, StreamReassembler

PACKETS = [
    Packet(1, PacketKind.AUTH_RESPONSE),
    Packet(17, PacketKind.RESPONSE_VALUE, b"hostname: test server\n"),
    Packet(17, PacketKind.RESPONSE_VALUE, b"map: de_dust2\n"),
]
STREAM = b"".join(encode_packet(p) for p in PACKETS)


def test_single_chunk():
    """A whole stream in one chunk yields every packet."""
    reassembler = StreamReassembler()
    assert list(reassembler.feed(STREAM)) == PACKETS
    assert reassembler.pending == 0


def test_split_at_every_boundary():
    """Splitting the stream anywhere yields the same packets."""
    for split in range(len(STREAM) + 1):
        reassembler = StreamReassembler()
        packets = list(reassembler.feed(STREAM[:split]))
        packets += list(reassembler.feed(STREAM[split:]))
        assert packets == PACKETS, f"split at {split}"
        assert reassembler.pending == 0


def test_byte_at_a_time():
    """Feeding one byte per chunk yields the same packets."""
    reassembler = StreamReassembler()
    packets = []
    for i in range(len(STREAM)):
        packets += list(reassembler.feed(STREAM[i : i + 1]))
    assert packets == PACKETS


@pytest.mark.parametrize("frame", MIRROR_FRAMES)
def test_mirror_frame_skipped(frame):
    """A mirror frame ahead of a packet produces no packet of its own."""
    packet = Packet(9, PacketKind.RESPONSE_VALUE, b"ok")
    reassembler = StreamReassembler()
    assert list(reassembler.feed(frame + encode_packet(packet))) == [packet]
    assert reassembler.pending == 0


def test_seven_byte_mirror_frame():
    """The 7-byte signature is consumed on its own."""
    reassembler = StreamReassembler()
    assert list(reassembler.feed(b"\x00\x01\x00\x00\x00\x00\x00")) == []
    assert reassembler.pending == 0


def test_mirror_frame_between_packets():
    """Mirror frames between packets are dropped too."""
    first = Packet(5, PacketKind.RESPONSE_VALUE, b"a")
    second = Packet(6, PacketKind.RESPONSE_VALUE, b"b")
    data = encode_packet(first) + MIRROR_FRAMES[1] + encode_packet(second)
    assert list(StreamReassembler().feed(data)) == [first, second]


def test_short_buffer_waits():
    """Fewer than 14 bytes produce nothing and are kept for the next chunk."""
    reassembler = StreamReassembler()
    assert list(reassembler.feed(b"\x0a\x00\x00\x00\x05")) == []
    assert reassembler.pending == 5


def test_partial_packet_kept():
    """A packet missing its last byte stays buffered until it completes."""
    data = encode_packet(Packet(8, PacketKind.RESPONSE_VALUE, b"players: 3"))
    reassembler = StreamReassembler()
    assert list(reassembler.feed(data[:-1])) == []
    assert reassembler.pending == len(data) - 1
    assert [p.text for p in reassembler.feed(data[-1:])] == ["players: 3"]


def test_malformed_size_raises():
    """A size field below 10 is reported as a malformed packet."""
    bad = struct.pack("<iii", 4, 1, 0) + b"\x00\x00"
    with pytest.raises(MalformedPacket):
        list(StreamReassembler().feed(bad))


def test_packets_before_malformed_are_delivered():
    """Packets decoded ahead of a corrupt frame still come out."""
    good = Packet(3, PacketKind.RESPONSE_VALUE, b"fine")
    bad = struct.pack("<iii", 2, 1, 0) + b"\x00\x00"
    packets = StreamReassembler().feed(encode_packet(good) + bad)
    assert next(packets) == good
    with pytest.raises(MalformedPacket):
        next(packets)


def test_reset_discards_partial_data():
    """Reset empties the buffer."""
    reassembler = StreamReassembler()
    list(reassembler.feed(STREAM[:20]))
    reassembler.reset()
    assert reassembler.pending == 0
    assert list(reassembler.feed(STREAM)) == PACKETS
