"""Reassembly of RCON packets from an arbitrarily chunked TCP stream."""

from __future__ import annotations

import logging
from typing import Iterator

from .packet import MIN_PACKET_BYTES, Direction, Packet, decode_packet

logger = logging.getLogger(__name__)

# Malformed "mirror" frames some SRCDS builds emit on error conditions.
# They are not packets and are dropped wherever they start the buffer.
MIRROR_FRAMES = (
    b"\x00\x01\x00\x00\x00\x00\x00",
    b"\x00\x00\x00\x01\x00\x00\x00\x00",
)


class StreamReassembler:
    """Buffers inbound bytes and extracts complete packets.

    Usage::

        reassembler = StreamReassembler()
        for packet in reassembler.feed(chunk):
            handle(packet)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of buffered bytes not yet consumed."""
        return len(self._buffer)

    def reset(self) -> None:
        """Discard any buffered partial data."""
        self._buffer.clear()

    def feed(self, chunk: bytes) -> Iterator[Packet]:
        """Append a chunk and iterate over every packet it completes.

        The chunk is buffered immediately; packets are extracted as the
        result is iterated, so those decoded ahead of a corrupt frame are
        still delivered. Partial packets stay buffered for the next call.

        Raises:
            MalformedPacket: While iterating, if the buffered stream is
                corrupt. The caller is expected to drop the connection.
        """
        self._buffer.extend(chunk)
        return self._drain()

    def _drain(self) -> Iterator[Packet]:
        while self._buffer:
            mirror = self._match_mirror_frame()
            if mirror:
                logger.debug("Skipping %d-byte mirror frame", mirror)
                del self._buffer[:mirror]
                continue

            if len(self._buffer) < MIN_PACKET_BYTES:
                break

            decoded = decode_packet(self._buffer, Direction.INBOUND)
            if decoded is None:
                break

            packet, consumed = decoded
            del self._buffer[:consumed]
            logger.debug("Received %r", packet)
            yield packet

    def _match_mirror_frame(self) -> int:
        for frame in MIRROR_FRAMES:
            if self._buffer.startswith(frame):
                return len(frame)
        return 0
