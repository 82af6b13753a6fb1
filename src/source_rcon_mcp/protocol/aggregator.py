"""Merging of multi-packet command responses.

The server splits long command output across several response-value
packets that all carry the command's request id. When the client follows
each command with an empty trailer packet, the first reply carrying a
different id closes the previous response.
"""

from __future__ import annotations

from dataclasses import replace

from .packet import Packet, PacketKind


class ResponseAggregator:
    """Collects consecutive same-id response packets into one reply."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._pending: Packet | None = None

    @property
    def pending(self) -> Packet | None:
        """The response currently being collected, if any."""
        return self._pending

    def reset(self) -> None:
        """Drop the in-progress response without delivering it."""
        self._pending = None

    def flush(self) -> list[Packet]:
        """Hand over the in-progress response as it stands, if there is one."""
        pending, self._pending = self._pending, None
        return [] if pending is None else [pending]

    def add(self, packet: Packet) -> list[Packet]:
        """Feed one received packet.

        Returns:
            The logical replies completed by this packet, oldest first.
        """
        if packet.kind is PacketKind.AUTH_RESPONSE or not self.enabled:
            return [packet]

        if self._pending is None:
            self._pending = packet
            return []

        if self._pending.request_id != packet.request_id:
            completed = self._pending
            self._pending = packet
            return [completed]

        self._pending = replace(self._pending, body=self._pending.body + packet.body)
        return []
